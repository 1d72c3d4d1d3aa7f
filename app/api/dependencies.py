"""FastAPI dependencies for authentication and service access.

The JWTAuthMiddleware (registered in main.py) verifies the token and stores
the caller in ``request.state.user``:

    {
        "userId": str,   # UUID
        "role":   str,   # "patient" | "professional" | "admin"
        "email":  str,
    }
"""

from typing import Any, Callable, Dict

from fastapi import Depends, Request
import logging

from app.agents.assessment_generator import AssessmentGenerator
from app.errors import ForbiddenError, InternalError, UnauthorizedError
from app.models.enums import Role

logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Return the authenticated user attached by JWTAuthMiddleware.

    Raises:
        UnauthorizedError: if the middleware did not populate request.state.user
    """
    user: Dict[str, Any] | None = getattr(request.state, "user", None)

    if not user or not user.get("userId"):
        raise UnauthorizedError("Not authenticated. Provide a valid access token.")

    logger.debug("Authenticated user: %s role=%s", user.get("userId"), user.get("role"))
    return user


def require_roles(*roles: Role) -> Callable:
    """Dependency factory restricting a route to the given roles."""
    allowed = {role.value for role in roles}

    async def _check(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if user.get("role") not in allowed:
            logger.warning(
                "Role %s denied; route requires one of %s", user.get("role"), sorted(allowed)
            )
            raise ForbiddenError("You do not have permission to perform this action")
        return user

    return _check


require_assessment_user = require_roles(Role.PATIENT, Role.PROFESSIONAL)
require_patient = require_roles(Role.PATIENT)


def get_assessment_generator(request: Request) -> AssessmentGenerator:
    """The generator built in the application lifespan."""
    generator = getattr(request.app.state, "assessment_generator", None)
    if generator is None:
        raise InternalError("Assessment generator is not initialised")
    return generator
