"""JWT Authentication Middleware for the assessment service.

Reads the ACCESS token from the ``Authorization: Bearer`` header or, for
browser clients, from the ``access_token`` HttpOnly cookie. Tokens are
issued by the auth service; this service only verifies them with the RS256
public key and attaches the caller to ``request.state.user``.

JWT claims:
  - sub        : user id (``userId`` accepted as well)
  - role       : "patient" | "professional" | "admin"
  - email      : user email
  - tokenType  : "ACCESS" when present; REFRESH tokens are rejected
  - iss        : checked only when jwt_issuer is configured
"""

import logging
from typing import Optional, Dict, Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config.settings import settings

logger = logging.getLogger(__name__)

_PUBLIC_PREFIXES = ("/health", "/docs", "/openapi.json", "/redoc")


def _is_public_route(path: str) -> bool:
    return any(path == p or path.startswith(p) for p in _PUBLIC_PREFIXES)


def load_public_key(path: Optional[str] = None) -> Optional[str]:
    """Read the RSA public key PEM from disk."""
    path = path or settings.jwt_public_key_path
    try:
        with open(path, "r") as fh:
            key = fh.read().strip()
        logger.info("JWT RS256 public key loaded from %s", path)
        return key
    except FileNotFoundError:
        logger.warning(
            "JWT public key not found at '%s'. Set jwt_public_key_path in your .env file.",
            path,
        )
        return None
    except OSError as exc:
        logger.error("Failed to load JWT public key: %s", exc)
        return None


def decode_jwt(token: str, public_key: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT with the public key.

    Returns the payload dict, or None if the token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={
                "verify_aud": False,
                "verify_exp": True,
                "verify_iss": settings.jwt_issuer is not None,
            },
        )
    except ExpiredSignatureError:
        logger.debug("JWT token has expired")
        return None
    except InvalidTokenError as exc:
        logger.debug("Invalid JWT token: %s", exc)
        return None


def payload_to_user(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map JWT claims to the user dict stored on the request."""
    if payload.get("tokenType", "ACCESS") != "ACCESS":
        return None
    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        return None
    return {
        "userId": str(user_id),
        "role": payload.get("role", ""),
        "email": payload.get("email", ""),
    }


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(settings.jwt_access_cookie_name)


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that enforces JWT authentication.

    On every non-public request:
      1. Reads the bearer token, falling back to the access_token cookie.
      2. Verifies it with the RS256 public key.
      3. Returns HTTP 401 JSON if that fails.
      4. On success, sets ``request.state.user`` for FastAPI dependencies.
    """

    def __init__(self, app, public_key: Optional[str] = None) -> None:
        super().__init__(app)
        self._public_key: Optional[str] = public_key or load_public_key()

    def _ensure_key(self) -> bool:
        """Lazy-reload the public key if it wasn't available at boot."""
        if not self._public_key:
            self._public_key = load_public_key()
        return self._public_key is not None

    @staticmethod
    def _unauthorized(detail: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={
                "detail": detail,
                "error": "UNAUTHORIZED",
                "category": "auth",
                "errors": [],
            },
        )

    async def dispatch(self, request: Request, call_next):
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        if _is_public_route(request.url.path):
            return await call_next(request)

        if not self._ensure_key():
            logger.error(
                "JWT public key unavailable, cannot authenticate request to %s",
                request.url.path,
            )
            return JSONResponse(
                status_code=503,
                content={
                    "detail": "Authentication service unavailable (public key not configured).",
                    "error": "SERVICE_UNAVAILABLE",
                    "category": "auth",
                    "errors": [],
                },
            )

        token = _extract_token(request)
        user_info = None
        if token:
            payload = decode_jwt(token, self._public_key)
            if payload:
                user_info = payload_to_user(payload)

        if not user_info:
            logger.warning("Unauthenticated request: %s %s", request.method, request.url.path)
            return self._unauthorized(
                "Authentication required. Provide a valid bearer token or access_token cookie."
            )

        request.state.user = user_info
        return await call_next(request)
