"""Error taxonomy and the FastAPI handlers that render it.

Services raise ``AppError`` subclasses; route handlers never build error
responses themselves. Every error reaches the client as one JSON body:

    {"detail": <message>, "error": <TAG>, "category": <CATEGORY>, "errors": [...]}

``errors`` carries field-level problems for the validation category and is
empty otherwise.
"""

import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


class ErrorTag:
    """Machine-readable error tags."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    COOLDOWN_NOT_MET = "COOLDOWN_NOT_MET"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
    LLM_AUTH_FAILED = "LLM_AUTH_FAILED"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_SERVER_ERROR = "LLM_SERVER_ERROR"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"
    LLM_REFUSED = "LLM_REFUSED"
    LLM_EMPTY_RESPONSE = "LLM_EMPTY_RESPONSE"
    LLM_INVALID_OUTPUT = "LLM_INVALID_OUTPUT"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_ERROR = "LLM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for errors that map onto one HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    category: str = "internal"
    default_tag: str = ErrorTag.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        tag: Optional[str] = None,
        errors: Optional[List[Any]] = None,
        extra: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tag = tag or self.default_tag
        self.errors = errors or []
        self.extra = extra or {}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = "validation"
    default_tag = ErrorTag.VALIDATION_ERROR


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    category = "auth"
    default_tag = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "auth"
    default_tag = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    category = "not_found"
    default_tag = ErrorTag.RESOURCE_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    category = "conflict"
    default_tag = ErrorTag.DUPLICATE_RESOURCE


class UpstreamError(AppError):
    """The LLM endpoint failed or produced unusable output."""

    status_code = status.HTTP_502_BAD_GATEWAY
    category = "upstream"
    default_tag = ErrorTag.LLM_ERROR

    def __init__(
        self,
        message: str,
        tag: Optional[str] = None,
        retryable: bool = False,
        extra: Optional[dict] = None,
    ) -> None:
        super().__init__(message, tag=tag, extra=extra)
        self.retryable = retryable
        if self.tag == ErrorTag.LLM_TIMEOUT:
            self.status_code = status.HTTP_504_GATEWAY_TIMEOUT


class InternalError(AppError):
    pass


def _error_body(exc: AppError) -> dict:
    body = {
        "detail": exc.message,
        "error": exc.tag,
        "category": exc.category,
        "errors": exc.errors,
    }
    body.update(exc.extra)
    return jsonable_encoder(body)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s [%s] at %s: %s", exc.category, exc.tag, request.url.path, exc.message)
    else:
        logger.warning("%s [%s] at %s: %s", exc.category, exc.tag, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request shape → 400 with field-level problems."""
    problems = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    logger.warning("Request validation failed at %s: %d problem(s)", request.url.path, len(problems))
    return await app_error_handler(
        request, ValidationError("Request validation failed", errors=problems)
    )


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    """A unique index fired outside the places that expect it."""
    return await app_error_handler(request, ConflictError("Resource already exists"))


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": ErrorTag.INTERNAL_ERROR,
            "category": "internal",
            "errors": [],
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, generic_error_handler)
