"""
Error taxonomy and the handlers that turn errors into response envelopes.

Every error response has the shape ``{"success": false, "message": ...}``.
Routes raise the exceptions below the same way they would raise a plain
``HTTPException``; ``register_error_handlers`` renders them.
"""
import logging
import traceback
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import settings

log = logging.getLogger(__name__)


class ApiError(HTTPException):
    code = 500

    def __init__(self, message: str = "Internal server error", status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.code, detail=message)
        self.message = message


class ValidationError(ApiError):
    code = 400


class InvalidCategory(ValidationError):
    def __init__(self, value: str, category_type: str):
        super().__init__(
            f"Invalid {category_type} category: {value}. "
            f"Please ensure the category exists and is of type '{category_type}'."
        )
        self.value = value
        self.category_type = category_type


class CollectionFull(ValidationError):
    def __init__(self, max_size: int):
        super().__init__(f"Maximum {max_size} images allowed per record")
        self.max_size = max_size


class IndexOutOfRange(ValidationError):
    def __init__(self, index: int, length: int):
        super().__init__(f"Invalid image index: {index}. Valid range: 0-{length - 1}")
        self.index = index
        self.length = length


class LastImageProtected(ValidationError):
    def __init__(self):
        super().__init__(
            "Cannot delete the last image. Upload a new image first or keep at least one image."
        )


class InvalidAltText(ValidationError):
    def __init__(self):
        super().__init__("Alt text is required and cannot be blank")


class Unauthorized(ApiError):
    code = 401

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)
        self.headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(ApiError):
    code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFound(ApiError):
    code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(ApiError):
    code = 409

    def __init__(self, message: str = "Record was modified by another request, reload and retry"):
        super().__init__(message)


class RateLimited(ApiError):
    code = 429

    def __init__(self, message: str = "Too many requests, please try again later."):
        super().__init__(message)


class UpstreamFailure(ApiError):
    code = 500


class ServerError(ApiError):
    code = 500


# ---------------------- Handlers ----------------------

def _envelope(status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == 404 and message == "Not Found":
        message = f"Not Found - {request.url.path}"
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, message)
    return _envelope(exc.status_code, message, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form"))
        errors.append({"field": field, "message": err.get("msg", "Invalid value")})
    return _envelope(400, "Validation failed", errors=errors)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    log.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "unknown")
    return _envelope(RateLimited.code, RateLimited().message)


async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.is_production():
        return _envelope(500, "Internal server error")
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _envelope(500, str(exc) or "Internal server error", stack=stack)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
