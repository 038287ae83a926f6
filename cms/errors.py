"""
Error taxonomy for the CMS API.

Every failure a handler can report maps to one ``CMSError`` subclass with a
fixed HTTP status.  The application factory registers ``cms_error_handler``
so raising one anywhere below a router yields ``{"error": <message>}``.
Request-schema failures are folded into ``ValidationError`` by
``request_validation_handler``.
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class CMSError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"
    headers: dict[str, str] | None = None

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CMSError):
    status_code = 400
    default_message = "Invalid request data"


class Unauthenticated(CMSError):
    status_code = 401
    default_message = "Not authenticated, please log in"
    headers = {"WWW-Authenticate": "Bearer"}


class InvalidSession(Unauthenticated):
    default_message = "Invalid or expired session, please log in again"


class Forbidden(CMSError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFound(CMSError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(CMSError):
    # Duplicates are reported as a plain bad request.
    status_code = 400
    default_message = "Resource already exists"


class Internal(CMSError):
    status_code = 500


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def cms_error_handler(request: Request, exc: CMSError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = ValidationError.default_message
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse({"error": message}, status_code=ValidationError.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))
