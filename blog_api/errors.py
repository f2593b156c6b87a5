"""
Application exceptions and the FastAPI handlers that render them.

Every error response has the shape ``{"error": <summary>}`` plus a
``"details"`` key carrying the developer-facing message when the app is
not running in production.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from blog_api.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, error: str = "Internal server error", details: str | None = None) -> None:
        super().__init__(error)
        self.error = error
        self.details = details


class BadRequestError(AppError):
    status_code = HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = HTTP_404_NOT_FOUND

    def __init__(self, entity: str = "Resource", details: str | None = None) -> None:
        super().__init__(f"{entity} not found", details)


class UnsupportedImageTypeError(BadRequestError):
    def __init__(self, content_type: str | None, allowed_types: list[str]) -> None:
        super().__init__(
            "Unsupported image type. Only PNG and JPEG images are allowed.",
            f"Got {content_type or 'unknown'}, expected one of {', '.join(allowed_types)}",
        )


class ImageTooLargeError(BadRequestError):
    def __init__(self, max_size_mb: int, actual_size_bytes: int) -> None:
        super().__init__(
            f"Image is too large. Maximum size is {max_size_mb}MB.",
            f"Received {actual_size_bytes / (1024 * 1024):.1f}MB",
        )


class UploadError(AppError):
    """The image host rejected or failed an upload."""

    def __init__(self, details: str | None = None) -> None:
        super().__init__("Failed to upload image", details)


class SlugGenerationError(AppError):
    def __init__(self, base: str, attempts: int) -> None:
        super().__init__(
            "Failed to generate a unique URL",
            f"No free suffix for {base!r} after {attempts} attempts",
        )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def error_body(error: str, details=None) -> dict:
    body: dict = {"error": error}
    if details is not None and not settings.is_production:
        body["details"] = details
    return body


def _summarize_validation(errors: list) -> str:
    """Turn the first pydantic error into a one-line human summary."""
    if not errors:
        return "Validation failed"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    msg = first.get("msg", "invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{'.'.join(loc)}: {msg}" if loc else msg


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.error, exc.details)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.error)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.error, exc.details))


async def validation_error_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    errors = exc.errors()
    logger.info("%s %s invalid payload: %s", request.method, request.url.path, errors)
    details = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in errors
    ]
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=error_body(_summarize_validation(errors), details),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", str(exc)),
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
