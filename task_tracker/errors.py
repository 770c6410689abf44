"""
Error responses for the Task Tracker API.

Every error body has the shape {"error": str, "details": str (optional)}.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "


class APIError(Exception):
    """An error that maps directly to an HTTP response."""

    def __init__(self, status_code: int, error: str, details: str | None = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details


def error_body(error: str, details: str | None = None) -> dict:
    body = {"error": error}
    if details:
        body["details"] = details
    return body


def _describe(err: dict) -> tuple[str, str]:
    """Return (message, location) for one pydantic error entry."""
    loc = [str(part) for part in err.get("loc", ())]
    field = loc[-1] if len(loc) > 1 else ""

    if err.get("type") == "missing":
        name = field.replace("_", " ").capitalize() if field else "Request body"
        message = f"{name} is required"
    else:
        message = str(err.get("msg", "Invalid value"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]

    return message, ".".join(loc)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.error, exc.details))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    described = [_describe(err) for err in exc.errors()]
    if not described:
        return JSONResponse(status_code=400, content=error_body("Invalid request"))

    details = "; ".join(f"{loc}: {message}" if loc else message for message, loc in described)
    return JSONResponse(status_code=400, content=error_body(described[0][0], details))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    """Install the handlers that render every error as {error, details?}."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
