"""
JSON error handlers shared by the API server and the preview apps.

Every failure leaves the app as {"error": message}: NoemaError with its own
status, routing errors (404/405) as-is, body validation errors as 400 and
anything unexpected as 500.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from noema_api.core.exceptions import NoemaError
from noema_api.noema_logging import get_logger

logger = get_logger(__name__)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NoemaError)
    def noema_error_handler(request: Request, exc: NoemaError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, status=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_unhandled_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc) or "Server error"})
