"""Global exception handlers rendering the uniform ``{"error", "message"}`` body."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import AuthServiceError, DatabaseError, MissingFieldInBody, NotFoundError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(AuthServiceError)
    async def auth_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s on %s: %s",
                exc.kind,
                request.url.path,
                exc.message,
                extra={"outcome": exc.kind, "path": request.url.path},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("invalid body on %s: %s", request.url.path, exc.errors())
        error = MissingFieldInBody(_describe_validation_errors(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND and request.url.path.startswith("/api/"):
            error = NotFoundError()
            return JSONResponse(status_code=error.status_code, content=error.to_response())
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "HTTPError", "message": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled exception on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=DatabaseError().to_response(),
        )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        parts.append(f"{field or 'body'}: {error['msg']}")
    return "; ".join(parts)
