"""Global exception handlers rendering RFC 7807 problem responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dispatch_service.core.exceptions import AppException

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert AppException instances into problem+json responses."""
    problem = exc.to_problem()
    problem.setdefault("instance", str(request.url.path))

    log = logger.error if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
    log(
        exc.detail,
        extra={
            "status_code": exc.status_code,
            "error_type": exc.type,
            "path": request.url.path,
            "operation": "http.app_exception",
        },
    )
    return JSONResponse(status_code=exc.status_code, content=problem, media_type=PROBLEM_JSON)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with traceback, hide internals from the client."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "operation": "http.unhandled_exception"},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "type": "internal-server-error",
            "title": "Internal Server Error",
            "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "detail": "An unexpected error occurred",
            "instance": str(request.url.path),
        },
        media_type=PROBLEM_JSON,
    )


def configure_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
