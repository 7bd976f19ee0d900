"""Router registry plus the health and metrics endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_service.core.dependencies import get_db_session
from dispatch_service.core.exceptions import ServiceUnavailableException
from dispatch_service.features.notifications.router import router as notifications_router
from dispatch_service.infra.metrics import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

if TYPE_CHECKING:
    from fastapi import FastAPI

    from dispatch_service.core.settings.app import AppSettings

logger = logging.getLogger(__name__)

system_router = APIRouter(tags=["system"])


@system_router.get("/health", summary="Liveness and database check")
async def health(session: Annotated[AsyncSession, Depends(get_db_session)]) -> dict[str, str]:
    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check failed", extra={"error": str(e), "operation": "health"})
        raise ServiceUnavailableException(detail="Database unavailable", type="database-unavailable") from e
    return {"status": "ok", "database": "ok"}


@system_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


def setup_routers(app: FastAPI, app_settings: AppSettings) -> None:
    """Register feature routers under the API prefix and system routes at the root."""
    app.include_router(notifications_router, prefix=app_settings.api_prefix)
    app.include_router(system_router)
    logger.info(
        "Routers registered",
        extra={"api_prefix": app_settings.api_prefix, "operation": "app.setup_routers"},
    )
