"""Application lifespan: startup and shutdown in dependency order."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from dispatch_service.core.settings import get_app_settings
from dispatch_service.infra.database import close_database, init_database
from dispatch_service.infra.logging import setup_logging, shutdown

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Startup: logging, database, taskiq broker client, sweep scheduler.
    Shutdown runs in reverse.
    """
    _ = app
    app_settings = get_app_settings()

    setup_logging()
    logger.info(
        "Starting application",
        extra={"service": app_settings.service_name, "environment": app_settings.environment},
    )

    await init_database()

    if app_settings.broker_enabled:
        from dispatch_service.infra.tasks.broker import start_taskiq

        await start_taskiq()

    if app_settings.scheduler_enabled:
        from dispatch_service.infra.tasks.scheduler import start_scheduler

        start_scheduler()

    try:
        yield
    finally:
        if app_settings.scheduler_enabled:
            from dispatch_service.infra.tasks.scheduler import stop_scheduler

            stop_scheduler()

        if app_settings.broker_enabled:
            from dispatch_service.infra.tasks.broker import stop_taskiq

            await stop_taskiq()

        await close_database()
        logger.info("Application shutdown complete")
        shutdown()
