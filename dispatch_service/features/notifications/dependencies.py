"""FastAPI dependencies for the notifications feature.

Example usage:
    from dispatch_service.features.notifications.dependencies import NotificationServiceDep

    @router.get("/stats")
    async def stats(service: NotificationServiceDep) -> NotificationStats:
        return await service.get_stats()
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_service.core.dependencies import get_db_session
from dispatch_service.features.notifications.service import (
    NotificationService,
    get_notification_service,
)

# Database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


def get_service(session: SessionDep) -> NotificationService:
    """Request-scoped service bound to the request's session."""
    return get_notification_service(session)


NotificationServiceDep = Annotated[NotificationService, Depends(get_service)]
