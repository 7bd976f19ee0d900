"""Database dependency for FastAPI route handlers.

Route handlers take a request-scoped session through ``Depends(get_db_session)``;
workers and scripts use ``get_async_session()`` from ``infra.database`` directly.
Both draw from the same session factory.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """Yield a session that is closed when the request completes."""
    async with get_async_session() as session:
        yield session
