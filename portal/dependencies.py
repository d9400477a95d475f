"""
Request-scoped dependencies shared by all app routers:
session -> UnitOfWork -> (queue) -> services.
"""

from typing import Optional
from fastapi import Depends
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlmodel.ext.asyncio.session import AsyncSession
from portal.database.manager import DatabaseManager
from portal.repository.unit_of_work import UnitOfWork
from portal.queue.notification_queue import NotificationQueue
from portal.logging.logger import get_logger

logger = get_logger("dependencies")


async def get_db():
    """Get database session."""
    manager = DatabaseManager.get_instance()
    async for session in manager.mysql.get_session():
        yield session


def get_uow(db: AsyncSession = Depends(get_db)) -> UnitOfWork:
    """Dependency: create UnitOfWork."""
    return UnitOfWork(session=db)


async def get_notification_queue() -> Optional[NotificationQueue]:
    """
    Dependency: notification queue, or None when Redis is unreachable.
    Notification rows are stored regardless; the worker picks up anything
    left pending when it starts.
    """
    manager = DatabaseManager.get_instance()
    try:
        await manager.redis.connect()
        queue = NotificationQueue(manager.redis.get_client())
        await queue.initialize()
        return queue
    except RedisConnectionError as e:
        logger.warning(f"Notification queue unavailable: {e}")
        return None
