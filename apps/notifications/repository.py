"""Notification repository."""

from typing import List
from sqlmodel import select
from portal.repository.base import BaseRepository
from .models import Notification, NotificationStatus


class NotificationRepository(BaseRepository[Notification]):

    def __init__(self, session):
        super().__init__(session, Notification)

    async def get_pending(self, limit: int = 1000) -> List[Notification]:
        """Pending rows, oldest first (used by the worker to refill the stream)."""
        statement = (
            select(Notification)
            .where(Notification.status == NotificationStatus.PENDING)
            .order_by(Notification.created_at, Notification.id)
            .limit(limit)
        )
        result = await self.session.exec(statement)
        return list(result.all())
