from typing import Optional, List
from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError
from portal.config import settings
from portal.logging.logger import get_logger
from portal.repository.unit_of_work import UnitOfWork
from portal.queue.notification_queue import NotificationQueue
from .models import Notification
from .repository import NotificationRepository
from .templates import render

logger = get_logger("notification_service")


def frontend_url(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"


class NotificationService:
    """
    Outbox writer. queue_email() adds a row to the caller's transaction;
    dispatch() pushes the saved rows to the stream once the caller has committed.
    """

    def __init__(self, uow: UnitOfWork, queue: Optional[NotificationQueue] = None):
        self.uow = uow
        self.queue = queue
        self._outbox: List[Notification] = []

    async def queue_email(self, template: str, to: str, user_id: Optional[int] = None, **data) -> Notification:
        subject, body = render(template, **data)
        notification = Notification(
            recipient=to,
            subject=subject,
            body=body,
            template=template,
            template_data=jsonable_encoder(data),
            user_id=user_id,
            max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
        )
        repo = self.uow.get_repository(NotificationRepository)
        await repo.create(notification)
        self._outbox.append(notification)
        return notification

    async def dispatch(self) -> int:
        """Enqueue committed notifications. Never raises; undelivered rows stay pending."""
        items, self._outbox = self._outbox, []
        if not items:
            return 0
        if self.queue is None:
            logger.warning(f"Notification queue unavailable, {len(items)} notification(s) left pending")
            return 0
        try:
            return await self.queue.enqueue_many(items)
        except RedisError as e:
            logger.error(f"Failed to enqueue {len(items)} notification(s): {e}")
            return 0
