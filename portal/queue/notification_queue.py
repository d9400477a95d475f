"""
Notification outbox queue on a Redis Stream.

Rows are written to the `notifications` table first (same transaction as the
change that triggered them); only their IDs travel through the stream.
Consumers read through a consumer group, so a message stays in the PEL until
it is acknowledged and is redelivered to the same consumer after a restart.
"""

import asyncio
from typing import Optional, Dict, Any, Iterable
from datetime import datetime, timezone
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError
from portal.config import settings
from portal.logging.logger import get_logger

logger = get_logger("notification_queue")


class NotificationQueue:
    MAX_STREAM_LENGTH = 10000
    MAX_RETRIES = 3

    def __init__(
        self,
        redis_client: redis.Redis,
        stream_name: Optional[str] = None,
        consumer_group: Optional[str] = None,
    ):
        if redis_client is None:
            raise ValueError("redis_client must be provided")
        self.redis = redis_client
        self.stream_name = stream_name or settings.NOTIFICATION_STREAM_NAME
        self.consumer_group = consumer_group or settings.NOTIFICATION_CONSUMER_GROUP

    async def initialize(self):
        """Create the stream and consumer group if they do not exist."""
        for attempt in range(self.MAX_RETRIES):
            try:
                await self.redis.xgroup_create(
                    name=self.stream_name,
                    groupname=self.consumer_group,
                    id="0",
                    mkstream=True,
                )
                logger.info(f"Created consumer group {self.consumer_group} on {self.stream_name}")
                return
            except ResponseError as e:
                if "BUSYGROUP" in str(e):
                    logger.debug(f"Consumer group {self.consumer_group} already exists")
                    return
                if attempt == self.MAX_RETRIES - 1:
                    raise
            except RedisConnectionError as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(f"Failed to connect to Redis after {self.MAX_RETRIES} attempts: {e}")
                    raise
                logger.warning(f"Redis connection error (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}")
            await asyncio.sleep(0.5 * (attempt + 1))

    async def enqueue(self, notification_id: int, template: str) -> bool:
        """Producer: push a saved notification's ID. Returns False instead of raising."""
        message = {
            "notification_id": str(notification_id),
            "template": template,
            "enqueued_at": datetime.now(timezone.utc).isoformat(),
        }
        for attempt in range(self.MAX_RETRIES):
            try:
                message_id = await self.redis.xadd(
                    self.stream_name, message, maxlen=self.MAX_STREAM_LENGTH, approximate=True
                )
                logger.info(f"Notification {notification_id} enqueued | Template: {template} | Message ID: {message_id}")
                return True
            except RedisConnectionError as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(f"Failed to enqueue notification {notification_id}: {e}")
                    return False
                logger.warning(f"Redis connection error while enqueuing (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}")
                await asyncio.sleep(0.5 * (attempt + 1))
        return False

    async def enqueue_many(self, notifications: Iterable[Any]) -> int:
        sent = 0
        for notification in notifications:
            if await self.enqueue(notification.id, notification.template):
                sent += 1
        return sent

    async def dequeue(self, consumer_name: str, block_ms: int = 5000) -> Optional[Dict[str, Any]]:
        """
        Consumer: read one message. Own pending entries (PEL) come first so a
        restarted worker finishes what it had claimed before taking new work.
        """
        pending = await self.redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=consumer_name,
            streams={self.stream_name: "0"},
            count=1,
        )
        if pending and pending[0][1]:
            message_id, data = pending[0][1][0]
            return self._parse_message(message_id, data)

        fresh = await self.redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=consumer_name,
            streams={self.stream_name: ">"},
            count=1,
            block=block_ms,
        )
        if fresh and fresh[0][1]:
            message_id, data = fresh[0][1][0]
            return self._parse_message(message_id, data)
        return None

    def _parse_message(self, message_id, data: dict) -> Dict[str, Any]:
        def _s(value):
            return value.decode() if isinstance(value, bytes) else value

        decoded = {_s(k): _s(v) for k, v in data.items()}
        return {
            "message_id": _s(message_id),
            "notification_id": int(decoded["notification_id"]),
            "template": decoded.get("template"),
            "enqueued_at": decoded.get("enqueued_at"),
        }

    async def ack(self, message_id: str) -> bool:
        try:
            await self.redis.xack(self.stream_name, self.consumer_group, message_id)
            return True
        except RedisConnectionError as e:
            logger.error(f"Failed to ack message {message_id}: {e}")
            return False
