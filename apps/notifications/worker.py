"""Notification worker: consume notification IDs from the stream and send the emails."""

import asyncio
import signal
import sys
import uuid
from datetime import datetime, timezone
from typing import Optional
from portal.logging.logger import LogConfig, get_logger
from portal.database.manager import DatabaseManager
from portal.repository.unit_of_work import UnitOfWork
from portal.queue.notification_queue import NotificationQueue
from portal.notification.notifier import send_email
from .models import NotificationStatus
from .repository import NotificationRepository

logger = get_logger("notification_worker")


class NotificationWorker:
    """Consume notification messages from Redis Stream, deliver and record the outcome."""

    def __init__(self, consumer_name: str = "worker-1", poll_interval: int = 1):
        self.consumer_name = consumer_name
        self.poll_interval = poll_interval
        self.running = False
        self.queue: Optional[NotificationQueue] = None
        self.db_manager: Optional[DatabaseManager] = None

    async def initialize(self):
        """Initialize worker (DB and Redis)."""
        try:
            self.db_manager = DatabaseManager.get_instance()
            await self.db_manager.redis.connect()
            self.queue = NotificationQueue(self.db_manager.redis.get_client())
            await self.queue.initialize()
            await self._recover_pending()
            logger.info(f"Worker {self.consumer_name} initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize worker: {str(e)}")
            raise

    async def _recover_pending(self):
        """Re-enqueue rows still pending in the DB (request-time enqueue may have failed)."""
        async for session in self.db_manager.mysql.get_session():
            repo = NotificationRepository(session)
            pending = await repo.get_pending(limit=1000)
            if pending:
                recovered = await self.queue.enqueue_many(pending)
                logger.info(f"Recovery completed: {recovered} of {len(pending)} pending notifications enqueued")
            else:
                logger.info("No pending notifications found in database")
            break

    async def deliver(self, uow: UnitOfWork, notification_id: int) -> Optional[NotificationStatus]:
        """
        Send one notification and persist the outcome.
        Returns the new status, or None when the row is missing or already handled.
        """
        repo = uow.get_repository(NotificationRepository)
        notification = await repo.get_by_id(notification_id)
        if notification is None or notification.status != NotificationStatus.PENDING:
            return None

        delivered = await send_email(notification.recipient, notification.subject, notification.body)
        if delivered:
            now = datetime.now(timezone.utc)
            notification.attempts += 1
            notification.last_attempt_at = now
            notification.status = NotificationStatus.SENT
            notification.sent_at = now
            notification.error = None
            await repo.update(notification)
            await uow.commit()
            return notification.status
        return await self.record_failure(uow, notification_id, "Delivery failed")

    async def record_failure(self, uow: UnitOfWork, notification_id: int, error: str) -> Optional[NotificationStatus]:
        """Count a failed attempt; the row turns failed once its attempts are used up."""
        repo = uow.get_repository(NotificationRepository)
        notification = await repo.get_by_id(notification_id)
        if notification is None or notification.status != NotificationStatus.PENDING:
            return None
        notification.attempts += 1
        notification.last_attempt_at = datetime.now(timezone.utc)
        notification.error = f"{error} (attempt {notification.attempts}/{notification.max_attempts})"
        if not notification.can_retry:
            notification.status = NotificationStatus.FAILED
        await repo.update(notification)
        await uow.commit()
        return notification.status

    async def process_message(self, message: dict) -> bool:
        """Process one stream message. Returns True when the email went out."""
        notification_id = message["notification_id"]
        message_id = message["message_id"]
        logger.info(f"Processing notification {notification_id} | Message ID: {message_id}")

        async for session in self.db_manager.mysql.get_session():
            uow = UnitOfWork(session=session)
            try:
                status = await self.deliver(uow, notification_id)
            except Exception as e:
                logger.opt(exception=True).error(f"Delivery of notification {notification_id} raised: {str(e)}")
                await uow.rollback()
                status = await self.record_failure(uow, notification_id, f"Delivery error: {str(e)}")
            finally:
                await self.queue.ack(message_id)
            if status == NotificationStatus.PENDING:
                await self.queue.enqueue(notification_id, message.get("template") or "")
                logger.warning(f"Notification {notification_id} re-queued for retry")
            elif status == NotificationStatus.FAILED:
                logger.error(f"Notification {notification_id} failed permanently")
            return status == NotificationStatus.SENT
        return False

    async def run_once(self):
        """Consume one message."""
        try:
            message = await self.queue.dequeue(
                consumer_name=self.consumer_name,
                block_ms=self.poll_interval * 1000,
            )
            if message:
                await self.process_message(message)
            else:
                await asyncio.sleep(self.poll_interval)
        except Exception as e:
            logger.opt(exception=True).error(f"Error in worker loop: {str(e)}")
            await asyncio.sleep(self.poll_interval)

    async def run(self):
        """Run worker main loop."""
        self.running = True
        logger.info(f"Worker {self.consumer_name} started")
        while self.running:
            await self.run_once()
        logger.info(f"Worker {self.consumer_name} stopped")

    async def shutdown(self):
        self.running = False
        if self.db_manager:
            await self.db_manager.close()
        logger.info(f"Worker {self.consumer_name} shutdown complete")


async def main():
    """Worker main entry: python -m apps.notifications.worker"""
    import argparse

    parser = argparse.ArgumentParser(description="Notification Worker")
    parser.add_argument(
        "--consumer-name",
        type=str,
        default=f"worker-{uuid.uuid4().hex[:8]}",
        help="Consumer name for this worker instance",
    )
    parser.add_argument("--poll-interval", type=int, default=1, help="Poll interval in seconds")
    args = parser.parse_args()

    LogConfig.setup_worker_logging(args.consumer_name)
    worker = NotificationWorker(consumer_name=args.consumer_name, poll_interval=args.poll_interval)

    def signal_handler(sig, frame):
        logger.info("Received signal, initiating shutdown...")
        worker.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await worker.initialize()
        await worker.run()
    except Exception as e:
        logger.opt(exception=True).error(f"Worker failed: {str(e)}")
        sys.exit(1)
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
