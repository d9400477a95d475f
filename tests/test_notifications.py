"""Notification outbox, stream queue and worker test cases."""
import pytest
from redis.exceptions import ResponseError, ConnectionError as RedisConnectionError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.queue.notification_queue import NotificationQueue
from portal.repository.unit_of_work import UnitOfWork
from apps.notifications import worker as worker_module
from apps.notifications.models import Notification, NotificationStatus
from apps.notifications.service import NotificationService, frontend_url
from apps.notifications.templates import TEMPLATES, render
from apps.notifications.worker import NotificationWorker
from tests.conftest import FakeNotificationQueue


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the stream queue."""

    def __init__(self, pending=None, fresh=None, group_error=None, xadd_error=None):
        self.added = []
        self.acked = []
        self.reads = []
        self.pending = pending or []
        self.fresh = fresh or []
        self.group_error = group_error
        self.xadd_error = xadd_error

    async def xgroup_create(self, name, groupname, id="0", mkstream=False):
        if self.group_error:
            raise self.group_error

    async def xadd(self, name, fields, maxlen=None, approximate=True):
        if self.xadd_error:
            raise self.xadd_error
        self.added.append((name, fields, maxlen))
        return f"{len(self.added)}-0"

    async def xreadgroup(self, groupname, consumername, streams, count=None, block=None):
        cursor = list(streams.values())[0]
        self.reads.append(cursor)
        messages = self.pending if cursor == "0" else self.fresh
        return [[b"notifications:queue", messages]] if messages else []

    async def xack(self, name, groupname, *ids):
        self.acked.extend(ids)
        return len(ids)


async def queue_one(session: AsyncSession, queue=None, template="provider_verified") -> Notification:
    service = NotificationService(UnitOfWork(session=session), queue)
    notification = await service.queue_email(template, to="house@example.com", user_id=None, provider_name="Dr. House")
    await session.commit()
    return notification


def worker_on(session: AsyncSession, client: FakeRedis) -> NotificationWorker:
    """A worker reading from the given session and fake stream."""
    class SessionSource:
        async def get_session(self):
            yield session

    class Manager:
        mysql = SessionSource()

    worker = NotificationWorker()
    worker.db_manager = Manager()
    worker.queue = NotificationQueue(client)
    return worker



class TestTemplates:

    def test_render_fills_fields(self):
        subject, body = render(
            "new_consultation",
            patient_name="Jane",
            provider_name="Dr. Gregory House",
            consultation_date="2026-03-10",
            consultation_url="http://localhost:3000/patient/consultations/1",
        )
        assert subject == "New Medical Consultation"
        assert "Dr. Gregory House" in body
        assert "2026-03-10" in body

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            render("birthday_card")

    def test_missing_field(self):
        with pytest.raises(KeyError):
            render("verify_email", first_name="Jane")

    def test_every_template_has_subject(self):
        assert all(subject for subject, _ in TEMPLATES.values())

    def test_frontend_url(self):
        assert frontend_url("/patient/connections").endswith("/patient/connections")
        assert "//patient" not in frontend_url("/patient/connections")


class TestNotificationService:

    @pytest.mark.asyncio
    async def test_queue_and_dispatch(self, async_session: AsyncSession):
        queue = FakeNotificationQueue()
        service = NotificationService(UnitOfWork(session=async_session), queue)
        notification = await service.queue_email("provider_verified", to="house@example.com", provider_name="Dr. House")
        await async_session.commit()

        assert notification.status == NotificationStatus.PENDING
        assert notification.template_data == {"provider_name": "Dr. House"}
        assert await service.dispatch() == 1
        assert queue.enqueued == [notification.id]
        # outbox is drained
        assert await service.dispatch() == 0

    @pytest.mark.asyncio
    async def test_dispatch_without_queue_keeps_row_pending(self, async_session: AsyncSession):
        service = NotificationService(UnitOfWork(session=async_session))
        await service.queue_email("provider_verified", to="house@example.com", provider_name="Dr. House")
        await async_session.commit()

        assert await service.dispatch() == 0
        rows = (await async_session.exec(select(Notification))).all()
        assert [r.status for r in rows] == [NotificationStatus.PENDING]

    @pytest.mark.asyncio
    async def test_dispatch_swallows_redis_errors(self, async_session: AsyncSession):
        class BrokenQueue:
            async def enqueue_many(self, notifications):
                raise RedisConnectionError("down")

        service = NotificationService(UnitOfWork(session=async_session), BrokenQueue())
        await service.queue_email("provider_verified", to="house@example.com", provider_name="Dr. House")
        await async_session.commit()
        assert await service.dispatch() == 0


class TestNotificationQueue:

    @pytest.mark.asyncio
    async def test_enqueue(self):
        client = FakeRedis()
        queue = NotificationQueue(client, stream_name="s", consumer_group="g")
        assert await queue.enqueue(7, "verify_email") is True

        name, fields, maxlen = client.added[0]
        assert name == "s"
        assert fields["notification_id"] == "7"
        assert fields["template"] == "verify_email"
        assert maxlen == NotificationQueue.MAX_STREAM_LENGTH

    @pytest.mark.asyncio
    async def test_initialize_tolerates_existing_group(self):
        queue = NotificationQueue(FakeRedis(group_error=ResponseError("BUSYGROUP Consumer Group name already exists")))
        await queue.initialize()

    @pytest.mark.asyncio
    async def test_initialize_raises_other_errors(self):
        queue = NotificationQueue(FakeRedis(group_error=ResponseError("WRONGTYPE")))
        queue.MAX_RETRIES = 1
        with pytest.raises(ResponseError):
            await queue.initialize()

    @pytest.mark.asyncio
    async def test_enqueue_reports_connection_failure(self):
        queue = NotificationQueue(FakeRedis(xadd_error=RedisConnectionError("down")))
        queue.MAX_RETRIES = 1
        assert await queue.enqueue(1, "verify_email") is False

    @pytest.mark.asyncio
    async def test_dequeue_reads_pending_first(self):
        client = FakeRedis(pending=[(b"1-0", {b"notification_id": b"3", b"template": b"verify_email"})])
        queue = NotificationQueue(client)
        message = await queue.dequeue("worker-1", block_ms=1)

        assert message["message_id"] == "1-0"
        assert message["notification_id"] == 3
        assert message["template"] == "verify_email"
        assert client.reads == ["0"]

    @pytest.mark.asyncio
    async def test_dequeue_fresh_and_empty(self):
        client = FakeRedis(fresh=[("2-0", {"notification_id": "4"})])
        queue = NotificationQueue(client)
        assert (await queue.dequeue("worker-1", block_ms=1))["notification_id"] == 4
        assert client.reads == ["0", ">"]

        assert await NotificationQueue(FakeRedis()).dequeue("worker-1", block_ms=1) is None

    def test_requires_client(self):
        with pytest.raises(ValueError):
            NotificationQueue(None)


class TestWorkerDelivery:

    @pytest.mark.asyncio
    async def test_deliver_marks_sent(self, async_session: AsyncSession):
        notification = await queue_one(async_session)
        status = await NotificationWorker().deliver(UnitOfWork(session=async_session), notification.id)

        assert status == NotificationStatus.SENT
        assert notification.attempts == 1
        assert notification.sent_at is not None

    @pytest.mark.asyncio
    async def test_deliver_skips_handled_and_missing(self, async_session: AsyncSession):
        notification = await queue_one(async_session)
        worker = NotificationWorker()
        await worker.deliver(UnitOfWork(session=async_session), notification.id)

        assert await worker.deliver(UnitOfWork(session=async_session), notification.id) is None
        assert await worker.deliver(UnitOfWork(session=async_session), 999999) is None
        assert notification.attempts == 1

    @pytest.mark.asyncio
    async def test_retry_then_fail(self, async_session: AsyncSession, monkeypatch):
        async def failing_send(to, subject, body):
            return False

        monkeypatch.setattr(worker_module, "send_email", failing_send)
        notification = await queue_one(async_session)
        worker = NotificationWorker()
        uow = UnitOfWork(session=async_session)

        statuses = [await worker.deliver(uow, notification.id) for _ in range(notification.max_attempts)]

        assert statuses[:-1] == [NotificationStatus.PENDING] * (notification.max_attempts - 1)
        assert statuses[-1] == NotificationStatus.FAILED
        assert notification.attempts == notification.max_attempts
        assert "attempt 3/3" in notification.error

    @pytest.mark.asyncio
    async def test_process_message_acks_and_requeues(self, async_session: AsyncSession, monkeypatch):
        async def failing_send(to, subject, body):
            return False

        monkeypatch.setattr(worker_module, "send_email", failing_send)
        notification = await queue_one(async_session)
        client = FakeRedis()
        worker = worker_on(async_session, client)

        sent = await worker.process_message({
            "message_id": "5-0", "notification_id": notification.id, "template": "provider_verified",
        })

        assert sent is False
        assert client.acked == ["5-0"]
        assert client.added[0][1]["notification_id"] == str(notification.id)

    @pytest.mark.asyncio
    async def test_send_error_is_acked_and_counted(self, async_session: AsyncSession, monkeypatch):
        async def broken_send(to, subject, body):
            raise RuntimeError("smtp exploded")

        monkeypatch.setattr(worker_module, "send_email", broken_send)
        notification = await queue_one(async_session)
        client = FakeRedis()
        worker = worker_on(async_session, client)

        sent = await worker.process_message({
            "message_id": "7-0", "notification_id": notification.id, "template": "provider_verified",
        })

        assert sent is False
        assert client.acked == ["7-0"]
        await async_session.refresh(notification)
        assert notification.status == NotificationStatus.PENDING
        assert notification.attempts == 1
        assert "smtp exploded" in notification.error
        assert client.added[0][1]["notification_id"] == str(notification.id)

    @pytest.mark.asyncio
    async def test_send_error_on_last_attempt_fails_row(self, async_session: AsyncSession, monkeypatch):
        async def broken_send(to, subject, body):
            raise RuntimeError("smtp exploded")

        monkeypatch.setattr(worker_module, "send_email", broken_send)
        notification = await queue_one(async_session)
        notification.attempts = notification.max_attempts - 1
        await async_session.commit()
        client = FakeRedis()
        worker = worker_on(async_session, client)

        await worker.process_message({
            "message_id": "8-0", "notification_id": notification.id, "template": "provider_verified",
        })

        await async_session.refresh(notification)
        assert notification.status == NotificationStatus.FAILED
        assert notification.attempts == notification.max_attempts
        assert client.acked == ["8-0"]
        assert client.added == []
