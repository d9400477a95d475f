from datetime import datetime, timezone
from typing import Optional, List, Dict, Tuple
from sqlalchemy.exc import IntegrityError
from portal.logging.logger import get_logger
from portal.exceptions.handler import BusinessException, NotFoundException, PermissionDeniedException
from portal.security import CurrentUser
from portal.repository.unit_of_work import UnitOfWork
from apps.identity.models import User, UserRole
from apps.identity.repository import UserRepository
from apps.notifications.service import NotificationService, frontend_url
from .models import Connection, AccessLevel, FullAccessStatus
from .repository import ConnectionRepository

logger = get_logger("connection_service")


def display_name(user: Optional[User]) -> str:
    if user is None:
        return "Unknown"
    return " ".join(part for part in (user.title, user.first_name, user.last_name) if part)


def user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    summary = {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "title": user.title,
    }
    if user.role == UserRole.PROVIDER:
        summary.update(specialty=user.specialty, practice_name=user.practice_name, is_verified=user.is_verified)
    return summary


def serialize_connection(connection: Connection, users: Dict[int, User]) -> dict:
    data = connection.model_dump()
    data["patient"] = user_summary(users.get(connection.patient_id))
    data["provider"] = user_summary(users.get(connection.provider_id))
    return data


class ConnectionService:
    """Patient/provider connections and their full-access workflow."""

    def __init__(self, uow: UnitOfWork, current_user: CurrentUser, notifications: Optional[NotificationService] = None):
        self.uow = uow
        self.current_user = current_user
        self.notifications = notifications or NotificationService(uow)

    @property
    def repo(self) -> ConnectionRepository:
        return self.uow.get_repository(ConnectionRepository)

    @property
    def users(self) -> UserRepository:
        return self.uow.get_repository(UserRepository)

    async def _users_for(self, connections: List[Connection]) -> Dict[int, User]:
        ids = {c.patient_id for c in connections} | {c.provider_id for c in connections}
        return {user.id: user for user in await self.users.get_many(list(ids))}

    async def serialize(self, connections: List[Connection]) -> List[dict]:
        users = await self._users_for(connections)
        return [serialize_connection(c, users) for c in connections]

    async def commit(self):
        """Commit, mapping a unique-pair race to the same error as the explicit check."""
        try:
            await self.uow.commit()
        except IntegrityError:
            await self.uow.rollback()
            raise BusinessException("Connection already exists")
        await self.notifications.dispatch()

    # --- lookups ---

    async def find(self, patient_id: int, provider_id: int) -> Optional[Connection]:
        return await self.repo.get_by_pair(patient_id, provider_id)

    async def list_connections(
        self,
        access_level: Optional[AccessLevel] = None,
        full_access_status: Optional[FullAccessStatus] = None,
    ) -> List[Connection]:
        user = self.current_user
        if user.is_patient:
            scope = {"patient_id": user.id}
        elif user.is_provider:
            scope = {"provider_id": user.id}
        elif user.is_admin:
            scope = {}
        else:
            raise PermissionDeniedException()
        return await self.repo.list_connections(
            access_level=access_level, full_access_status=full_access_status, **scope
        )

    async def get_connection(self, connection_id: int) -> Connection:
        connection = await self.repo.get_by_id(connection_id)
        if connection is None:
            raise NotFoundException("Connection not found")
        user = self.current_user
        if not user.is_admin and user.id not in (connection.patient_id, connection.provider_id):
            raise PermissionDeniedException("Not authorized to view this connection")
        return connection

    async def _own_as_patient(self, connection_id: int) -> Connection:
        connection = await self.repo.get_by_id(connection_id)
        if connection is None or connection.patient_id != self.current_user.id:
            raise NotFoundException("Connection not found")
        return connection

    async def _own_as_provider(self, connection_id: int) -> Connection:
        connection = await self.repo.get_by_id(connection_id)
        if connection is None or connection.provider_id != self.current_user.id:
            raise NotFoundException("Connection not found")
        return connection

    async def get_patient_by_email(self, email: str) -> User:
        patient = await self.users.get_by_email(email)
        if patient is None or patient.role != UserRole.PATIENT:
            raise NotFoundException("Patient not found")
        return patient

    # --- creation ---

    async def add_connection(
        self,
        patient: User,
        provider_id: int,
        notes: Optional[str] = None,
        full_access_requested: bool = False,
        notify: bool = True,
    ) -> Connection:
        """
        Stage a new limited connection in the current transaction (caller commits).
        The patient is told either about the new connection or the access request.
        """
        connection = Connection(
            patient_id=patient.id,
            provider_id=provider_id,
            initiated_by=self.current_user.id,
            notes=notes,
        )
        if full_access_requested:
            connection.request_full_access()
        await self.repo.create(connection)

        if notify:
            provider = await self.users.get_by_id(provider_id)
            await self.notifications.queue_email(
                "full_access_request" if full_access_requested else "new_connection",
                to=patient.email,
                user_id=patient.id,
                patient_name=patient.first_name,
                provider_name=display_name(provider),
                connections_url=frontend_url("patient/connections"),
            )
            connection.mark_patient_notified()
        return connection

    async def get_or_create(self, patient: User, provider_id: int) -> Tuple[Connection, bool]:
        """Existing connection for the pair, or a new limited one staged for commit."""
        existing = await self.find(patient.id, provider_id)
        if existing:
            return existing, False
        return await self.add_connection(patient, provider_id), True

    async def create_connection(
        self, patient_email: str, notes: Optional[str] = None, full_access_requested: bool = False
    ) -> Connection:
        patient = await self.get_patient_by_email(patient_email)
        if await self.find(patient.id, self.current_user.id):
            raise BusinessException("Connection already exists")

        connection = await self.add_connection(
            patient, self.current_user.id, notes=notes, full_access_requested=full_access_requested
        )
        await self.commit()
        logger.info(f"Connection {connection.id} created by provider {self.current_user.id}")
        return connection

    # --- provider side ---

    async def request_full_access(self, connection_id: int) -> Connection:
        connection = await self._own_as_provider(connection_id)
        if connection.access_level == AccessLevel.FULL:
            raise BusinessException("You already have full access to this patient")
        if connection.full_access_status == FullAccessStatus.PENDING:
            raise BusinessException("Full access request already pending")

        connection.request_full_access()
        await self.repo.update(connection)
        patient = await self.users.get_by_id(connection.patient_id)
        provider = await self.users.get_by_id(connection.provider_id)
        await self.notifications.queue_email(
            "full_access_request",
            to=patient.email,
            user_id=patient.id,
            patient_name=patient.first_name,
            provider_name=display_name(provider),
            connections_url=frontend_url("patient/connections"),
        )
        connection.mark_patient_notified()
        await self.commit()
        logger.info(f"Full access requested on connection {connection.id}")
        return connection

    # --- patient side ---

    async def pending_requests(self) -> List[Connection]:
        return await self.repo.list_connections(
            patient_id=self.current_user.id, full_access_status=FullAccessStatus.PENDING
        )

    async def _notify_provider(self, template: str, connection: Connection):
        provider = await self.users.get_by_id(connection.provider_id)
        patient = await self.users.get_by_id(connection.patient_id)
        await self.notifications.queue_email(
            template,
            to=provider.email,
            user_id=provider.id,
            provider_name=display_name(provider),
            patient_name=display_name(patient),
        )

    async def respond(self, connection_id: int, approve: bool) -> Connection:
        connection = await self.repo.get_by_id(connection_id)
        if (
            connection is None
            or connection.patient_id != self.current_user.id
            or connection.full_access_status != FullAccessStatus.PENDING
        ):
            raise NotFoundException("Pending request not found")

        if approve:
            connection.approve_full_access()
        else:
            connection.deny_full_access()
        await self.repo.update(connection)
        await self._notify_provider("full_access_approved" if approve else "full_access_denied", connection)
        await self.commit()
        logger.info(f"Connection {connection.id} full access {'approved' if approve else 'denied'}")
        return connection

    async def revoke(self, connection_id: int) -> Optional[Connection]:
        """
        Full access -> back to limited. A limited connection with nothing
        pending is removed entirely. Returns None when the row was deleted.
        """
        connection = await self._own_as_patient(connection_id)
        removable = (
            connection.access_level == AccessLevel.LIMITED
            and connection.full_access_status in (FullAccessStatus.NONE, FullAccessStatus.DENIED)
        )
        if removable:
            await self._notify_provider("connection_removed", connection)
            await self.repo.remove(connection)
            await self.commit()
            logger.info(f"Connection {connection_id} removed by patient")
            return None

        connection.revoke_access()
        await self.repo.update(connection)
        await self._notify_provider("access_revoked", connection)
        await self.commit()
        logger.info(f"Connection {connection.id} access revoked")
        return connection

    async def grant(self, connection_id: int) -> Connection:
        connection = await self._own_as_patient(connection_id)
        if connection.access_level == AccessLevel.FULL:
            raise BusinessException("Provider already has full access")
        connection.approve_full_access()
        await self.repo.update(connection)
        await self._notify_provider("full_access_granted", connection)
        await self.commit()
        logger.info(f"Connection {connection.id} full access granted")
        return connection

    async def delete_connection(self, connection_id: int) -> None:
        connection = await self.repo.get_by_id(connection_id)
        if connection is None:
            raise NotFoundException("Connection not found")
        if self.current_user.id not in (connection.patient_id, connection.provider_id):
            raise PermissionDeniedException("Not authorized to delete this connection")
        if self.current_user.id == connection.patient_id:
            await self._notify_provider("connection_removed", connection)
        await self.repo.remove(connection)
        await self.commit()
        logger.info(f"Connection {connection_id} deleted by user {self.current_user.id}")

    async def touch(self, connection: Connection) -> None:
        connection.last_accessed_at = datetime.now(timezone.utc)
        await self.repo.update(connection)
