from datetime import datetime, timezone
from typing import Optional, List, Tuple
from portal.logging.logger import get_logger
from portal.exceptions.handler import BusinessException, NotFoundException, PermissionDeniedException
from portal.security import CurrentUser
from portal.repository.unit_of_work import UnitOfWork
from apps.identity.models import UserPublic, UserBasic
from apps.identity.repository import UserRepository
from apps.connections import policy
from apps.connections.models import Connection, AccessLevel, FullAccessStatus
from apps.connections.service import ConnectionService, user_summary
from apps.consultations.models import ConsultationStatus
from apps.consultations.repository import ConsultationRepository
from apps.notifications.service import NotificationService

logger = get_logger("provider_service")


def connection_info(connection: Connection) -> dict:
    return {
        "id": connection.id,
        "access_level": connection.access_level,
        "full_access_status": connection.full_access_status,
        "full_access_status_updated_at": connection.full_access_status_updated_at,
        "initiated_at": connection.initiated_at,
        "last_accessed_at": connection.last_accessed_at,
        "has_full_access": policy.has_full_access(connection),
        "can_request_full_access": connection.can_request_full_access,
    }


class ProviderService:
    """Provider workspace: dashboard and the provider's patient list."""

    def __init__(self, uow: UnitOfWork, current_user: CurrentUser, notifications: Optional[NotificationService] = None):
        self.uow = uow
        self.current_user = current_user
        self.notifications = notifications or NotificationService(uow)
        self.connections = ConnectionService(uow, current_user, self.notifications)

    @property
    def consultations(self) -> ConsultationRepository:
        return self.uow.get_repository(ConsultationRepository)

    async def dashboard(self) -> dict:
        own = policy.VisibilityScope(provider_id=self.current_user.id)
        connections = await self.connections.list_connections()
        recent = await self.consultations.recent(own, limit=5)
        patients = await self.uow.get_repository(UserRepository).get_many([c.patient_id for c in recent])
        names = {p.id: p.full_name for p in patients}
        return {
            "patient_count": len(connections),
            "consultation_count": await self.consultations.count_since(own),
            "pending_requests": sum(1 for c in connections if c.full_access_status == FullAccessStatus.PENDING),
            "recent_consultations": [
                {
                    "id": c.id,
                    "date": c.date,
                    "title": c.title,
                    "patient_id": c.patient_id,
                    "patient_name": names.get(c.patient_id),
                    "reason_for_visit": c.reason_for_visit,
                    "status": c.status,
                }
                for c in recent
            ],
        }

    async def list_patients(self) -> List[dict]:
        connections = await self.connections.list_connections()
        users = await self.uow.get_repository(UserRepository).get_many([c.patient_id for c in connections])
        by_id = {u.id: u for u in users}
        return [
            {**user_summary(by_id.get(c.patient_id)), "connection": connection_info(c)}
            for c in connections
            if c.patient_id in by_id
        ]

    async def add_patient(
        self, email: str, notes: Optional[str] = None, full_access_requested: bool = False
    ) -> Tuple[Connection, bool]:
        """
        Connect to a patient by email. Returns (connection, created).
        An existing limited connection without a live request is returned as is
        so the provider can go on to request full access.
        """
        patient = await self.connections.get_patient_by_email(email)
        existing = await self.connections.find(patient.id, self.current_user.id)
        if existing:
            if (
                existing.access_level == AccessLevel.LIMITED
                and existing.full_access_status in (FullAccessStatus.NONE, FullAccessStatus.DENIED)
            ):
                return existing, False
            raise BusinessException("Patient already connected")

        connection = await self.connections.add_connection(
            patient, self.current_user.id, notes=notes, full_access_requested=full_access_requested
        )
        await self.connections.commit()
        logger.info(f"Provider {self.current_user.id} connected to patient {patient.id}")
        return connection, True

    async def patient_detail(self, patient_id: int) -> dict:
        """Full profile with approved full access, otherwise basic details only."""
        connection = await self.connections.find(patient_id, self.current_user.id)
        if connection is None:
            raise PermissionDeniedException("No connection to this patient")
        patient = await self.uow.get_repository(UserRepository).get_by_id(patient_id)
        if patient is None:
            raise NotFoundException("Patient not found")

        full = policy.has_full_access(connection)
        await self.connections.touch(connection)
        await self.uow.commit()
        profile = UserPublic.model_validate(patient) if full else UserBasic.model_validate(patient)
        return {"patient": profile, "connection": connection_info(connection), "full_access": full}
