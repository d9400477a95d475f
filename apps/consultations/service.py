from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple
from portal.logging.logger import get_logger
from portal.exceptions.handler import BusinessException, NotFoundException, PermissionDeniedException
from portal.security import CurrentUser
from portal.repository.unit_of_work import UnitOfWork
from apps.identity.models import User, UserRole
from apps.identity.repository import UserRepository
from apps.connections import policy
from apps.connections.repository import ConnectionRepository
from apps.connections.service import ConnectionService, display_name
from apps.notifications.service import NotificationService, frontend_url
from apps.records.models import MedicalRecord, RecordType
from apps.records.repository import MedicalRecordRepository
from apps.records.schemas import RecordBase, serialize_record
from apps.records.service import build_record, validate_payload
from .models import Consultation, ConsultationStatus
from .repository import ConsultationRepository
from .schemas import ConsultationCreate, ConsultationUpdate, NESTED_RECORD_FIELDS

logger = get_logger("consultation_service")

GENERAL_FIELDS = ("date", "specialist_name", "specialty", "practice", "reason_for_visit", "notes", "is_shared_with_patient")


def serialize_consultation(consultation: Consultation, records: Optional[List[MedicalRecord]] = None) -> dict:
    data = consultation.model_dump()
    data["title"] = consultation.title
    if records is not None:
        grouped: Dict[str, Any] = {"vitals": None}
        grouped.update({field: [] for field in NESTED_RECORD_FIELDS})
        by_type = {record_type: field for field, record_type in NESTED_RECORD_FIELDS.items()}
        for record in records:
            record_type = RecordType(record.record_type)
            if record_type == RecordType.VITALS:
                grouped["vitals"] = serialize_record(record)
            else:
                grouped[by_type[record_type]].append(serialize_record(record))
        data.update(grouped)
    return data


class ConsultationService:
    """Consultations and the typed records attached to them."""

    def __init__(self, uow: UnitOfWork, current_user: CurrentUser, notifications: Optional[NotificationService] = None):
        self.uow = uow
        self.current_user = current_user
        self.notifications = notifications or NotificationService(uow)

    @property
    def repo(self) -> ConsultationRepository:
        return self.uow.get_repository(ConsultationRepository)

    @property
    def records(self) -> MedicalRecordRepository:
        return self.uow.get_repository(MedicalRecordRepository)

    async def _connection_to(self, patient_id: Optional[int]):
        if patient_id is None or not self.current_user.is_provider:
            return None
        return await self.uow.get_repository(ConnectionRepository).get_by_pair(patient_id, self.current_user.id)

    # --- reads ---

    async def list_consultations(
        self,
        patient_id: Optional[int] = None,
        provider_id: Optional[int] = None,
        status: Optional[ConsultationStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Consultation], int]:
        connection = await self._connection_to(patient_id)
        scope = policy.resolve_scope(self.current_user, patient_id=patient_id, provider_id=provider_id, connection=connection)
        return await self.repo.search(
            scope, status=status, start_date=start_date, end_date=end_date, limit=limit, offset=(page - 1) * limit
        )

    async def _visible(self, consultation_id: int) -> Consultation:
        consultation = await self.repo.get_by_id(consultation_id)
        if consultation is None:
            raise NotFoundException("Consultation not found")
        connection = await self._connection_to(consultation.patient_id)
        if not policy.can_view(
            self.current_user,
            consultation.patient_id,
            consultation.provider_id,
            connection,
            released=consultation.is_completed,
        ):
            if self.current_user.is_patient and self.current_user.id == consultation.patient_id:
                raise PermissionDeniedException("Consultation not available for viewing")
            raise PermissionDeniedException("Not authorized to view this consultation")
        return consultation

    async def get_consultation(self, consultation_id: int) -> Tuple[Consultation, List[MedicalRecord]]:
        consultation = await self._visible(consultation_id)
        return consultation, await self.records.for_consultation(consultation.id)

    async def _authored(self, consultation_id: int) -> Consultation:
        consultation = await self.repo.get_by_id(consultation_id)
        if consultation is None:
            raise NotFoundException("Consultation not found")
        if not policy.can_modify(self.current_user, consultation.patient_id, consultation.provider_id):
            raise PermissionDeniedException("Only the authoring provider can modify this consultation")
        return consultation

    # --- writes ---

    async def _resolve_patient(self, patient_id: Optional[int], patient_email: Optional[str]) -> User:
        users = self.uow.get_repository(UserRepository)
        patient = await users.get_by_id(patient_id) if patient_id is not None else await users.get_by_email(patient_email)
        if patient is None or patient.role != UserRole.PATIENT:
            raise NotFoundException("Patient not found")
        return patient

    async def _add_records(self, consultation: Consultation, record_type: RecordType, payloads: List[RecordBase]):
        for payload in payloads:
            await self.records.create(build_record(
                record_type, payload, consultation.patient_id, consultation.provider_id, consultation=consultation
            ))

    async def _notify_patient(self, template: str, consultation: Consultation, patient: Optional[User] = None):
        users = self.uow.get_repository(UserRepository)
        patient = patient or await users.get_by_id(consultation.patient_id)
        provider = await users.get_by_id(consultation.provider_id)
        await self.notifications.queue_email(
            template,
            to=patient.email,
            user_id=patient.id,
            patient_name=patient.first_name,
            provider_name=display_name(provider),
            consultation_date=consultation.date.date().isoformat(),
            consultation_url=frontend_url(f"patient/consultations/{consultation.id}"),
        )

    async def create_consultation(self, data: ConsultationCreate) -> Tuple[Consultation, List[MedicalRecord]]:
        patient = await self._resolve_patient(data.patient_id, data.patient_email)

        connections = ConnectionService(self.uow, self.current_user, self.notifications)
        _, created = await connections.get_or_create(patient, self.current_user.id)
        if created:
            logger.info(f"Limited connection created for patient {patient.id} by provider {self.current_user.id}")

        consultation = Consultation(
            patient_id=patient.id,
            provider_id=self.current_user.id,
            status=ConsultationStatus(data.status),
            **data.model_dump(include={f for f in GENERAL_FIELDS if f != "date"}),
        )
        if data.date is not None:
            consultation.date = data.date
        await self.repo.create(consultation)
        await self.uow.flush()

        if data.vitals is not None:
            await self._add_records(consultation, RecordType.VITALS, [data.vitals])
        for field, record_type in NESTED_RECORD_FIELDS.items():
            await self._add_records(consultation, record_type, getattr(data, field))

        await self._notify_patient("new_consultation", consultation, patient)
        await self.uow.commit()
        await self.notifications.dispatch()
        logger.info(f"Consultation {consultation.id} created by provider {self.current_user.id}")
        return consultation, await self.records.for_consultation(consultation.id)

    async def _replace_records(self, consultation: Consultation, record_type: RecordType, payloads: List[RecordBase]):
        for record in await self.records.for_consultation(consultation.id, record_type):
            await self.records.remove(record)
        await self._add_records(consultation, record_type, payloads)

    async def _upsert_vitals(self, consultation: Consultation, payload: RecordBase):
        existing = await self.records.for_consultation(consultation.id, RecordType.VITALS)
        if not existing:
            await self._add_records(consultation, RecordType.VITALS, [payload])
            return
        record = existing[0]
        record.data = payload.payload()
        record.notes = payload.notes
        if payload.date is not None:
            record.date = payload.date
        record.updated_at = datetime.now(timezone.utc)
        await self.records.update(record)

    async def update_consultation(self, consultation_id: int, data: ConsultationUpdate) -> Tuple[Consultation, List[MedicalRecord]]:
        consultation = await self._authored(consultation_id)
        if consultation.status == ConsultationStatus.ARCHIVED:
            raise BusinessException("Archived consultations cannot be edited")
        was_completed = consultation.is_completed

        changes = data.model_dump(include=set(GENERAL_FIELDS), exclude_unset=True)
        for key, value in changes.items():
            setattr(consultation, key, value)
        if data.status is not None:
            consultation.status = ConsultationStatus(data.status)
        if consultation.is_completed and not (consultation.reason_for_visit or "").strip():
            raise BusinessException("reason_for_visit is required for a completed consultation")

        now = datetime.now(timezone.utc)
        consultation.last_updated = now
        consultation.updated_at = now
        await self.repo.update(consultation)

        if data.vitals is not None:
            await self._upsert_vitals(consultation, data.vitals)
        for field, record_type in NESTED_RECORD_FIELDS.items():
            payloads = getattr(data, field)
            if payloads is not None:
                await self._replace_records(consultation, record_type, payloads)

        if consultation.is_completed and not was_completed:
            await self._notify_patient("consultation_completed", consultation)
        await self.uow.commit()
        await self.notifications.dispatch()
        logger.info(f"Consultation {consultation.id} updated by provider {self.current_user.id}")
        return consultation, await self.records.for_consultation(consultation.id)

    async def archive_consultation(self, consultation_id: int) -> Consultation:
        """Soft delete."""
        consultation = await self._authored(consultation_id)
        now = datetime.now(timezone.utc)
        consultation.status = ConsultationStatus.ARCHIVED
        consultation.archived_at = now
        consultation.updated_at = now
        await self.repo.update(consultation)
        await self.uow.commit()
        logger.info(f"Consultation {consultation.id} archived by provider {self.current_user.id}")
        return consultation

    # --- nested records ---

    async def add_record(self, consultation_id: int, record_type: RecordType, raw: Dict[str, Any]) -> MedicalRecord:
        consultation = await self._authored(consultation_id)
        if consultation.status == ConsultationStatus.ARCHIVED:
            raise BusinessException("Archived consultations cannot be edited")
        payload = validate_payload(record_type, raw)
        record = build_record(record_type, payload, consultation.patient_id, consultation.provider_id, consultation=consultation)
        await self.records.create(record)
        consultation.last_updated = datetime.now(timezone.utc)
        await self.repo.update(consultation)
        await self.uow.commit()
        logger.info(f"Record {record.id} ({RecordType(record_type).value}) added to consultation {consultation.id}")
        return record

    async def list_records(self, consultation_id: int, record_type: RecordType) -> List[MedicalRecord]:
        consultation = await self._visible(consultation_id)
        return await self.records.for_consultation(consultation.id, record_type)

    # --- patient views ---

    def _own_scope(self) -> policy.VisibilityScope:
        return policy.resolve_scope(self.current_user, patient_id=self.current_user.id)

    async def patient_recent(self, limit: int = 5) -> List[Consultation]:
        return await self.repo.recent(self._own_scope(), limit=limit)

    async def patient_statistics(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        scope = self._own_scope()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        year_start = month_start.replace(month=1)
        return {
            "total": await self.repo.count_since(scope),
            "this_month": await self.repo.count_since(scope, month_start),
            "this_year": await self.repo.count_since(scope, year_start),
        }
