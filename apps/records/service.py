from datetime import datetime, date, time, timezone
from typing import Optional, Dict, Any, List, Tuple
from pydantic import ValidationError
from portal.logging.logger import get_logger
from portal.exceptions.handler import BusinessException, NotFoundException, PermissionDeniedException
from portal.security import CurrentUser
from portal.repository.unit_of_work import UnitOfWork
from portal.types import as_utc
from apps.connections.repository import ConnectionRepository
from apps.connections import policy
from apps.consultations.models import Consultation
from apps.consultations.repository import ConsultationRepository
from .models import MedicalRecord, RecordType
from .repository import MedicalRecordRepository
from .schemas import RecordBase, VitalsPayload, PRIMARY_DATE_FIELD, parse_payload

logger = get_logger("record_service")

VITALS_DISPLAY_FIELDS = (
    "heart_rate", "body_temperature", "blood_glucose",
    "respiratory_rate", "blood_oxygen_saturation", "weight", "height",
)


def validate_payload(record_type: RecordType, raw: Dict[str, Any]) -> RecordBase:
    """parse_payload with validation errors mapped to a 422 business error."""
    try:
        return parse_payload(record_type, raw)
    except ValidationError as e:
        raise BusinessException(
            f"Invalid {RecordType(record_type).value} data",
            status_code=422,
            code=422,
            detail=e.errors(include_url=False, include_context=False),
        )


def _as_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return as_utc(datetime.fromisoformat(value))


def build_record(
    record_type: RecordType,
    payload: RecordBase,
    patient_id: int,
    provider_id: Optional[int],
    consultation: Optional[Consultation] = None,
    created_by_patient: bool = False,
) -> MedicalRecord:
    """New record row; the record date falls back to the type's own date, then the consultation date."""
    record_date = payload.date
    if record_date is None and record_type in PRIMARY_DATE_FIELD:
        record_date = _as_datetime(getattr(payload, PRIMARY_DATE_FIELD[record_type]))
    if record_date is None and consultation is not None:
        record_date = consultation.date
    return MedicalRecord(
        record_type=record_type,
        patient_id=patient_id,
        provider_id=provider_id,
        consultation_id=consultation.id if consultation else None,
        date=record_date or datetime.now(timezone.utc),
        notes=payload.notes,
        data=payload.payload(),
        created_by_patient=created_by_patient,
    )


def _number(value) -> str:
    return f"{value:g}" if isinstance(value, (int, float)) else str(value)


def format_vitals(record: Optional[MedicalRecord]) -> Optional[dict]:
    """Latest vitals as display strings, "N/A" where nothing was measured."""
    if record is None:
        return None
    data = record.data or {}
    formatted = {}
    for field in VITALS_DISPLAY_FIELDS:
        measurement = data.get(field) or {}
        value = measurement.get("value")
        formatted[field] = f"{_number(value)} {measurement.get('unit', '')}".strip() if value is not None else "N/A"
    pressure = data.get("blood_pressure") or {}
    if pressure.get("systolic") is not None and pressure.get("diastolic") is not None:
        formatted["blood_pressure"] = (
            f"{_number(pressure['systolic'])}/{_number(pressure['diastolic'])} {pressure.get('unit', 'mmHg')}"
        )
    else:
        formatted["blood_pressure"] = "N/A"
    bmi = (data.get("bmi") or {}).get("value")
    formatted["bmi"] = _number(bmi) if bmi is not None else "N/A"
    formatted["last_updated"] = record.date or record.created_at
    return formatted


class MedicalRecordService:
    """Typed medical records, scoped by the connection access policy."""

    def __init__(self, uow: UnitOfWork, current_user: CurrentUser):
        self.uow = uow
        self.current_user = current_user

    @property
    def repo(self) -> MedicalRecordRepository:
        return self.uow.get_repository(MedicalRecordRepository)

    async def _connection_to(self, patient_id: Optional[int]):
        if patient_id is None or not self.current_user.is_provider:
            return None
        return await self.uow.get_repository(ConnectionRepository).get_by_pair(patient_id, self.current_user.id)

    async def _scope(self, patient_id: Optional[int]) -> policy.VisibilityScope:
        connection = await self._connection_to(patient_id)
        return policy.resolve_scope(self.current_user, patient_id=patient_id, connection=connection)

    async def list_records(
        self,
        record_type: RecordType,
        patient_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        sort_by: str = "date",
        sort_order: str = "desc",
        limit: int = 20,
        page: int = 1,
    ) -> Tuple[List[MedicalRecord], int]:
        scope = await self._scope(patient_id)
        return await self.repo.search(
            record_type,
            scope,
            start_date=start_date,
            end_date=end_date,
            search=search,
            sort_by=sort_by,
            descending=sort_order != "asc",
            limit=limit,
            offset=(page - 1) * limit,
        )

    async def statistics(
        self,
        record_type: RecordType,
        patient_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        scope = await self._scope(patient_id)
        return await self.repo.statistics(record_type, scope, start_date=start_date, end_date=end_date)

    async def _released(self, record: MedicalRecord) -> bool:
        if record.consultation_id is None:
            return True
        consultation = await self.uow.get_repository(ConsultationRepository).get_by_id(record.consultation_id)
        return consultation is not None and consultation.is_completed

    async def get_record(self, record_type: RecordType, record_id: int) -> MedicalRecord:
        record = await self.repo.get_by_id(record_id)
        if record is None or record.is_deleted or record.record_type != record_type:
            raise NotFoundException("Record not found")
        connection = await self._connection_to(record.patient_id)
        released = await self._released(record) if self.current_user.is_patient else True
        if not policy.can_view(self.current_user, record.patient_id, record.provider_id, connection, released):
            raise PermissionDeniedException("Not authorized to view this record")
        return record

    async def _get_for_update(self, record_type: RecordType, record_id: int) -> MedicalRecord:
        record = await self.repo.get_by_id(record_id)
        if record is None or record.is_deleted or record.record_type != record_type:
            raise NotFoundException("Record not found")
        if not policy.can_modify(self.current_user, record.patient_id, record.provider_id, record.created_by_patient):
            raise PermissionDeniedException("Not authorized to modify this record")
        return record

    async def update_record(self, record_type: RecordType, record_id: int, changes: Dict[str, Any]) -> MedicalRecord:
        """Partial update: changes are merged over the stored payload and re-validated."""
        record = await self._get_for_update(record_type, record_id)
        merged = {**(record.data or {}), "date": record.date, "notes": record.notes, **changes}
        payload = validate_payload(record_type, merged)
        if payload.date is not None:
            record.date = payload.date
        record.notes = payload.notes
        record.data = payload.payload()
        record.updated_at = datetime.now(timezone.utc)
        await self.repo.update(record)
        await self.uow.commit()
        logger.info(f"Record {record.id} ({RecordType(record_type).value}) updated by user {self.current_user.id}")
        return record

    async def delete_record(self, record_type: RecordType, record_id: int) -> None:
        """Soft delete."""
        record = await self._get_for_update(record_type, record_id)
        record.is_deleted = True
        record.updated_at = datetime.now(timezone.utc)
        await self.repo.update(record)
        await self.uow.commit()
        logger.info(f"Record {record.id} ({RecordType(record_type).value}) deleted by user {self.current_user.id}")

    async def create_patient_vitals(self, payload: VitalsPayload) -> MedicalRecord:
        record = build_record(
            RecordType.VITALS, payload, patient_id=self.current_user.id, provider_id=None, created_by_patient=True
        )
        await self.repo.create(record)
        await self.uow.commit()
        logger.info(f"Patient {self.current_user.id} added vitals record {record.id}")
        return record

    async def latest_vitals(self) -> Optional[MedicalRecord]:
        scope = await self._scope(self.current_user.id)
        records, _ = await self.repo.search(RecordType.VITALS, scope, limit=1)
        return records[0] if records else None
