from typing import Optional, Dict, Any
from fastapi import APIRouter, Depends, Query, Body
from portal.dependencies import get_uow, get_notification_queue
from portal.queue.notification_queue import NotificationQueue
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import CurrentUser, get_current_user, require_roles
from portal.types import UTCDatetime
from apps.notifications.service import NotificationService
from apps.records.models import RecordType
from apps.records.schemas import serialize_record
from ..models import ConsultationStatus
from ..schemas import ConsultationCreate, ConsultationUpdate
from ..service import ConsultationService, serialize_consultation

router = APIRouter()


def get_consultation_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(get_current_user),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> ConsultationService:
    """Dependency: create ConsultationService."""
    return ConsultationService(uow, current_user, NotificationService(uow, queue))


def get_provider_consultation_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("provider")),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> ConsultationService:
    return ConsultationService(uow, current_user, NotificationService(uow, queue))


def get_patient_consultation_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("patient")),
) -> ConsultationService:
    return ConsultationService(uow, current_user)


@router.get("/")
async def list_consultations(
    patient_id: Optional[int] = None,
    provider_id: Optional[int] = None,
    status: Optional[ConsultationStatus] = None,
    start_date: Optional[UTCDatetime] = None,
    end_date: Optional[UTCDatetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ConsultationService = Depends(get_consultation_service),
):
    """Consultations visible to the current user, newest first."""
    items, total = await service.list_consultations(
        patient_id=patient_id,
        provider_id=provider_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return ResponseModel.paginated(
        [serialize_consultation(c) for c in items], total, page, limit, key="consultations"
    )


@router.post("/")
async def create_consultation(
    payload: ConsultationCreate,
    service: ConsultationService = Depends(get_provider_consultation_service),
):
    consultation, records = await service.create_consultation(payload)
    return ResponseModel.success(data=serialize_consultation(consultation, records), message="Consultation created")


@router.get("/patient/recent")
async def recent_consultations(
    limit: int = Query(5, ge=1, le=50),
    service: ConsultationService = Depends(get_patient_consultation_service),
):
    items = await service.patient_recent(limit=limit)
    return ResponseModel.success(data=[serialize_consultation(c) for c in items])


@router.get("/patient/statistics")
async def consultation_statistics(service: ConsultationService = Depends(get_patient_consultation_service)):
    return ResponseModel.success(data=await service.patient_statistics())


@router.get("/{consultation_id}")
async def get_consultation(consultation_id: int, service: ConsultationService = Depends(get_consultation_service)):
    consultation, records = await service.get_consultation(consultation_id)
    return ResponseModel.success(data=serialize_consultation(consultation, records))


@router.put("/{consultation_id}")
async def update_consultation(
    consultation_id: int,
    payload: ConsultationUpdate,
    service: ConsultationService = Depends(get_provider_consultation_service),
):
    consultation, records = await service.update_consultation(consultation_id, payload)
    return ResponseModel.success(data=serialize_consultation(consultation, records), message="Consultation updated")


@router.delete("/{consultation_id}")
async def archive_consultation(
    consultation_id: int,
    service: ConsultationService = Depends(get_provider_consultation_service),
):
    consultation = await service.archive_consultation(consultation_id)
    return ResponseModel.success(data=serialize_consultation(consultation), message="Consultation archived")


@router.post("/{consultation_id}/records/{record_type}")
async def add_consultation_record(
    consultation_id: int,
    record_type: RecordType,
    payload: Dict[str, Any] = Body(...),
    service: ConsultationService = Depends(get_provider_consultation_service),
):
    record = await service.add_record(consultation_id, record_type, payload)
    return ResponseModel.success(data=serialize_record(record), message="Record added")


@router.get("/{consultation_id}/records/{record_type}")
async def list_consultation_records(
    consultation_id: int,
    record_type: RecordType,
    service: ConsultationService = Depends(get_consultation_service),
):
    records = await service.list_records(consultation_id, record_type)
    return ResponseModel.success(data=[serialize_record(r) for r in records])
