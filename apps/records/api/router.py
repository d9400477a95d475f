from typing import Optional, Dict, Any, Literal
from fastapi import APIRouter, Depends, Query, Body
from portal.dependencies import get_uow
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import CurrentUser, get_current_user, require_roles
from portal.types import UTCDatetime
from ..models import RecordType
from ..schemas import VitalsPayload, serialize_record
from ..service import MedicalRecordService, format_vitals

router = APIRouter()


def get_record_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(get_current_user),
) -> MedicalRecordService:
    """Dependency: create MedicalRecordService."""
    return MedicalRecordService(uow, current_user)


def get_patient_record_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("patient")),
) -> MedicalRecordService:
    return MedicalRecordService(uow, current_user)


@router.post("/patient/vitals")
async def add_patient_vitals(
    payload: VitalsPayload,
    service: MedicalRecordService = Depends(get_patient_record_service),
):
    """Vitals entered by the patient themselves."""
    record = await service.create_patient_vitals(payload)
    return ResponseModel.success(data=serialize_record(record), message="Vitals recorded")


@router.get("/patient/vitals/recent")
async def recent_vitals(service: MedicalRecordService = Depends(get_patient_record_service)):
    record = await service.latest_vitals()
    return ResponseModel.success(data={"vitals": format_vitals(record)})


@router.get("/{record_type}")
async def list_records(
    record_type: RecordType,
    patient_id: Optional[int] = None,
    start_date: Optional[UTCDatetime] = None,
    end_date: Optional[UTCDatetime] = None,
    search: Optional[str] = None,
    sort_by: Literal["date", "created_at"] = "date",
    sort_order: Literal["asc", "desc"] = "desc",
    limit: int = Query(20, ge=1, le=100),
    page: int = Query(1, ge=1),
    service: MedicalRecordService = Depends(get_record_service),
):
    records, total = await service.list_records(
        record_type,
        patient_id=patient_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        page=page,
    )
    return ResponseModel.paginated([serialize_record(r) for r in records], total, page, limit, key="records")


@router.get("/{record_type}/statistics")
async def record_statistics(
    record_type: RecordType,
    patient_id: Optional[int] = None,
    start_date: Optional[UTCDatetime] = None,
    end_date: Optional[UTCDatetime] = None,
    service: MedicalRecordService = Depends(get_record_service),
):
    stats = await service.statistics(record_type, patient_id=patient_id, start_date=start_date, end_date=end_date)
    return ResponseModel.success(data=stats)


@router.get("/{record_type}/{record_id}")
async def get_record(record_type: RecordType, record_id: int, service: MedicalRecordService = Depends(get_record_service)):
    record = await service.get_record(record_type, record_id)
    return ResponseModel.success(data=serialize_record(record))


@router.put("/{record_type}/{record_id}")
async def update_record(
    record_type: RecordType,
    record_id: int,
    changes: Dict[str, Any] = Body(...),
    service: MedicalRecordService = Depends(get_record_service),
):
    record = await service.update_record(record_type, record_id, changes)
    return ResponseModel.success(data=serialize_record(record), message="Record updated")


@router.delete("/{record_type}/{record_id}")
async def delete_record(record_type: RecordType, record_id: int, service: MedicalRecordService = Depends(get_record_service)):
    await service.delete_record(record_type, record_id)
    return ResponseModel.success(message="Record deleted")
