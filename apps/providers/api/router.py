from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from portal.dependencies import get_uow, get_notification_queue
from portal.queue.notification_queue import NotificationQueue
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import CurrentUser, require_roles
from apps.notifications.service import NotificationService
from ..service import ProviderService, connection_info

router = APIRouter()


class AddPatientSchema(BaseModel):
    email: EmailStr
    notes: Optional[str] = None
    full_access_requested: bool = False


def get_provider_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("provider")),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> ProviderService:
    """Dependency: create ProviderService."""
    return ProviderService(uow, current_user, NotificationService(uow, queue))


@router.get("/dashboard")
async def dashboard(service: ProviderService = Depends(get_provider_service)):
    return ResponseModel.success(data=await service.dashboard())


@router.get("/patients")
async def list_patients(service: ProviderService = Depends(get_provider_service)):
    return ResponseModel.success(data=await service.list_patients())


@router.post("/patients")
async def add_patient(payload: AddPatientSchema, service: ProviderService = Depends(get_provider_service)):
    connection, created = await service.add_patient(
        payload.email, notes=payload.notes, full_access_requested=payload.full_access_requested
    )
    return ResponseModel.success(
        data={"connection": connection_info(connection), "can_request_full_access": connection.can_request_full_access},
        message="Patient added" if created else "Patient already connected with limited access",
    )


@router.get("/patients/{patient_id}")
async def get_patient(patient_id: int, service: ProviderService = Depends(get_provider_service)):
    return ResponseModel.success(data=await service.patient_detail(patient_id))
