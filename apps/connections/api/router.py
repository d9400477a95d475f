from typing import Optional, Literal
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from portal.dependencies import get_uow, get_notification_queue
from portal.queue.notification_queue import NotificationQueue
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import CurrentUser, get_current_user, require_roles
from apps.notifications.service import NotificationService
from ..models import AccessLevel, FullAccessStatus
from ..service import ConnectionService

router = APIRouter()


class ConnectionCreate(BaseModel):
    patient_email: EmailStr
    notes: Optional[str] = None
    full_access_requested: bool = False


class RespondSchema(BaseModel):
    action: Literal["approve", "deny"]


def _service(uow: UnitOfWork, current_user: CurrentUser, queue: Optional[NotificationQueue]) -> ConnectionService:
    return ConnectionService(uow, current_user, NotificationService(uow, queue))


def get_connection_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(get_current_user),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> ConnectionService:
    """Dependency: create ConnectionService."""
    return _service(uow, current_user, queue)


def get_patient_connection_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("patient")),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> ConnectionService:
    return _service(uow, current_user, queue)


def get_provider_connection_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("provider")),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> ConnectionService:
    return _service(uow, current_user, queue)


@router.get("/")
async def list_connections(
    access_level: Optional[AccessLevel] = None,
    full_access_status: Optional[FullAccessStatus] = None,
    service: ConnectionService = Depends(get_connection_service),
):
    """Connections of the current user, newest first."""
    connections = await service.list_connections(access_level, full_access_status)
    return ResponseModel.success(data=await service.serialize(connections))


@router.post("/")
async def create_connection(
    payload: ConnectionCreate,
    service: ConnectionService = Depends(get_provider_connection_service),
):
    connection = await service.create_connection(
        payload.patient_email, notes=payload.notes, full_access_requested=payload.full_access_requested
    )
    data = (await service.serialize([connection]))[0]
    return ResponseModel.success(data=data, message="Connection created")


@router.get("/patient/requests")
async def pending_requests(service: ConnectionService = Depends(get_patient_connection_service)):
    """Pending full-access requests for the current patient."""
    connections = await service.pending_requests()
    return ResponseModel.success(data=await service.serialize(connections))


@router.post("/patient/respond/{connection_id}")
async def respond_to_request(
    connection_id: int,
    payload: RespondSchema,
    service: ConnectionService = Depends(get_patient_connection_service),
):
    approve = payload.action == "approve"
    connection = await service.respond(connection_id, approve=approve)
    return ResponseModel.success(
        data=connection, message=f"Full access request {'approved' if approve else 'denied'}"
    )


@router.post("/patient/revoke/{connection_id}")
async def revoke_access(
    connection_id: int,
    service: ConnectionService = Depends(get_patient_connection_service),
):
    connection = await service.revoke(connection_id)
    if connection is None:
        return ResponseModel.success(data=None, message="Connection removed")
    return ResponseModel.success(data=connection, message="Access revoked")


@router.post("/patient/grant/{connection_id}")
async def grant_full_access(
    connection_id: int,
    service: ConnectionService = Depends(get_patient_connection_service),
):
    connection = await service.grant(connection_id)
    return ResponseModel.success(data=connection, message="Full access granted")


@router.post("/provider/request-full-access/{connection_id}")
async def request_full_access(
    connection_id: int,
    service: ConnectionService = Depends(get_provider_connection_service),
):
    connection = await service.request_full_access(connection_id)
    return ResponseModel.success(data=connection, message="Full access requested")


@router.get("/{connection_id}")
async def get_connection(connection_id: int, service: ConnectionService = Depends(get_connection_service)):
    connection = await service.get_connection(connection_id)
    data = (await service.serialize([connection]))[0]
    return ResponseModel.success(data=data)


@router.delete("/{connection_id}")
async def delete_connection(connection_id: int, service: ConnectionService = Depends(get_connection_service)):
    await service.delete_connection(connection_id)
    return ResponseModel.success(message="Connection deleted")
