from typing import Optional
from fastapi import APIRouter, Depends, Query
from portal.dependencies import get_uow, get_notification_queue
from portal.queue.notification_queue import NotificationQueue
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import CurrentUser, require_roles
from apps.identity.models import UserRole, UserPublic
from apps.notifications.service import NotificationService
from ..service import AdminService

router = APIRouter()


def get_admin_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("admin")),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> AdminService:
    """Dependency: create AdminService."""
    return AdminService(uow, current_user, NotificationService(uow, queue))


@router.get("/users")
async def list_users(
    role: Optional[UserRole] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: AdminService = Depends(get_admin_service),
):
    users, total = await service.list_users(role=role, page=page, limit=limit)
    return ResponseModel.paginated([UserPublic.model_validate(u) for u in users], total, page, limit, key="users")


@router.get("/users/{user_id}")
async def get_user(user_id: int, service: AdminService = Depends(get_admin_service)):
    return ResponseModel.success(data=UserPublic.model_validate(await service.get_user(user_id)))


@router.put("/providers/{provider_id}/verify")
async def verify_provider(provider_id: int, service: AdminService = Depends(get_admin_service)):
    provider = await service.verify_provider(provider_id)
    return ResponseModel.success(data=UserPublic.model_validate(provider), message="Provider verified")
