from typing import Optional
from fastapi import APIRouter, Depends, Query
from portal.dependencies import get_uow
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import CurrentUser, get_current_user, require_roles
from apps.identity.models import UserPublic
from ..service import UserService, ProfileUpdate

router = APIRouter()


def get_user_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(get_current_user),
) -> UserService:
    """Dependency: create UserService."""
    return UserService(uow, current_user)


def get_patient_user_service(
    uow: UnitOfWork = Depends(get_uow),
    current_user: CurrentUser = Depends(require_roles("patient")),
) -> UserService:
    return UserService(uow, current_user)


@router.get("/me")
async def get_me(service: UserService = Depends(get_user_service)):
    return ResponseModel.success(data=UserPublic.model_validate(await service.get_me()))


@router.put("/me")
async def update_me(payload: ProfileUpdate, service: UserService = Depends(get_user_service)):
    user = await service.update_me(payload)
    return ResponseModel.success(data=UserPublic.model_validate(user), message="Profile updated")


@router.get("/patient/dashboard")
async def patient_dashboard(service: UserService = Depends(get_patient_user_service)):
    return ResponseModel.success(data=await service.patient_dashboard())


@router.get("/providers/search")
async def search_providers(
    query: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    service: UserService = Depends(get_patient_user_service),
):
    return ResponseModel.success(data=await service.search_providers(query, limit=limit))
