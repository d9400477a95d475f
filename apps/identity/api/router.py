from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field
from portal.config import settings
from portal.dependencies import get_uow, get_notification_queue
from portal.queue.notification_queue import NotificationQueue
from portal.repository.unit_of_work import UnitOfWork
from portal.response import ResponseModel
from portal.security import create_access_token, create_refresh_token
from apps.notifications.service import NotificationService
from ..models import UserRole, UserPublic
from ..service import IdentityService, token_claims

router = APIRouter()


class RegisterSchema(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: UserRole = UserRole.PATIENT
    title: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None
    practice_name: Optional[str] = None
    practice_license: Optional[str] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)


class LoginSchema(BaseModel):
    email: EmailStr
    password: str


class RefreshSchema(BaseModel):
    refresh_token: str


class VerifyEmailSchema(BaseModel):
    token: str


def get_identity_service(
    uow: UnitOfWork = Depends(get_uow),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> IdentityService:
    """Dependency: create IdentityService."""
    return IdentityService(uow, NotificationService(uow, queue))


def _issue_tokens(user, response: Response) -> dict:
    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(data=token_claims(user), expires_delta=expires_delta)
    response.set_cookie(
        key=settings.ACCESS_TOKEN_COOKIE_NAME,
        value=access_token,
        max_age=int(expires_delta.total_seconds()),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )
    return {
        "access_token": access_token,
        "refresh_token": create_refresh_token(user.id),
        "token_type": "bearer",
        "user": UserPublic.model_validate(user),
    }


@router.post("/register")
async def register(data: RegisterSchema, service: IdentityService = Depends(get_identity_service)):
    """Register a patient or provider."""
    user = await service.register(**data.model_dump())
    return ResponseModel.success(
        data={"user": UserPublic.model_validate(user)},
        message="Registration successful. Please check your email to verify your account.",
    )


@router.post("/login")
async def login(data: LoginSchema, response: Response, service: IdentityService = Depends(get_identity_service)):
    """Login: return JWT and set cookie."""
    user = await service.authenticate_user(data.email, data.password)
    return ResponseModel.success(data=_issue_tokens(user, response))


@router.post("/logout")
async def logout(response: Response):
    """Logout: clear token cookie."""
    response.delete_cookie(
        key=settings.ACCESS_TOKEN_COOKIE_NAME,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )
    return ResponseModel.success(message="Logged out successfully")


@router.post("/refresh-token")
async def refresh_token(data: RefreshSchema, response: Response, service: IdentityService = Depends(get_identity_service)):
    user = await service.user_from_refresh_token(data.refresh_token)
    return ResponseModel.success(data=_issue_tokens(user, response))


@router.post("/verify-email")
async def verify_email(data: VerifyEmailSchema, service: IdentityService = Depends(get_identity_service)):
    user = await service.verify_email(data.token)
    return ResponseModel.success(data={"user": UserPublic.model_validate(user)}, message="Email verified")
