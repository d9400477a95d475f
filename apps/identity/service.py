from datetime import datetime, timezone
from typing import Optional
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from portal.config import settings
from portal.logging.logger import get_logger
from portal.security import (
    get_password_hash,
    verify_password,
    create_email_verification_token,
    decode_token,
)
from portal.exceptions.handler import BusinessException
from portal.repository.unit_of_work import UnitOfWork
from apps.notifications.service import NotificationService, frontend_url
from .models import User, UserRole
from .repository import UserRepository

logger = get_logger("identity_service")

PROVIDER_FIELDS = ("specialty", "practice_name", "practice_license", "years_of_experience")


def token_claims(user: User) -> dict:
    """Claims carried by an access token; read back by get_current_user."""
    return {
        "sub": user.email,
        "user_id": user.id,
        "role": UserRole(user.role).value,
        "first_name": user.first_name,
        "last_name": user.last_name,
    }


class IdentityService:
    def __init__(self, uow: UnitOfWork, notifications: Optional[NotificationService] = None):
        """Initialize Identity Service with UnitOfWork."""
        self.uow = uow
        self.notifications = notifications or NotificationService(uow)

    async def register(self, email: str, password: str, first_name: str, last_name: str,
                       role: UserRole = UserRole.PATIENT, **profile) -> User:
        """Register a patient or provider account and queue the verification email."""
        if role == UserRole.ADMIN:
            raise BusinessException("Admin accounts cannot be self-registered", status_code=403, code=403)

        user_repo = self.uow.get_repository(UserRepository)
        email = email.strip().lower()
        if await user_repo.get_by_email(email):
            raise BusinessException("User with this email already exists")

        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            title=profile.get("title"),
            phone=profile.get("phone"),
        )
        if role == UserRole.PROVIDER:
            for field in PROVIDER_FIELDS:
                setattr(user, field, profile.get(field))

        try:
            await user_repo.create(user)
            await self.uow.flush()
            await self._queue_verification(user)
            await self.uow.commit()
        except IntegrityError as e:
            await self.uow.rollback()
            logger.warning(f"Registration conflict for user email: {e.orig if hasattr(e, 'orig') else e}")
            raise BusinessException("User with this email already exists")

        await self.notifications.dispatch()
        logger.info(f"User {user.id} registered with role {UserRole(role).value}")
        return user

    async def _queue_verification(self, user: User):
        token = create_email_verification_token(user.id)
        await self.notifications.queue_email(
            "verify_email",
            to=user.email,
            user_id=user.id,
            first_name=user.first_name,
            verification_url=frontend_url(f"verify-email?token={token}"),
            expires_hours=settings.EMAIL_VERIFICATION_EXPIRE_MINUTES // 60,
        )

    async def authenticate_user(self, email: str, password: str) -> User:
        """Authenticate user and stamp last_login."""
        user_repo = self.uow.get_repository(UserRepository)
        user = await user_repo.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise BusinessException("Invalid email or password", status_code=401, code=401)
        if not user.is_active:
            raise BusinessException("Account is deactivated", status_code=403, code=403)
        if settings.REQUIRE_EMAIL_VERIFICATION and not user.is_email_verified:
            raise BusinessException("Please verify your email before logging in", status_code=403, code=403)

        user.last_login = datetime.now(timezone.utc)
        await user_repo.update(user)
        await self.uow.commit()
        logger.info(f"User {user.id} authenticated successfully")
        return user

    async def user_from_refresh_token(self, refresh_token: str) -> User:
        try:
            payload = decode_token(refresh_token, "refresh")
        except JWTError:
            raise BusinessException("Invalid refresh token", status_code=401, code=401)
        user = await self.uow.get_repository(UserRepository).get_by_id(payload.get("user_id"))
        if user is None or not user.is_active:
            raise BusinessException("Invalid refresh token", status_code=401, code=401)
        return user

    async def verify_email(self, token: str) -> User:
        try:
            payload = decode_token(token, "email_verification")
        except JWTError:
            raise BusinessException("Invalid or expired verification token")
        user_repo = self.uow.get_repository(UserRepository)
        user = await user_repo.get_by_id(payload.get("user_id"))
        if user is None:
            raise BusinessException("Invalid or expired verification token")
        if not user.is_email_verified:
            user.is_email_verified = True
            user.updated_at = datetime.now(timezone.utc)
            await user_repo.update(user)
            await self.uow.commit()
            logger.info(f"User {user.id} verified email")
        return user
