from datetime import datetime, date, timezone
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, field_validator
from portal.logging.logger import get_logger
from portal.exceptions.handler import NotFoundException
from portal.security import CurrentUser
from portal.repository.unit_of_work import UnitOfWork
from apps.identity.models import User, UserRole
from apps.identity.repository import UserRepository
from apps.connections.service import ConnectionService, user_summary
from apps.consultations.service import ConsultationService, serialize_consultation
from apps.records.service import MedicalRecordService, format_vitals

logger = get_logger("user_service")

COMMON_FIELDS = {"first_name", "last_name", "title", "phone"}
PATIENT_FIELDS = {"date_of_birth", "gender"}
PROVIDER_FIELDS = {"specialty", "practice_name", "practice_license", "years_of_experience"}


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    # patient
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    patient_profile: Optional[Dict[str, Any]] = None
    # provider
    specialty: Optional[str] = None
    practice_name: Optional[str] = None
    practice_license: Optional[str] = None
    years_of_experience: Optional[int] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class UserService:
    """Profile and patient-facing views of the current user."""

    def __init__(self, uow: UnitOfWork, current_user: CurrentUser):
        self.uow = uow
        self.current_user = current_user

    @property
    def users(self) -> UserRepository:
        return self.uow.get_repository(UserRepository)

    async def get_me(self) -> User:
        user = await self.users.get_by_id(self.current_user.id)
        if user is None:
            raise NotFoundException("User not found")
        return user

    async def update_me(self, data: ProfileUpdate) -> User:
        user = await self.get_me()
        allowed = set(COMMON_FIELDS)
        if user.role == UserRole.PATIENT:
            allowed |= PATIENT_FIELDS
        elif user.role == UserRole.PROVIDER:
            allowed |= PROVIDER_FIELDS

        for key, value in data.model_dump(include=allowed, exclude_unset=True).items():
            setattr(user, key, value)
        if user.role == UserRole.PATIENT and data.patient_profile is not None:
            # Merge so a partial section update keeps the rest of the profile
            user.patient_profile = {**(user.patient_profile or {}), **data.patient_profile}

        if user.role == UserRole.PATIENT:
            user.is_profile_completed = bool(user.date_of_birth and user.gender)
        elif user.role == UserRole.PROVIDER:
            user.is_profile_completed = bool(user.specialty and user.practice_name)
        user.updated_at = datetime.now(timezone.utc)
        await self.users.update(user)
        await self.uow.commit()
        logger.info(f"User {user.id} updated profile")
        return user

    async def patient_dashboard(self) -> dict:
        consultations = ConsultationService(self.uow, self.current_user)
        records = MedicalRecordService(self.uow, self.current_user)
        connections = ConnectionService(self.uow, self.current_user)

        recent = await consultations.patient_recent(limit=5)
        requests = await connections.pending_requests()
        return {
            "recent_consultations": [serialize_consultation(c) for c in recent],
            "vitals": format_vitals(await records.latest_vitals()),
            "pending_requests": await connections.serialize(requests),
        }

    async def search_providers(self, query: Optional[str] = None, limit: int = 20) -> List[dict]:
        """Verified providers, each with this patient's connection to them (if any)."""
        providers = await self.users.search_verified_providers(query, limit=limit)
        connections = ConnectionService(self.uow, self.current_user)
        by_provider = {c.provider_id: c for c in await connections.list_connections()}
        results = []
        for provider in providers:
            connection = by_provider.get(provider.id)
            item = user_summary(provider)
            item["connection"] = None if connection is None else {
                "id": connection.id,
                "access_level": connection.access_level,
                "full_access_status": connection.full_access_status,
            }
            results.append(item)
        return results
