from sqlmodel import SQLModel, Field, JSON, Column
from typing import Optional, Dict
from datetime import datetime, date, timezone
from enum import Enum


class UserRole(str, Enum):
    PATIENT = "patient"
    PROVIDER = "provider"
    ADMIN = "admin"


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=320)
    hashed_password: str
    role: UserRole = Field(default=UserRole.PATIENT, index=True)

    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    title: Optional[str] = Field(default=None, max_length=20)
    phone: Optional[str] = Field(default=None, max_length=50)

    is_email_verified: bool = Field(default=False)
    is_profile_completed: bool = Field(default=False)
    is_active: bool = Field(default=True)
    last_login: Optional[datetime] = None

    # Provider profile
    specialty: Optional[str] = Field(default=None, max_length=100)
    practice_name: Optional[str] = Field(default=None, max_length=200)
    practice_license: Optional[str] = Field(default=None, max_length=100)
    years_of_experience: Optional[int] = None
    is_verified: bool = Field(default=False)

    # Patient profile; address, insurance, allergies, history etc. live in patient_profile
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(default=None, max_length=30)
    patient_profile: Dict = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class UserPublic(SQLModel):
    """User as returned by the API (no password hash)."""
    id: int
    email: str
    role: UserRole
    first_name: str
    last_name: str
    title: Optional[str] = None
    phone: Optional[str] = None
    is_email_verified: bool = False
    is_profile_completed: bool = False
    is_active: bool = True
    last_login: Optional[datetime] = None
    specialty: Optional[str] = None
    practice_name: Optional[str] = None
    practice_license: Optional[str] = None
    years_of_experience: Optional[int] = None
    is_verified: bool = False
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    patient_profile: Dict = {}
    created_at: Optional[datetime] = None


class UserBasic(SQLModel):
    """Name and contact fields shown to a provider without full access."""
    id: int
    email: str
    first_name: str
    last_name: str
    title: Optional[str] = None
    phone: Optional[str] = None
