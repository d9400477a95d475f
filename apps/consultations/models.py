from sqlmodel import SQLModel, Field
from sqlalchemy import Text, Column
from typing import Optional
from datetime import datetime, timezone
from enum import Enum


class ConsultationStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Consultation(SQLModel, table=True):
    """Visit record; typed records point back at it via medical_records.consultation_id."""
    __tablename__ = "consultations"

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    specialist_name: str = Field(max_length=200)
    specialty: str = Field(max_length=100)
    practice: str = Field(max_length=200)
    reason_for_visit: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    status: ConsultationStatus = Field(default=ConsultationStatus.DRAFT, index=True)
    is_shared_with_patient: bool = Field(default=True)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    archived_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def title(self) -> str:
        return f"{self.specialty} - {self.date.date().isoformat()}"

    @property
    def is_completed(self) -> bool:
        return self.status == ConsultationStatus.COMPLETED
