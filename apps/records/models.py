from sqlmodel import SQLModel, Field, JSON, Column
from sqlalchemy import Text
from typing import Optional, Dict
from datetime import datetime, timezone
from enum import Enum


class RecordType(str, Enum):
    VITALS = "vitals"
    MEDICATIONS = "medications"
    IMMUNIZATIONS = "immunizations"
    LAB_RESULTS = "lab-results"
    RADIOLOGY_REPORTS = "radiology-reports"
    HOSPITAL_RECORDS = "hospital-records"
    SURGERY_RECORDS = "surgery-records"


class MedicalRecord(SQLModel, table=True):
    """
    All typed records share one table; record_type picks the payload schema
    stored in `data` (see schemas.RECORD_SCHEMAS).
    """
    __tablename__ = "medical_records"

    id: Optional[int] = Field(default=None, primary_key=True)
    record_type: RecordType = Field(index=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    provider_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    consultation_id: Optional[int] = Field(default=None, foreign_key="consultations.id", index=True)

    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    data: Dict = Field(default_factory=dict, sa_column=Column(JSON))

    is_deleted: bool = Field(default=False)
    created_by_patient: bool = Field(default=False)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
