from typing import Optional, List, Literal
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from portal.types import UTCDatetime
from apps.records.models import RecordType
from apps.records.schemas import (
    VitalsPayload,
    MedicationPayload,
    ImmunizationPayload,
    LabResultPayload,
    RadiologyPayload,
    HospitalPayload,
    SurgeryPayload,
)

# Request field -> record type for the record lists nested in a consultation
NESTED_RECORD_FIELDS = {
    "medications": RecordType.MEDICATIONS,
    "immunizations": RecordType.IMMUNIZATIONS,
    "lab_results": RecordType.LAB_RESULTS,
    "radiology_reports": RecordType.RADIOLOGY_REPORTS,
    "hospital_records": RecordType.HOSPITAL_RECORDS,
    "surgery_records": RecordType.SURGERY_RECORDS,
}

EditableStatus = Literal["draft", "completed"]


class ConsultationCreate(BaseModel):
    patient_id: Optional[int] = None
    patient_email: Optional[EmailStr] = None
    date: Optional[UTCDatetime] = None
    specialist_name: str = Field(min_length=1, max_length=200)
    specialty: str = Field(min_length=1, max_length=100)
    practice: str = Field(min_length=1, max_length=200)
    reason_for_visit: Optional[str] = None
    notes: Optional[str] = None
    status: EditableStatus = "draft"
    is_shared_with_patient: bool = True

    vitals: Optional[VitalsPayload] = None
    medications: List[MedicationPayload] = []
    immunizations: List[ImmunizationPayload] = []
    lab_results: List[LabResultPayload] = []
    radiology_reports: List[RadiologyPayload] = []
    hospital_records: List[HospitalPayload] = []
    surgery_records: List[SurgeryPayload] = []

    @model_validator(mode="after")
    def check_patient_and_reason(self):
        if self.patient_id is None and self.patient_email is None:
            raise ValueError("patient_id or patient_email is required")
        if self.status == "completed" and not (self.reason_for_visit or "").strip():
            raise ValueError("reason_for_visit is required for a completed consultation")
        return self


class ConsultationUpdate(BaseModel):
    """Omitted fields are left alone; a supplied record list replaces the stored one."""
    date: Optional[UTCDatetime] = None
    specialist_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    specialty: Optional[str] = Field(default=None, min_length=1, max_length=100)
    practice: Optional[str] = Field(default=None, min_length=1, max_length=200)
    reason_for_visit: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[EditableStatus] = None
    is_shared_with_patient: Optional[bool] = None

    vitals: Optional[VitalsPayload] = None
    medications: Optional[List[MedicationPayload]] = None
    immunizations: Optional[List[ImmunizationPayload]] = None
    lab_results: Optional[List[LabResultPayload]] = None
    radiology_reports: Optional[List[RadiologyPayload]] = None
    hospital_records: Optional[List[HospitalPayload]] = None
    surgery_records: Optional[List[SurgeryPayload]] = None

    @field_validator("date", "specialist_name", "specialty", "practice", "is_shared_with_patient")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value
