"""Per-type payload schemas for medical records."""

from datetime import date
from typing import Optional, List, Dict, Type, Literal
from pydantic import BaseModel, Field
from portal.types import UTCDatetime
from .models import RecordType, MedicalRecord


class RecordBase(BaseModel):
    """Fields common to every record type; everything else goes to `data`."""
    date: Optional[UTCDatetime] = None
    notes: Optional[str] = None

    def payload(self) -> dict:
        return self.model_dump(mode="json", exclude=set(RecordBase.model_fields))


# --- vitals ---

class Measurement(BaseModel):
    value: Optional[float] = None
    unit: str


class HeartRate(Measurement):
    unit: str = "bpm"


class BloodPressure(BaseModel):
    systolic: Optional[float] = None
    diastolic: Optional[float] = None
    unit: str = "mmHg"


class BodyFat(Measurement):
    unit: str = "%"


class Bmi(BaseModel):
    value: Optional[float] = None


class Weight(Measurement):
    unit: str = "kg"


class Height(Measurement):
    unit: str = "cm"


class BodyTemperature(Measurement):
    unit: str = "°C"


class BloodGlucose(Measurement):
    unit: str = "mg/dL"
    measurement_type: Literal["fasting", "postprandial", "random"] = "random"


class OxygenSaturation(Measurement):
    unit: str = "%"


class RespiratoryRate(Measurement):
    unit: str = "breaths/min"


class VitalsPayload(RecordBase):
    heart_rate: HeartRate = Field(default_factory=HeartRate)
    blood_pressure: BloodPressure = Field(default_factory=BloodPressure)
    body_fat_percentage: BodyFat = Field(default_factory=BodyFat)
    bmi: Bmi = Field(default_factory=Bmi)
    weight: Weight = Field(default_factory=Weight)
    height: Height = Field(default_factory=Height)
    body_temperature: BodyTemperature = Field(default_factory=BodyTemperature)
    blood_glucose: BloodGlucose = Field(default_factory=BloodGlucose)
    blood_oxygen_saturation: OxygenSaturation = Field(default_factory=OxygenSaturation)
    respiratory_rate: RespiratoryRate = Field(default_factory=RespiratoryRate)


# --- medications ---

class Dosage(BaseModel):
    value: str
    unit: str


class MedicationPayload(RecordBase):
    name: str = Field(min_length=1)
    dosage: Dosage
    frequency: str
    reason_for_prescription: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    instructions: Optional[str] = None
    side_effects: Optional[str] = None
    is_active: bool = True


# --- immunizations ---

class ImmunizationPayload(RecordBase):
    vaccine_name: str = Field(min_length=1)
    date_administered: date
    vaccine_serial_number: Optional[str] = None
    next_due_date: Optional[date] = None
    administered_by: Optional[str] = None
    manufacturer: Optional[str] = None
    lot_number: Optional[str] = None
    site: Optional[Literal["left arm", "right arm", "left leg", "right leg", "other"]] = None
    route: Optional[Literal["intramuscular", "subcutaneous", "intradermal", "oral", "other"]] = None
    dose_number: Optional[int] = None
    reactions: Optional[str] = None


# --- lab results ---

class LabResultPayload(RecordBase):
    test_name: str = Field(min_length=1)
    lab_name: str
    date_of_test: date
    results: str
    reference_range: Optional[str] = None
    unit: Optional[str] = None
    status: Literal["pending", "completed", "abnormal", "normal"] = "pending"
    ordered_by: Optional[str] = None
    comments: Optional[str] = None
    diagnosis: Optional[str] = None


# --- radiology ---

ScanType = Literal[
    "X-Ray", "CT Scan", "MRI", "Ultrasound", "PET Scan",
    "Mammography", "Fluoroscopy", "Angiography", "Other",
]


class RadiologyPayload(RecordBase):
    type_of_scan: ScanType
    body_part_examined: str
    findings: str
    recommendations: Optional[str] = None
    radiologist: Optional[str] = None
    contrast_used: bool = False
    contrast_details: Optional[str] = None
    facility_name: Optional[str] = None
    comparison: Optional[str] = None
    technique: Optional[str] = None
    impression: Optional[str] = None


# --- hospital ---

class Doctor(BaseModel):
    name: Optional[str] = None
    specialty: Optional[str] = None


class HospitalPayload(RecordBase):
    admission_date: date
    discharge_date: Optional[date] = None
    hospital_name: str
    reason_for_hospitalization: str
    treatments_received: List[str] = []
    attending_doctors: List[Doctor] = []
    discharge_summary: Optional[str] = None
    investigations_done: List[str] = []
    diagnosis: Optional[str] = None
    room_number: Optional[str] = None
    ward: Optional[str] = None
    admission_type: Optional[Literal["Emergency", "Scheduled", "Transfer", "Other"]] = None
    follow_up_instructions: Optional[str] = None
    is_readmission: bool = False


# --- surgery ---

class Duration(BaseModel):
    hours: Optional[int] = Field(default=None, ge=0)
    minutes: Optional[int] = Field(default=None, ge=0, lt=60)


class SurgeryPayload(RecordBase):
    type_of_surgery: str
    reason: str
    surgeon: Doctor = Field(default_factory=Doctor)
    assisting_surgeons: List[Doctor] = []
    anesthesia_type: Optional[Literal["General", "Local", "Regional", "Spinal", "Epidural", "None", "Other"]] = None
    anesthesiologist: Optional[str] = None
    duration: Duration = Field(default_factory=Duration)
    complications: Optional[str] = None
    recovery_notes: Optional[str] = None
    hospital_name: Optional[str] = None
    pre_op_diagnosis: Optional[str] = None
    post_op_diagnosis: Optional[str] = None
    procedure_details: Optional[str] = None
    implants: List[str] = []
    pathology_findings: Optional[str] = None
    follow_up_instructions: Optional[str] = None


RECORD_SCHEMAS: Dict[RecordType, Type[RecordBase]] = {
    RecordType.VITALS: VitalsPayload,
    RecordType.MEDICATIONS: MedicationPayload,
    RecordType.IMMUNIZATIONS: ImmunizationPayload,
    RecordType.LAB_RESULTS: LabResultPayload,
    RecordType.RADIOLOGY_REPORTS: RadiologyPayload,
    RecordType.HOSPITAL_RECORDS: HospitalPayload,
    RecordType.SURGERY_RECORDS: SurgeryPayload,
}

# Type-specific date used as the record date when none is given
PRIMARY_DATE_FIELD = {
    RecordType.MEDICATIONS: "start_date",
    RecordType.IMMUNIZATIONS: "date_administered",
    RecordType.LAB_RESULTS: "date_of_test",
    RecordType.HOSPITAL_RECORDS: "admission_date",
}


def parse_payload(record_type: RecordType, raw: dict) -> RecordBase:
    """Validate a raw payload; raises pydantic.ValidationError."""
    return RECORD_SCHEMAS[RecordType(record_type)].model_validate(raw)


def serialize_record(record: MedicalRecord) -> dict:
    """Flatten a record: common columns plus the type payload at top level."""
    data = dict(record.data or {})
    data.update({
        "id": record.id,
        "record_type": RecordType(record.record_type).value,
        "patient_id": record.patient_id,
        "provider_id": record.provider_id,
        "consultation_id": record.consultation_id,
        "date": record.date,
        "notes": record.notes,
        "created_by_patient": record.created_by_patient,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    })
    return data
