"""
Health Record Schemas
Pydantic models for vital signs, appointments, exams and prescriptions
"""

from typing import Dict, Literal, Optional, Type
from datetime import datetime, date
from pydantic import BaseModel, Field, ConfigDict


# ==================== VITAL SIGNS ====================

class VitalSignBase(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)
    measured_at: Optional[datetime] = None


class BloodPressureCreate(VitalSignBase):
    systolic: int = Field(..., ge=50, le=300)
    diastolic: int = Field(..., ge=30, le=200)
    heart_rate: Optional[int] = Field(None, ge=20, le=250)


class GlucoseCreate(VitalSignBase):
    glucose_level: float = Field(..., ge=10, le=1000)
    measurement_type: Literal["fasting", "post_meal", "random", "bedtime"]


class HeartRateCreate(VitalSignBase):
    heart_rate: int = Field(..., ge=20, le=250)
    measurement_type: Literal["resting", "exercise", "recovery"] = "resting"


class TemperatureCreate(VitalSignBase):
    temperature: float = Field(..., ge=30, le=45)
    measurement_method: Literal["oral", "axillary", "rectal", "ear", "forehead"] = "oral"


class WeightCreate(VitalSignBase):
    weight: float = Field(..., gt=0, le=500)
    height: Optional[float] = Field(None, gt=0, le=300)


VITAL_SIGN_SCHEMAS: Dict[str, Type[VitalSignBase]] = {
    "blood-pressure": BloodPressureCreate,
    "glucose": GlucoseCreate,
    "heart-rate": HeartRateCreate,
    "temperature": TemperatureCreate,
    "weight": WeightCreate,
}


class VitalSignResponse(BaseModel):
    """Reading of any kind; fields of other kinds are left out"""
    id: int
    patient_id: int
    measured_at: datetime
    notes: Optional[str] = None
    systolic: Optional[int] = None
    diastolic: Optional[int] = None
    heart_rate: Optional[int] = None
    glucose_level: Optional[float] = None
    measurement_type: Optional[str] = None
    temperature: Optional[float] = None
    measurement_method: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


# ==================== APPOINTMENTS ====================

class AppointmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    doctor_name: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    appointment_date: datetime
    notes: Optional[str] = None
    status: Literal["scheduled", "completed", "cancelled"] = "scheduled"


class AppointmentUpdate(BaseModel):
    """Partial update; only the fields sent are changed"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    doctor_name: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    appointment_date: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[Literal["scheduled", "completed", "cancelled"]] = None


class AppointmentResponse(AppointmentCreate):
    id: int
    patient_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== EXAMS ====================

class ExamRequestCreate(BaseModel):
    doctor_name: str = Field(..., min_length=1, max_length=255)
    exam_category: Optional[str] = Field(None, max_length=100)
    specific_exams: Optional[str] = None
    validity_date: Optional[date] = None
    clinical_indication: Optional[str] = None
    urgency: Literal["normal", "urgent"] = "normal"


class ExamRequestUpdate(BaseModel):
    doctor_name: Optional[str] = Field(None, min_length=1, max_length=255)
    exam_category: Optional[str] = Field(None, max_length=100)
    specific_exams: Optional[str] = None
    validity_date: Optional[date] = None
    clinical_indication: Optional[str] = None
    urgency: Optional[Literal["normal", "urgent"]] = None
    status: Optional[Literal["pending", "scheduled", "completed", "cancelled"]] = None


class ExamSchedule(BaseModel):
    """Booking of a pending exam request"""
    test_date: datetime
    location: Optional[str] = Field(None, max_length=255)


class ExamRequestResponse(ExamRequestCreate):
    id: int
    patient_id: int
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    test_date: datetime
    results: Optional[str] = None
    file_path: Optional[str] = None
    preparation_notes: Optional[str] = None
    status: Literal["scheduled", "completed", "cancelled"] = "scheduled"
    exam_request_id: Optional[int] = None


class ExamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    test_date: Optional[datetime] = None
    results: Optional[str] = None
    file_path: Optional[str] = None
    preparation_notes: Optional[str] = None
    status: Optional[Literal["scheduled", "completed", "cancelled"]] = None
    exam_request_id: Optional[int] = None


class ExamResponse(ExamCreate):
    id: int
    patient_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExamScheduleResponse(BaseModel):
    test: ExamResponse
    exam_request: ExamRequestResponse


# ==================== PRESCRIPTIONS ====================

class PrescriptionCreate(BaseModel):
    doctor_name: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    file_path: Optional[str] = None
    prescription_date: date


class PrescriptionUpdate(BaseModel):
    doctor_name: Optional[str] = Field(None, min_length=1, max_length=255)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    file_path: Optional[str] = None
    prescription_date: Optional[date] = None


class PrescriptionResponse(PrescriptionCreate):
    id: int
    patient_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
