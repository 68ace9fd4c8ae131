"""
Medication Schemas
Pydantic models for medication-related API requests and responses
"""

import re
from typing import Optional, List
from datetime import datetime, date
from pydantic import BaseModel, Field, ConfigDict, field_validator


TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ==================== BASE SCHEMAS ====================

class MedicationBase(BaseModel):
    """Base medication schema"""
    name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)


# ==================== REQUEST SCHEMAS ====================

class MedicationCreate(MedicationBase):
    """Schema for creating a new medication with its daily dose times"""
    schedules: List[str] = Field(..., min_length=1, max_length=24)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = Field(None, max_length=2000)

    @field_validator("schedules")
    @classmethod
    def check_times(cls, value: List[str]) -> List[str]:
        return _check_times(value)


class MedicationUpdate(BaseModel):
    """Schema for updating medication; schedules replaces all dose times"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[str] = Field(None, min_length=1, max_length=100)
    schedules: Optional[List[str]] = Field(None, min_length=1, max_length=24)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = Field(None, max_length=2000)

    @field_validator("schedules")
    @classmethod
    def check_times(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return None if value is None else _check_times(value)


def _check_times(value: List[str]) -> List[str]:
    for item in value:
        if not re.match(TIME_OF_DAY_PATTERN, item):
            raise ValueError(f"Invalid time {item!r}, expected HH:MM")
    return value


# ==================== RESPONSE SCHEMAS ====================

class MedicationResponse(MedicationBase):
    """Schema for medication response"""
    id: int
    patient_id: int
    schedules: List[str] = []
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    instructions: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, medication) -> "MedicationResponse":
        return cls(
            id=medication.id,
            patient_id=medication.patient_id,
            name=medication.name,
            dosage=medication.dosage,
            frequency=medication.frequency,
            schedules=sorted(medication.schedule_times),
            start_date=medication.start_date,
            end_date=medication.end_date,
            instructions=medication.instructions,
            is_active=bool(medication.is_active),
            created_at=medication.created_at,
            updated_at=medication.updated_at,
        )


class HasTakenLogsResponse(BaseModel):
    medication_id: int
    has_taken_logs: bool
