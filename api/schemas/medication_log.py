"""
Medication Log Schemas
Pydantic models for dose logs, intake confirmation and dose history
"""

from typing import Annotated, Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from models import Effectiveness, MedicationLogStatus
from tools.dose_status import (
    Overdue,
    Taken,
    derive_dose_status,
    describe_dose,
    format_clock,
)


# ==================== DOSE STATE ====================

class TakenDose(BaseModel):
    status: Literal["taken"] = "taken"
    actual_at: datetime
    delay_minutes: int


class PendingDose(BaseModel):
    status: Literal["pending"] = "pending"


class OverdueDose(BaseModel):
    status: Literal["overdue"] = "overdue"
    late_minutes: int


DoseStateSchema = Annotated[Union[TakenDose, PendingDose, OverdueDose], Field(discriminator="status")]


def dose_state_schema(state) -> Union[TakenDose, PendingDose, OverdueDose]:
    if isinstance(state, Taken):
        return TakenDose(actual_at=state.actual_at, delay_minutes=state.delay_minutes)
    if isinstance(state, Overdue):
        return OverdueDose(late_minutes=state.late_minutes)
    return PendingDose()


# ==================== REQUEST SCHEMAS ====================

class MedicationLogUpdate(BaseModel):
    """
    Schema for confirming a dose. Only "taken" is accepted; overdue doses
    need a delay_reason.
    """
    status: Literal["taken"] = "taken"
    actual_date_time: Optional[datetime] = None
    delay_reason: Optional[str] = Field(None, max_length=1000)


class MedicationHistoryCreate(BaseModel):
    """Schema for annotating a dose; with medication_log_id the dose is also confirmed"""
    medication_log_id: Optional[int] = None
    medication_id: Optional[int] = None
    scheduled_date_time: Optional[datetime] = None
    actual_date_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)
    side_effects: Optional[str] = Field(None, max_length=2000)
    effectiveness: Optional[Effectiveness] = None
    symptoms: Optional[str] = Field(None, max_length=2000)
    additional_info: Optional[str] = Field(None, max_length=2000)
    delay_reason: Optional[str] = Field(None, max_length=1000)


class MedicationHistoryUpdate(BaseModel):
    """Schema for editing an annotation; fields sent as null are cleared"""
    actual_date_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)
    side_effects: Optional[str] = Field(None, max_length=2000)
    effectiveness: Optional[Effectiveness] = None
    symptoms: Optional[str] = Field(None, max_length=2000)
    additional_info: Optional[str] = Field(None, max_length=2000)


# ==================== RESPONSE SCHEMAS ====================

class MedicationLogResponse(BaseModel):
    """Schema for a dose log"""
    id: int
    medication_id: int
    medication_name: Optional[str] = None
    dosage: Optional[str] = None
    patient_id: int
    scheduled_date_time: datetime
    actual_date_time: Optional[datetime] = None
    status: MedicationLogStatus
    delay_minutes: int = 0
    delay_reason: Optional[str] = None
    confirmed_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, log) -> "MedicationLogResponse":
        return cls(
            id=log.id,
            medication_id=log.medication_id,
            medication_name=log.medication.name if log.medication else None,
            dosage=log.medication.dosage if log.medication else None,
            patient_id=log.patient_id,
            scheduled_date_time=log.scheduled_date_time,
            actual_date_time=log.actual_date_time,
            status=log.status,
            delay_minutes=log.delay_minutes or 0,
            delay_reason=log.delay_reason,
            confirmed_by=log.confirmed_by,
        )


class TodayLogResponse(MedicationLogResponse):
    """Dose of today with its derived state and card wording"""
    scheduled_time: str
    dose: DoseStateSchema
    message: str

    @classmethod
    def from_model(cls, log, now: Optional[datetime] = None) -> "TodayLogResponse":
        state = derive_dose_status(log.scheduled_date_time, log.actual_date_time, now)
        base = MedicationLogResponse.from_model(log)
        return cls(
            **base.model_dump(),
            scheduled_time=format_clock(log.scheduled_date_time),
            dose=dose_state_schema(state),
            message=describe_dose(state),
        )


class MedicationHistoryResponse(BaseModel):
    id: int
    medication_log_id: Optional[int] = None
    medication_id: int
    patient_id: int
    scheduled_date_time: Optional[datetime] = None
    actual_date_time: Optional[datetime] = None
    notes: Optional[str] = None
    side_effects: Optional[str] = None
    effectiveness: Optional[Effectiveness] = None
    symptoms: Optional[str] = None
    additional_info: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HistoryWithLogResponse(BaseModel):
    history: MedicationHistoryResponse
    log: Optional[MedicationLogResponse] = None

