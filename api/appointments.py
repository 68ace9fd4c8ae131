"""
Appointments API Router
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_patient_id, services, service_error_to_http
from api.schemas.health_records import AppointmentCreate, AppointmentResponse, AppointmentUpdate
from services.errors import ServiceError


router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=List[AppointmentResponse])
async def get_appointments(
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.get_records("appointments", patient_id, db)


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.add_record("appointments", patient_id, data.model_dump(), db)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """Reschedule or edit an appointment; completing or cancelling it stops its reminders"""
    health_records_service = services.get_health_records_service()

    try:
        return await health_records_service.update_record(
            "appointments", appointment_id, patient_id, data.model_dump(exclude_unset=True), db
        )
    except ServiceError as e:
        raise service_error_to_http(e)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        await health_records_service.delete_record("appointments", appointment_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)
