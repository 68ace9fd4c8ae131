"""
Medications API Router
Endpoints for medication management
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from api.deps import (
    get_db,
    get_current_user,
    get_patient_id,
    get_audit_context,
    services,
    service_error_to_http,
)
from api.schemas.medication import (
    HasTakenLogsResponse,
    MedicationCreate,
    MedicationResponse,
    MedicationUpdate,
)
from services.audit_service import AuditContext
from services.errors import MedicationInUseError, ServiceError
import models


router = APIRouter(prefix="/medications", tags=["medications"])


@router.get("", response_model=List[MedicationResponse])
async def get_medications(
    active_only: bool = Query(False, description="Only return active medications"),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """
    Medications of the effective patient
    """
    medication_service = services.get_medication_service()
    medications = await medication_service.get_medications(patient_id, db, active_only=active_only)
    return [MedicationResponse.from_model(m) for m in medications]


@router.post("", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
async def create_medication(
    medication_data: MedicationCreate,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    context: AuditContext = Depends(get_audit_context),
    db: Session = Depends(get_db)
):
    """
    Add a new medication for the effective patient

    - **name**: Medication name
    - **dosage**: Dosage (e.g., "500mg")
    - **frequency**: Frequency description
    - **schedules**: Daily dose times, "HH:MM"
    """
    medication_service = services.get_medication_service()

    try:
        medication = await medication_service.add_medication(
            db,
            actor=user,
            patient_id=patient_id,
            name=medication_data.name,
            dosage=medication_data.dosage,
            frequency=medication_data.frequency,
            schedules=medication_data.schedules,
            start_date=medication_data.start_date,
            end_date=medication_data.end_date,
            instructions=medication_data.instructions,
            context=context,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return MedicationResponse.from_model(medication)


@router.put("/{medication_id}", response_model=MedicationResponse)
async def update_medication(
    medication_id: int,
    update_data: MedicationUpdate,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    context: AuditContext = Depends(get_audit_context),
    db: Session = Depends(get_db)
):
    medication_service = services.get_medication_service()
    updates = update_data.model_dump(exclude_unset=True, exclude={"schedules"})

    try:
        medication = await medication_service.update_medication(
            db,
            actor=user,
            medication_id=medication_id,
            patient_id=patient_id,
            updates=updates,
            schedules=update_data.schedules,
            context=context,
        )
    except (ServiceError, ValueError) as e:
        raise service_error_to_http(e)

    return MedicationResponse.from_model(medication)


@router.delete("/{medication_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medication(
    medication_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """
    Delete a medication that was never taken

    Medications with taken doses must be inactivated instead (400).
    """
    medication_service = services.get_medication_service()

    try:
        await medication_service.delete_medication(db, medication_id, patient_id)
    except MedicationInUseError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "should_inactivate": True},
        )
    except ServiceError as e:
        raise service_error_to_http(e)


@router.post("/{medication_id}/inactivate", response_model=MedicationResponse)
async def inactivate_medication(
    medication_id: int,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    context: AuditContext = Depends(get_audit_context),
    db: Session = Depends(get_db)
):
    return await _set_active(medication_id, False, user, patient_id, context, db)


@router.post("/{medication_id}/reactivate", response_model=MedicationResponse)
async def reactivate_medication(
    medication_id: int,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    context: AuditContext = Depends(get_audit_context),
    db: Session = Depends(get_db)
):
    return await _set_active(medication_id, True, user, patient_id, context, db)


async def _set_active(medication_id, active, user, patient_id, context, db) -> MedicationResponse:
    medication_service = services.get_medication_service()

    try:
        medication = await medication_service.set_active(
            db,
            actor=user,
            medication_id=medication_id,
            patient_id=patient_id,
            active=active,
            context=context,
        )
    except ServiceError as e:
        raise service_error_to_http(e)

    return MedicationResponse.from_model(medication)


@router.get("/{medication_id}/has-taken-logs", response_model=HasTakenLogsResponse)
async def has_taken_logs(
    medication_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """Whether any dose was taken, i.e. whether delete is still possible"""
    medication_service = services.get_medication_service()

    try:
        taken = await medication_service.has_taken_logs(medication_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)

    return HasTakenLogsResponse(medication_id=medication_id, has_taken_logs=taken)
