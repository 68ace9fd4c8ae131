"""
Medication History API Router
Dose annotations: notes, side effects, effectiveness
"""

from typing import List, Optional
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
from api.schemas.medication_log import (
    HistoryWithLogResponse,
    MedicationHistoryCreate,
    MedicationHistoryUpdate,
    MedicationHistoryResponse,
    MedicationLogResponse,
)
from services.audit_service import AuditContext
from services.errors import ServiceError
import models


router = APIRouter(prefix="/medication-history", tags=["medication-history"])


@router.get("", response_model=List[MedicationHistoryResponse])
async def get_medication_history(
    medication_id: Optional[int] = Query(None),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    log_service = services.get_medication_log_service()
    return await log_service.get_history(patient_id, db, medication_id=medication_id)


@router.post("", response_model=HistoryWithLogResponse, status_code=status.HTTP_201_CREATED)
async def create_medication_history(
    data: MedicationHistoryCreate,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    context: AuditContext = Depends(get_audit_context),
    db: Session = Depends(get_db)
):
    """
    Record a dose annotation

    With medication_log_id the referenced dose is confirmed taken as a
    second step. That step may fail (e.g. overdue without a reason) after
    the annotation was already saved.
    """
    if data.medication_log_id is None and data.medication_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="medication_log_id or medication_id is required"
        )

    log_service = services.get_medication_log_service()

    try:
        history, log = await log_service.create_history(
            db,
            actor=user,
            patient_id=patient_id,
            data=data.model_dump(),
            context=context,
        )
    except ServiceError as e:
        raise service_error_to_http(e)

    return HistoryWithLogResponse(
        history=MedicationHistoryResponse.model_validate(history),
        log=MedicationLogResponse.from_model(log) if log else None,
    )


@router.put("/{history_id}", response_model=MedicationHistoryResponse)
async def update_medication_history(
    history_id: int,
    data: MedicationHistoryUpdate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    log_service = services.get_medication_log_service()

    try:
        return await log_service.update_history(
            history_id, patient_id, data.model_dump(exclude_unset=True), db
        )
    except ServiceError as e:
        raise service_error_to_http(e)


@router.delete("/{history_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medication_history(
    history_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    log_service = services.get_medication_log_service()

    try:
        await log_service.delete_history(history_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)
