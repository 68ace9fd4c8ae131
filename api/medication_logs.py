"""
Medication Logs API Router
Endpoints for scheduled doses and intake confirmation
"""

from datetime import date, datetime
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
    MedicationLogResponse,
    MedicationLogUpdate,
    TodayLogResponse,
)
from services.audit_service import AuditContext
from services.errors import ServiceError
import models


router = APIRouter(prefix="/medication-logs", tags=["medication-logs"])


@router.get("", response_model=List[MedicationLogResponse])
async def get_medication_logs(
    start_date: Optional[date] = Query(None, description="First local date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last local date (inclusive)"),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date"
        )

    log_service = services.get_medication_log_service()
    logs = await log_service.get_logs(patient_id, db, start_date=start_date, end_date=end_date)
    return [MedicationLogResponse.from_model(log) for log in logs]


@router.get("/today", response_model=List[TodayLogResponse])
async def get_today_logs(
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """
    Today's doses with their derived state

    Missing doses of active medications are generated on the fly; order is
    overdue, pending, taken, then time of day.
    """
    log_service = services.get_medication_log_service()
    now = datetime.utcnow()
    logs = await log_service.get_today_logs(patient_id, db, now=now)
    return [TodayLogResponse.from_model(log, now) for log in logs]


@router.put("/{log_id}", response_model=MedicationLogResponse)
async def confirm_medication_log(
    log_id: int,
    update: MedicationLogUpdate,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    context: AuditContext = Depends(get_audit_context),
    db: Session = Depends(get_db)
):
    """
    Confirm a dose as taken

    - 404 when the log is not the patient's
    - 409 when it is already taken
    - 400 when it is overdue and no delay_reason is given, or when
      actual_date_time is in the future
    """
    log_service = services.get_medication_log_service()

    try:
        log = await log_service.confirm_taken(
            db,
            actor=user,
            log_id=log_id,
            patient_id=patient_id,
            actual_at=update.actual_date_time,
            delay_reason=update.delay_reason,
            context=context,
        )
    except ServiceError as e:
        raise service_error_to_http(e)

    return MedicationLogResponse.from_model(log)
