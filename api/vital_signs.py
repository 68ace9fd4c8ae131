"""
Vital Signs API Router
Blood pressure, glucose, heart rate, temperature and weight readings
"""

from typing import Any, Dict, List
from fastapi import APIRouter, Body, Depends, HTTPException, status, Path
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from api.deps import get_db, get_patient_id, services, service_error_to_http
from api.schemas.health_records import VITAL_SIGN_SCHEMAS, VitalSignBase, VitalSignResponse
from services.errors import ServiceError


router = APIRouter(prefix="/vital-signs", tags=["vital-signs"])

VITAL_SIGN_TYPES = "|".join(VITAL_SIGN_SCHEMAS)


def _check_type(vital_type: str) -> str:
    if vital_type not in VITAL_SIGN_SCHEMAS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown vital sign type '{vital_type}' (expected {VITAL_SIGN_TYPES})"
        )
    return vital_type


def _validate(vital_type: str, payload: Dict[str, Any]) -> VitalSignBase:
    """Validate a body against the schema of the kind"""
    schema = VITAL_SIGN_SCHEMAS[_check_type(vital_type)]
    try:
        data = schema.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    return data


@router.get("/{vital_type}", response_model=List[VitalSignResponse])
async def get_vital_signs(
    vital_type: str = Path(..., description=VITAL_SIGN_TYPES),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """Readings of one kind, newest first"""
    health_records_service = services.get_health_records_service()
    return await health_records_service.get_vital_signs(_check_type(vital_type), patient_id, db)


@router.post("/{vital_type}", response_model=VitalSignResponse, status_code=status.HTTP_201_CREATED)
async def add_vital_sign(
    vital_type: str = Path(..., description=VITAL_SIGN_TYPES),
    payload: Dict[str, Any] = Body(...),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """
    Record a reading; the body is validated against the schema of the kind
    """
    data = _validate(vital_type, payload)

    health_records_service = services.get_health_records_service()
    return await health_records_service.add_vital_sign(vital_type, patient_id, data.model_dump(), db)


@router.put("/{vital_type}/{reading_id}", response_model=VitalSignResponse)
async def update_vital_sign(
    reading_id: int,
    vital_type: str = Path(..., description=VITAL_SIGN_TYPES),
    payload: Dict[str, Any] = Body(...),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """Replace a reading; the body must be a complete reading of the kind"""
    data = _validate(vital_type, payload)
    health_records_service = services.get_health_records_service()

    try:
        return await health_records_service.update_vital_sign(
            vital_type, reading_id, patient_id, data.model_dump(exclude_unset=True), db
        )
    except ServiceError as e:
        raise service_error_to_http(e)


@router.delete("/{vital_type}/{reading_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vital_sign(
    reading_id: int,
    vital_type: str = Path(..., description=VITAL_SIGN_TYPES),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        await health_records_service.delete_vital_sign(_check_type(vital_type), reading_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)
