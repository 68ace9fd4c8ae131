"""
Prescriptions API Router
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_patient_id, services, service_error_to_http
from api.schemas.health_records import PrescriptionCreate, PrescriptionResponse, PrescriptionUpdate
from services.errors import ServiceError


router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])


@router.get("", response_model=List[PrescriptionResponse])
async def get_prescriptions(
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.get_records("prescriptions", patient_id, db)


@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    data: PrescriptionCreate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.add_record("prescriptions", patient_id, data.model_dump(), db)


@router.put("/{prescription_id}", response_model=PrescriptionResponse)
async def update_prescription(
    prescription_id: int,
    data: PrescriptionUpdate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        return await health_records_service.update_record(
            "prescriptions", prescription_id, patient_id, data.model_dump(exclude_unset=True), db
        )
    except ServiceError as e:
        raise service_error_to_http(e)


@router.delete("/{prescription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prescription(
    prescription_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        await health_records_service.delete_record("prescriptions", prescription_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)
