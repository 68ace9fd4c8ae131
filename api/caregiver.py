"""
Caregiver API Router
Links between caregivers and the patients they follow
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, services, service_error_to_http
from api.schemas.auth import PatientSummary, ShareCodeResponse, ShareCodeUse, SharedAccessResponse
from services.errors import ServiceError
import models


router = APIRouter(tags=["caregiver"])


@router.get("/caregiver/patients", response_model=List[PatientSummary])
async def get_my_patients(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Patients the caller can act on through an active care relationship"""
    care_service = services.get_care_service()
    return await care_service.get_patients(user.id, db)


@router.post("/caregiver/use-share-code", response_model=PatientSummary)
async def use_share_code(
    data: ShareCodeUse,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    care_service = services.get_care_service()

    try:
        return await care_service.use_share_code(user, data.share_code, db)
    except ServiceError as e:
        raise service_error_to_http(e)


@router.post("/patient/generate-share-code", response_model=ShareCodeResponse)
async def generate_share_code(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace the caller's share code; the old one stops working"""
    care_service = services.get_care_service()

    try:
        code = await care_service.regenerate_share_code(user, db)
    except ServiceError as e:
        raise service_error_to_http(e)
    return ShareCodeResponse(share_code=code)


@router.get("/patient/shared-access", response_model=List[SharedAccessResponse])
async def get_shared_access(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Caregivers and doctors currently following the caller"""
    care_service = services.get_care_service()

    try:
        links = await care_service.get_shared_access(user, db)
    except ServiceError as e:
        raise service_error_to_http(e)

    return [
        SharedAccessResponse(
            id=relationship.id,
            caregiver_id=caregiver.id,
            caregiver_name=caregiver.name,
            caregiver_email=caregiver.email,
            profile_type=caregiver.profile_type,
            created_at=relationship.created_at,
        )
        for relationship, caregiver in links
    ]


@router.delete("/patient/shared-access/{access_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_shared_access(
    access_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    care_service = services.get_care_service()

    try:
        await care_service.revoke_shared_access(user, access_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)
