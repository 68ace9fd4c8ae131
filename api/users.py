"""
Users API Router
Profile edits and password changes on one's own account
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, services, service_error_to_http
from api.schemas.auth import PasswordChange, UserResponse, UserUpdate
from services.errors import ServiceError
import models


router = APIRouter(prefix="/users", tags=["users"])


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Edit the caller's profile; other accounts answer 403"""
    auth_service = services.get_auth_service()

    try:
        return await auth_service.update_profile(user, user_id, data.model_dump(exclude_unset=True), db)
    except (ServiceError, ValueError) as e:
        raise service_error_to_http(e)


@router.put("/{user_id}/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    user_id: int,
    data: PasswordChange,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    auth_service = services.get_auth_service()

    try:
        await auth_service.change_password(user, user_id, data.current_password, data.new_password, db)
    except (ServiceError, ValueError) as e:
        raise service_error_to_http(e)
