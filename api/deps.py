"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from typing import Optional
from fastapi import Depends, HTTPException, status, Header, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from database import get_db
import models
from services.audit_service import AuditContext
from services.errors import (
    AccessDeniedError,
    AuthenticationError,
    InvalidTransitionError,
    NotFoundError,
)


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> models.User:
    """
    Authenticated user from the Bearer token
    Missing token is 401, an invalid or expired one 403
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    from services.auth_service import auth_service

    try:
        return auth_service.get_user_from_token(credentials.credentials, db)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )


async def get_patient_id(
    user: models.User = Depends(get_current_user),
    x_patient_id: Optional[int] = Header(None, alias="X-Patient-Id"),
    db: Session = Depends(get_db)
) -> int:
    """
    Effective patient of the request: the caller for patients, otherwise
    the patient selected through X-Patient-Id
    """
    from services.care_service import care_service

    try:
        return care_service.resolve_patient_id(user, x_patient_id, db)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AccessDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


async def get_audit_context(
    request: Request,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
) -> AuditContext:
    return AuditContext.from_request(request, user_id=user.id, patient_id=patient_id)


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0)
) -> dict:
    """
    Common pagination parameters
    """
    return {"limit": limit, "offset": offset}


def service_error_to_http(exc: Exception) -> HTTPException:
    """Map a domain error raised by a service to its HTTP response"""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AccessDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


class ServiceDependency:
    """
    Dependency injection for services
    """

    @staticmethod
    def get_auth_service():
        from services.auth_service import auth_service
        return auth_service

    @staticmethod
    def get_care_service():
        from services.care_service import care_service
        return care_service

    @staticmethod
    def get_medication_service():
        from services.medication_service import medication_service
        return medication_service

    @staticmethod
    def get_medication_log_service():
        from services.medication_log_service import medication_log_service
        return medication_log_service

    @staticmethod
    def get_adherence_service():
        from services.adherence_service import adherence_service
        return adherence_service

    @staticmethod
    def get_notification_service():
        from services.notification_service import notification_service
        return notification_service

    @staticmethod
    def get_health_records_service():
        from services.health_records_service import health_records_service
        return health_records_service


# Service dependency instances
services = ServiceDependency()
