"""
API Module
FastAPI routers for the MedTracker application
"""

from config import settings
from api.auth import router as auth_router
from api.users import router as users_router
from api.caregiver import router as caregiver_router
from api.medications import router as medications_router
from api.medication_logs import router as medication_logs_router
from api.medication_history import router as medication_history_router
from api.vital_signs import router as vital_signs_router
from api.appointments import router as appointments_router
from api.exams import router as exams_router
from api.prescriptions import router as prescriptions_router
from api.notifications import router as notifications_router
from api.adherence import router as adherence_router
from api.ws import router as ws_router

from api.deps import (
    get_db,
    get_current_user,
    get_patient_id,
    get_audit_context,
    pagination_params,
    services,
)


__all__ = [
    # Routers
    "auth_router",
    "users_router",
    "caregiver_router",
    "medications_router",
    "medication_logs_router",
    "medication_history_router",
    "vital_signs_router",
    "appointments_router",
    "exams_router",
    "prescriptions_router",
    "notifications_router",
    "adherence_router",
    "ws_router",
    # Dependencies
    "get_db",
    "get_current_user",
    "get_patient_id",
    "get_audit_context",
    "pagination_params",
    "services",
]


def include_routers(app):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    prefix = settings.API_PREFIX
    app.include_router(auth_router, prefix=prefix)
    app.include_router(users_router, prefix=prefix)
    app.include_router(caregiver_router, prefix=prefix)
    app.include_router(medications_router, prefix=prefix)
    app.include_router(medication_logs_router, prefix=prefix)
    app.include_router(medication_history_router, prefix=prefix)
    app.include_router(vital_signs_router, prefix=prefix)
    app.include_router(appointments_router, prefix=prefix)
    app.include_router(exams_router, prefix=prefix)
    app.include_router(prescriptions_router, prefix=prefix)
    app.include_router(notifications_router, prefix=prefix)
    app.include_router(adherence_router, prefix=prefix)
    app.include_router(ws_router)
