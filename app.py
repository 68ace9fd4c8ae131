"""
MedTracker Backend
FastAPI application: routers, lifespan-managed background services,
error envelope and health checks
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db, DatabaseHealthCheck

from api import include_routers
from api.deps import service_error_to_http
from services.audit_service import audit_writer
from services.connection_registry import ConnectionRegistry
from services.errors import ServiceError
from services.notification_service import notification_service
from services.reminder_service import run_reminder_loop

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: tables, audit writer, connection registry and (optionally)
    the reminder loop. Shutdown tears them down in reverse order.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENV})")

    try:
        init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    audit_writer.start()

    registry = ConnectionRegistry()
    app.state.connections = registry
    notification_service.registry = registry

    reminder_task = None
    if settings.REMINDER_SCAN_ENABLED:
        reminder_task = asyncio.create_task(run_reminder_loop(settings.REMINDER_SCAN_INTERVAL_SECONDS))

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    if reminder_task is not None:
        reminder_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reminder_task

    notification_service.registry = None
    await registry.close_all()
    audit_writer.stop()
    stats = audit_writer.stats
    logger.info(f"Audit writer stopped: {stats.written} written, {stats.failed} failed, {stats.dropped} dropped")


# ==================== APP INITIALIZATION ====================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## MedTracker API

    Medication adherence tracking for patients, caregivers and doctors.

    ### Features
    - **Medications**: daily dose times, inactivation instead of deletion once taken
    - **Dose logs**: taken / pending / overdue derived from scheduled and actual times
    - **Notifications**: reminders and intake notices fanned out to everyone caring for the patient
    - **Audit trail**: one immutable entry per notification-related state change
    - **Health records**: vital signs, appointments, exams and prescriptions
    - **Live updates**: WebSocket at `/ws?token=...`
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

include_routers(app)


# ==================== EXCEPTION HANDLERS ====================

def error_response(status_code: int, message: Any, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Error envelope shared by every handler"""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "timestamp": datetime.utcnow().isoformat()
        },
        headers=headers
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Domain errors a router did not translate itself"""
    http_exc = service_error_to_http(exc)
    logger.warning(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return error_response(http_exc.status_code, http_exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(500, str(exc) if settings.DEBUG else "An unexpected error occurred")


# ==================== HEALTH ENDPOINTS ====================

@app.get("/", tags=["Health"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health", tags=["Health"])
@app.get(f"{settings.API_PREFIX}/health", tags=["Health"])
async def health_check():
    """Database reachability, audit writer counters and live connections"""
    db_connected = DatabaseHealthCheck.is_connected()
    registry = getattr(app.state, "connections", None)

    return {
        "status": "healthy" if db_connected else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": {
                "status": "up" if db_connected else "down",
                "type": DatabaseHealthCheck.backend()
            },
            "audit": asdict(audit_writer.stats),
            "connections": len(registry) if registry is not None else 0,
        },
        "version": settings.APP_VERSION,
        "environment": settings.ENV
    }


# ==================== MAIN ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
