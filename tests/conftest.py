"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all MedTracker tests.
Fixtures include database sessions, test clients, users with tokens and
medications with dose logs.
"""

import os
import sys
from datetime import date, datetime
from typing import Callable, Dict, Generator, Optional

# Settings are read at import time; point them at an in-memory database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["AUDIT_ASYNC_WRITES"] = "false"
os.environ["REMINDER_SCAN_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, create_db_engine, get_db
from models import (
    User, CareRelationship, Medication, MedicationSchedule, MedicationLog,
    ProfileType, MedicationLogStatus,
)
from services.audit_service import AuditWriterStats, audit_writer
from services.auth_service import create_access_token, get_password_hash
from services.notification_service import notification_service
from tests import TEST_DATABASE_URL, TEST_PASSWORD
from app import app


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """In-memory SQLite with foreign keys, one shared connection"""
    engine = create_db_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session"""
    session = session_factory()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def audit_to_test_db(session_factory, monkeypatch):
    """Audit entries are written inline into the test database"""
    monkeypatch.setattr(audit_writer, "session_factory", session_factory)
    monkeypatch.setattr(audit_writer, "async_writes", False)
    monkeypatch.setattr(audit_writer, "stats", AuditWriterStats())
    monkeypatch.setattr(notification_service, "registry", None)
    yield


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database override"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ==================== USER FIXTURES ====================

def make_user(db: Session, email: str, name: str, profile_type: ProfileType, share_code: Optional[str] = None) -> User:
    user = User(
        email=email,
        password=get_password_hash(TEST_PASSWORD),
        name=name,
        profile_type=profile_type,
        share_code=share_code,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User, patient_id: Optional[int] = None) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
    if patient_id is not None:
        headers["X-Patient-Id"] = str(patient_id)
    return headers


@pytest.fixture
def test_patient(db_session: Session) -> User:
    return make_user(db_session, "maria@example.com", "Maria Souza", ProfileType.PATIENT, share_code="MARIA123")


@pytest.fixture
def other_patient(db_session: Session) -> User:
    return make_user(db_session, "joao@example.com", "João Lima", ProfileType.PATIENT, share_code="JOAO4567")


@pytest.fixture
def test_caregiver(db_session: Session, test_patient: User) -> User:
    """Caregiver with an active relationship to test_patient"""
    caregiver = make_user(db_session, "pedro@example.com", "Pedro Souza", ProfileType.CAREGIVER)
    db_session.add(CareRelationship(patient_id=test_patient.id, caregiver_id=caregiver.id))
    db_session.commit()
    return caregiver


@pytest.fixture
def test_doctor(db_session: Session) -> User:
    return make_user(db_session, "dra.ana@example.com", "Dra. Ana", ProfileType.DOCTOR)


@pytest.fixture
def patient_headers(test_patient: User) -> Dict[str, str]:
    return auth_headers(test_patient)


@pytest.fixture
def caregiver_headers(test_caregiver: User, test_patient: User) -> Dict[str, str]:
    return auth_headers(test_caregiver, patient_id=test_patient.id)


# ==================== MEDICATION FIXTURES ====================

@pytest.fixture
def test_medication(db_session: Session, test_patient: User) -> Medication:
    """Active medication with two daily dose times"""
    medication = Medication(
        patient_id=test_patient.id,
        name="Losartana",
        dosage="50mg",
        frequency="2x ao dia",
        start_date=date(2020, 1, 1),
        is_active=True,
    )
    medication.schedules = [
        MedicationSchedule(scheduled_time="08:00"),
        MedicationSchedule(scheduled_time="20:00"),
    ]
    db_session.add(medication)
    db_session.commit()
    db_session.refresh(medication)
    return medication


@pytest.fixture
def make_log(db_session: Session, test_medication: Medication) -> Callable[..., MedicationLog]:
    """Factory for dose logs of test_medication at an arbitrary UTC time"""

    def _make_log(
        scheduled_at: datetime,
        status: MedicationLogStatus = MedicationLogStatus.PENDING,
        actual_at: Optional[datetime] = None,
        schedule_index: int = 0,
    ) -> MedicationLog:
        log = MedicationLog(
            medication_id=test_medication.id,
            schedule_id=test_medication.schedules[schedule_index].id,
            patient_id=test_medication.patient_id,
            scheduled_date_time=scheduled_at,
            actual_date_time=actual_at,
            status=status,
            delay_minutes=0,
        )
        db_session.add(log)
        db_session.commit()
        db_session.refresh(log)
        return log

    return _make_log


@pytest.fixture
def current_datetime() -> datetime:
    """Naive UTC now, truncated to the minute, for consistent testing"""
    return datetime.utcnow().replace(second=0, microsecond=0)


# ==================== MARKERS ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
