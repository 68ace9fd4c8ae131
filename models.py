"""
Database Models
SQLAlchemy ORM models for MedTracker
"""

from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, ForeignKey, Text, Date, Enum, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum

from database import Base


# ==================== ENUMS ====================

class ProfileType(str, PyEnum):
    """Kind of account; everyone but patients acts on behalf of a patient"""
    PATIENT = "patient"
    CAREGIVER = "caregiver"
    DOCTOR = "doctor"
    FAMILY = "family"
    NURSE = "nurse"


class MedicationLogStatus(str, PyEnum):
    """Status of a scheduled medication dose"""
    TAKEN = "taken"
    PENDING = "pending"
    OVERDUE = "overdue"
    MISSED = "missed"


class Effectiveness(str, PyEnum):
    """Patient-reported effectiveness of a dose"""
    VERY_EFFECTIVE = "very_effective"
    EFFECTIVE = "effective"
    SOMEWHAT_EFFECTIVE = "somewhat_effective"
    NOT_EFFECTIVE = "not_effective"


class CareRelationshipStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class NotificationPriority(str, PyEnum):
    """Notification priority levels"""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


# ==================== USERS ====================

class User(Base):
    """Account for patients, caregivers and doctors"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # hashed
    name = Column(String(255), nullable=False)
    age = Column(Integer)
    weight = Column(Float)
    whatsapp = Column(String(30))
    gender = Column(String(20))
    profile_type = Column(Enum(ProfileType), nullable=False, default=ProfileType.PATIENT)
    crm = Column(String(30))  # doctor registration number
    photo = Column(Text)
    share_code = Column(String(16), unique=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    medications = relationship("Medication", back_populates="patient", cascade="all, delete-orphan")

    @property
    def is_patient(self) -> bool:
        return self.profile_type == ProfileType.PATIENT


class CareRelationship(Base):
    """Grants a caregiver access to a patient's records"""
    __tablename__ = "care_relationships"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    caregiver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(Enum(CareRelationshipStatus), default=CareRelationshipStatus.ACTIVE)
    created_at = Column(DateTime, default=datetime.utcnow)

    patient = relationship("User", foreign_keys=[patient_id])
    caregiver = relationship("User", foreign_keys=[caregiver_id])

    __table_args__ = (
        UniqueConstraint("patient_id", "caregiver_id", name="uq_care_relationship_pair"),
    )


# ==================== MEDICATIONS ====================

class Medication(Base):
    """Medication prescribed to a patient; inactivated, never deleted once taken"""
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    start_date = Column(Date, default=lambda: datetime.utcnow().date())
    end_date = Column(Date)
    instructions = Column(Text)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    patient = relationship("User", back_populates="medications")
    schedules = relationship("MedicationSchedule", back_populates="medication", cascade="all, delete-orphan")
    logs = relationship("MedicationLog", back_populates="medication", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_medications_patient_active", "patient_id", "is_active"),
    )

    @property
    def schedule_times(self) -> list:
        return [s.scheduled_time for s in self.schedules if s.is_active]

    def is_current_on(self, day) -> bool:
        """Whether the medication should generate doses on the given local date"""
        if not self.is_active:
            return False
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True


class MedicationSchedule(Base):
    """Daily dose time ("HH:MM" in display timezone) of a medication"""
    __tablename__ = "medication_schedules"

    id = Column(Integer, primary_key=True, index=True)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    scheduled_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    medication = relationship("Medication", back_populates="schedules")


class MedicationLog(Base):
    """One scheduled dose instance; times are naive UTC"""
    __tablename__ = "medication_logs"

    id = Column(Integer, primary_key=True, index=True)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    schedule_id = Column(Integer, ForeignKey("medication_schedules.id"))
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    scheduled_date_time = Column(DateTime, nullable=False)
    actual_date_time = Column(DateTime)
    status = Column(Enum(MedicationLogStatus), nullable=False, default=MedicationLogStatus.PENDING)
    delay_minutes = Column(Integer, default=0)  # negative = early
    delay_reason = Column(Text)
    confirmed_by = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    medication = relationship("Medication", back_populates="logs")
    schedule = relationship("MedicationSchedule")

    __table_args__ = (
        UniqueConstraint("schedule_id", "scheduled_date_time", name="uq_medication_log_dose"),
        Index("ix_medication_logs_patient_date", "patient_id", "scheduled_date_time"),
        Index("ix_medication_logs_status", "status"),
    )


class MedicationHistory(Base):
    """Append-only annotation of a dose"""
    __tablename__ = "medication_history"

    id = Column(Integer, primary_key=True, index=True)
    medication_log_id = Column(Integer, ForeignKey("medication_logs.id"))
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    scheduled_date_time = Column(DateTime)
    actual_date_time = Column(DateTime)
    notes = Column(Text)
    side_effects = Column(Text)
    effectiveness = Column(Enum(Effectiveness))
    symptoms = Column(Text)
    additional_info = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)

    medication = relationship("Medication")


# ==================== HEALTH RECORDS ====================

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    doctor_name = Column(String(255))
    location = Column(String(255))
    appointment_date = Column(DateTime, nullable=False)
    notes = Column(Text)
    status = Column(String(30), default="scheduled")
    created_at = Column(DateTime, default=datetime.utcnow)


class ExamRequest(Base):
    """Exam ordered by a doctor, fulfilled by one or more tests"""
    __tablename__ = "exam_requests"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_name = Column(String(255), nullable=False)
    exam_category = Column(String(100))
    specific_exams = Column(Text)
    validity_date = Column(Date)
    clinical_indication = Column(Text)
    urgency = Column(String(20), default="normal")
    status = Column(String(30), default="pending")
    created_at = Column(DateTime, default=datetime.utcnow)


class MedicalTest(Base):
    """Exam result or appointment for an exam"""
    __tablename__ = "tests"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    exam_request_id = Column(Integer, ForeignKey("exam_requests.id"))
    name = Column(String(255), nullable=False)
    type = Column(String(100))
    location = Column(String(255))
    test_date = Column(DateTime, nullable=False)
    results = Column(Text)
    file_path = Column(Text)
    preparation_notes = Column(Text)
    status = Column(String(30), default="scheduled")
    created_at = Column(DateTime, default=datetime.utcnow)


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    file_path = Column(Text)
    prescription_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ==================== VITAL SIGNS ====================

class BloodPressureReading(Base):
    __tablename__ = "blood_pressure_readings"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    systolic = Column(Integer, nullable=False)
    diastolic = Column(Integer, nullable=False)
    heart_rate = Column(Integer)
    notes = Column(Text)
    measured_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


class GlucoseReading(Base):
    __tablename__ = "glucose_readings"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    glucose_level = Column(Float, nullable=False)
    measurement_type = Column(String(30), nullable=False)  # fasting, post_meal, random, bedtime
    notes = Column(Text)
    measured_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


class HeartRateReading(Base):
    __tablename__ = "heart_rate_readings"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    heart_rate = Column(Integer, nullable=False)
    measurement_type = Column(String(30), default="resting")
    notes = Column(Text)
    measured_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


class TemperatureReading(Base):
    __tablename__ = "temperature_readings"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    temperature = Column(Float, nullable=False)
    measurement_method = Column(String(30), default="oral")
    notes = Column(Text)
    measured_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


class WeightReading(Base):
    __tablename__ = "weight_readings"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    weight = Column(Float, nullable=False)
    height = Column(Float)
    notes = Column(Text)
    measured_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


# ==================== NOTIFICATIONS ====================

class GlobalNotification(Base):
    """Notification definition, delivered through per-user rows"""
    __tablename__ = "global_notifications"

    id = Column(Integer, primary_key=True, index=True)

    # Actor and subject
    user_id = Column(Integer, nullable=False)
    user_name = Column(String(255), nullable=False)
    patient_id = Column(Integer, nullable=False)
    patient_name = Column(String(255), nullable=False)

    # Content
    type = Column(String(50), nullable=False)
    subtype = Column(String(50))
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Related entity
    related_id = Column(Integer)
    related_type = Column(String(50))
    related_item_name = Column(String(255))

    # Priority and timing
    priority = Column(String(20), default=NotificationPriority.NORMAL.value)
    urgency_score = Column(Integer, default=0)
    original_scheduled_time = Column(DateTime)
    notification_trigger_time = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Processing
    processed_at = Column(DateTime)
    distributed_at = Column(DateTime)
    distribution_count = Column(Integer, default=0)
    batch_id = Column(String(100))
    processing_node = Column(String(50))

    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", Text)
    deduplication_key = Column(String(255), index=True)
    is_active = Column(Boolean, default=True)
    retry_count = Column(Integer, default=0)
    last_error = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    deliveries = relationship("UserNotification", back_populates="global_notification", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_global_notifications_patient", "patient_id", "created_at"),
    )


class UserNotification(Base):
    """Per-user delivery record of a global notification"""
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    global_notification_id = Column(Integer, ForeignKey("global_notifications.id"), nullable=False)

    # Cached user and access data
    user_profile_type = Column(String(20))
    user_name = Column(String(255))
    access_type = Column(String(20))
    access_level = Column(String(20), default="read")

    # Delivery
    delivery_status = Column(String(20), default="pending")
    is_read = Column(Boolean, default=False)
    delivered_at = Column(DateTime)
    read_at = Column(DateTime)
    acknowledged_at = Column(DateTime)
    delivery_method = Column(String(20), default="web")
    delivery_attempts = Column(Integer, default=0)
    last_delivery_error = Column(Text)

    priority = Column(String(20), default=NotificationPriority.NORMAL.value)
    expires_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    global_notification = relationship("GlobalNotification", back_populates="deliveries")

    __table_args__ = (
        UniqueConstraint("global_notification_id", "user_id", name="uq_user_notification"),
        Index("ix_user_notifications_user_read", "user_id", "is_read"),
    )


class NotificationAuditLog(Base):
    """Immutable record of a notification-related state change"""
    __tablename__ = "notification_audit_log"

    id = Column(Integer, primary_key=True, index=True)

    # Loose (type, id) reference; no foreign key
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(30), nullable=False)
    details = Column(Text)  # JSON text

    user_id = Column(Integer)
    patient_id = Column(Integer)

    # Request metadata
    session_id = Column(String(255))
    ip_address = Column(String(45))
    user_agent = Column(Text)

    before_state = Column(Text)  # JSON text
    after_state = Column(Text)  # JSON text

    processing_node = Column(String(50))
    request_id = Column(String(100))
    correlation_id = Column(String(100))
    processing_time_ms = Column(Integer)

    success = Column(Boolean, nullable=False)
    error_message = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_audit_entity", "entity_type", "entity_id"),
        Index("ix_audit_user", "user_id"),
        Index("ix_audit_patient", "patient_id"),
        Index("ix_audit_action", "action"),
        Index("ix_audit_correlation", "correlation_id"),
        Index("ix_audit_created", "created_at"),
    )
