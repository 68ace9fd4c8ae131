"""
Services Module
Business logic layer for the MedTracker application
"""

from services.auth_service import AuthService, auth_service
from services.care_service import CareService, care_service
from services.medication_service import MedicationService, medication_service
from services.medication_log_service import MedicationLogService, medication_log_service
from services.adherence_service import AdherenceService, adherence_service
from services.notification_service import NotificationService, notification_service
from services.reminder_service import ReminderService, reminder_service
from services.health_records_service import HealthRecordsService, health_records_service
from services.audit_service import AuditContext, audit_writer, audited
from services.notification_backfill import BackfillReport, backfill_user_notifications


__all__ = [
    # Service classes
    "AuthService",
    "CareService",
    "MedicationService",
    "MedicationLogService",
    "AdherenceService",
    "NotificationService",
    "ReminderService",
    "HealthRecordsService",
    # Singleton instances
    "auth_service",
    "care_service",
    "medication_service",
    "medication_log_service",
    "adherence_service",
    "notification_service",
    "reminder_service",
    "health_records_service",
    # Audit and backfill
    "AuditContext",
    "audit_writer",
    "audited",
    "BackfillReport",
    "backfill_user_notifications",
]
