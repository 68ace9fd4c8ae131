"""
Reminder Service
Periodic scan of open doses, appointments and exams that raises
before/on-time/overdue reminders
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from database import get_db_context
import models
from models import MedicationLogStatus, NotificationPriority
from services.medication_log_service import medication_log_service
from services.notification_service import build_deduplication_key, notification_service
from tools.dose_status import format_delay, minutes_between, to_display_time


logger = logging.getLogger(__name__)

UPCOMING_FROM = -20
ON_TIME_FROM = -10
ON_TIME_UNTIL = 10
OVERDUE_UNTIL = 20
CONTINUOUS_INTERVAL = 5
CONTINUOUS_UNTIL = 24 * 60


class ReminderTiming(str, Enum):
    UPCOMING = "upcoming"
    ON_TIME = "on_time"
    OVERDUE = "overdue"
    CONTINUOUS = "continuous"


@dataclass
class Reminder:
    timing: ReminderTiming
    notification_type: str
    title: str
    message: str
    priority: str
    dedup_suffix: str


@dataclass
class ReminderScanResult:
    scanned: int = 0
    sent: int = 0
    duplicates: int = 0
    failed: int = 0


def continuous_bucket(minutes_since: int) -> int:
    """Latest 5-minute overdue mark reached, e.g. 25 for minutes 25..29"""
    return OVERDUE_UNTIL + CONTINUOUS_INTERVAL * ((minutes_since - OVERDUE_UNTIL) // CONTINUOUS_INTERVAL)


def classify(minutes_since: int) -> Optional[ReminderTiming]:
    """
    Reminder window for a dose given minutes since its scheduled time
    (negative = still ahead).

    -20..-10 upcoming, -10..10 on time, 10..20 first overdue notice, then
    one notice per 5-minute mark up to 24h. A scan that lands between two
    marks still sends the latest one reached. Anything else gets no reminder.
    """
    if UPCOMING_FROM <= minutes_since <= ON_TIME_FROM:
        return ReminderTiming.UPCOMING
    if ON_TIME_FROM < minutes_since <= ON_TIME_UNTIL:
        return ReminderTiming.ON_TIME
    if ON_TIME_UNTIL < minutes_since <= OVERDUE_UNTIL:
        return ReminderTiming.OVERDUE
    if OVERDUE_UNTIL < continuous_bucket(minutes_since) <= CONTINUOUS_UNTIL:
        return ReminderTiming.CONTINUOUS
    return None


def build_reminder(medication: models.Medication, minutes_since: int) -> Optional[Reminder]:
    timing = classify(minutes_since)
    if timing is None:
        return None

    label = f"{medication.name} {medication.dosage}"
    if timing == ReminderTiming.UPCOMING:
        return Reminder(
            timing, "medication_reminder", "Medicamento em Breve",
            f"{label} deve ser tomado em {abs(minutes_since)} minutos",
            NotificationPriority.NORMAL.value, timing.value,
        )
    if timing == ReminderTiming.ON_TIME:
        return Reminder(
            timing, "medication_reminder", "Hora do Medicamento",
            f"Está na hora de tomar {label}",
            NotificationPriority.HIGH.value, timing.value,
        )

    priority = NotificationPriority.CRITICAL.value if minutes_since >= 60 else NotificationPriority.HIGH.value
    # one notification per 5-minute mark
    suffix = timing.value if timing == ReminderTiming.OVERDUE else f"{timing.value}_{continuous_bucket(minutes_since)}"
    return Reminder(
        timing, "medication_overdue", "Medicamento Atrasado",
        f"{label} está atrasado há {format_delay(minutes_since)}",
        priority, suffix,
    )


# ==================== APPOINTMENTS AND EXAMS ====================

# (key, minutes before, tolerance, title suffix, message phrase)
EVENT_WINDOWS = [
    ("24h_before", 24 * 60, 60, "Amanhã", "em 24 horas"),
    ("12h_before", 12 * 60, 30, "em 12 Horas", "em 12 horas"),
    ("6h_before", 6 * 60, 15, "em 6 Horas", "em 6 horas"),
    ("1h_before", 60, 5, "em 1 Hora", "em 1 hora"),
    ("30min_before", 30, 2, "em 30 Minutos", "em 30 minutos"),
    ("15min_before", 15, 1, "em Breve", "em 15 minutos"),
]
EVENT_ON_TIME_MARGIN = 10
EVENT_OVERDUE_FIRST = 15
EVENT_OVERDUE_INTERVAL = 15
EVENT_OVERDUE_UNTIL = 3 * 60


@dataclass(frozen=True)
class EventKind:
    """How one kind of dated record is looked up and worded in reminders"""
    model: type
    time_field: str
    name_field: str
    related_type: str
    noun: str
    article: str
    feminine: bool

    @property
    def reminder_type(self) -> str:
        return f"{self.related_type}_reminder"

    @property
    def overdue_type(self) -> str:
        return f"{self.related_type}_overdue"


APPOINTMENT = EventKind(models.Appointment, "appointment_date", "title", "appointment", "Consulta", "da", True)
EXAM = EventKind(models.MedicalTest, "test_date", "name", "test", "Exame", "do", False)

CLOSED_EVENT_STATUSES = ("completed", "cancelled")


def event_overdue_bucket(minutes_since: int) -> int:
    """Latest 15-minute overdue mark reached, e.g. 30 for minutes 30..44"""
    return EVENT_OVERDUE_FIRST + EVENT_OVERDUE_INTERVAL * ((minutes_since - EVENT_OVERDUE_FIRST) // EVENT_OVERDUE_INTERVAL)


def build_event_reminder(kind: EventKind, event, minutes_since: int) -> Optional[Reminder]:
    """
    Reminder for an appointment or exam given minutes since it starts.

    Advance notices at 24h, 12h, 6h, 1h, 30 and 15 minutes (each with a
    tolerance), one when it is due, a first overdue notice at 15 minutes
    and then one per 15-minute mark up to 3 hours asking for confirmation.
    """
    when = getattr(event, kind.time_field)
    name = getattr(event, kind.name_field)
    clock = to_display_time(when).strftime("%H:%M")
    subject = f'{kind.noun} "{name}"'
    doctor = getattr(event, "doctor_name", None)
    if doctor:
        subject += f" com {doctor}"

    for key, before, tolerance, title, phrase in EVENT_WINDOWS:
        if -before - tolerance <= minutes_since <= -before + tolerance:
            stamp = to_display_time(when).strftime("%d/%m às %H:%M") if key == "24h_before" else clock
            return Reminder(
                ReminderTiming.UPCOMING, kind.reminder_type, f"{kind.noun} {title}",
                f"{subject} {phrase} ({stamp})",
                NotificationPriority.NORMAL.value, key,
            )

    if -EVENT_ON_TIME_MARGIN <= minutes_since <= EVENT_ON_TIME_MARGIN:
        return Reminder(
            ReminderTiming.ON_TIME, kind.reminder_type, f"Hora {kind.article} {kind.noun}",
            f"{subject} é agora ({clock})",
            NotificationPriority.HIGH.value, ReminderTiming.ON_TIME.value,
        )

    late = "atrasada" if kind.feminine else "atrasado"
    if EVENT_OVERDUE_FIRST - 1 <= minutes_since <= EVENT_OVERDUE_FIRST + 1:
        return Reminder(
            ReminderTiming.OVERDUE, kind.overdue_type, f"{kind.noun} {late.capitalize()}",
            f"{subject} está {minutes_since} minutos {late} (era para {clock}). Confirme se compareceu.",
            NotificationPriority.HIGH.value, ReminderTiming.OVERDUE.value,
        )

    bucket = event_overdue_bucket(minutes_since)
    if EVENT_OVERDUE_FIRST < bucket <= EVENT_OVERDUE_UNTIL:
        booked = "marcada" if kind.feminine else "marcado"
        possessive = "sua" if kind.feminine else "seu"
        return Reminder(
            ReminderTiming.CONTINUOUS, kind.overdue_type, f"Confirme {possessive} {kind.noun}",
            f"{subject} estava {booked} para {clock} ({minutes_since} min atrás). Por favor, confirme se compareceu.",
            NotificationPriority.HIGH.value, f"{ReminderTiming.CONTINUOUS.value}_{bucket}",
        )
    return None


class ReminderService:
    """
    Service for time-based reminders of doses, appointments and exams
    """

    async def scan(self, db: Session, now: Optional[datetime] = None) -> ReminderScanResult:
        """
        Raise the reminders due at `now` for every open dose of an active
        medication and every appointment or exam still scheduled. Safe to
        run repeatedly: each (item, window) is sent once.
        """
        now = now or datetime.utcnow()
        result = ReminderScanResult()
        patients = {}

        await self._scan_doses(db, now, result, patients)
        for kind in (APPOINTMENT, EXAM):
            await self._scan_events(db, kind, now, result, patients)

        if result.sent or result.failed:
            logger.info(
                f"Reminder scan: {result.scanned} open items, {result.sent} sent, "
                f"{result.duplicates} duplicates, {result.failed} failed"
            )
        return result

    async def _scan_doses(self, db: Session, now: datetime, result: ReminderScanResult, patients: dict) -> None:
        # Doses nobody has opened today still need their logs
        medications = db.query(models.Medication).options(
            joinedload(models.Medication.schedules)
        ).filter(models.Medication.is_active.is_(True)).all()
        generated = sum(medication_log_service.ensure_logs_for_medication(m, db, now=now) for m in medications)
        if generated:
            db.commit()

        logs = db.query(models.MedicationLog).options(
            joinedload(models.MedicationLog.medication)
        ).join(models.Medication).filter(
            models.Medication.is_active.is_(True),
            models.MedicationLog.status.in_([MedicationLogStatus.PENDING, MedicationLogStatus.OVERDUE]),
            models.MedicationLog.actual_date_time.is_(None),
            models.MedicationLog.scheduled_date_time >= now - timedelta(minutes=CONTINUOUS_UNTIL + CONTINUOUS_INTERVAL),
            models.MedicationLog.scheduled_date_time <= now - timedelta(minutes=UPCOMING_FROM),
        ).all()

        for log in logs:
            result.scanned += 1
            reminder = build_reminder(log.medication, minutes_between(log.scheduled_date_time, now))
            if reminder is None:
                continue
            await self._send(
                db, reminder, result, patients,
                patient_id=log.patient_id,
                related_id=log.id,
                related_type="medication_log",
                item_name=log.medication.name,
                scheduled_at=log.scheduled_date_time,
            )

    async def _scan_events(
        self,
        db: Session,
        kind: EventKind,
        now: datetime,
        result: ReminderScanResult,
        patients: dict,
    ) -> None:
        _, first_window, first_tolerance, _, _ = EVENT_WINDOWS[0]
        time_column = getattr(kind.model, kind.time_field)
        events = db.query(kind.model).filter(
            kind.model.status.notin_(CLOSED_EVENT_STATUSES),
            time_column >= now - timedelta(minutes=EVENT_OVERDUE_UNTIL + EVENT_OVERDUE_INTERVAL),
            time_column <= now + timedelta(minutes=first_window + first_tolerance),
        ).all()

        for event in events:
            result.scanned += 1
            when = getattr(event, kind.time_field)
            reminder = build_event_reminder(kind, event, minutes_between(when, now))
            if reminder is None:
                continue
            await self._send(
                db, reminder, result, patients,
                patient_id=event.patient_id,
                related_id=event.id,
                related_type=kind.related_type,
                item_name=getattr(event, kind.name_field),
                scheduled_at=when,
            )

    async def _send(
        self,
        db: Session,
        reminder: Reminder,
        result: ReminderScanResult,
        patients: dict,
        patient_id: int,
        related_id: int,
        related_type: str,
        item_name: str,
        scheduled_at: datetime,
    ) -> None:
        patient = patients.get(patient_id)
        if patient is None:
            patient = db.query(models.User).filter(models.User.id == patient_id).first()
            patients[patient_id] = patient

        key = build_deduplication_key(
            reminder.notification_type,
            patient_id,
            related_id,
            reminder.dedup_suffix,
            to_display_time(scheduled_at).date(),
        )
        try:
            notification = await notification_service.create_notification(
                db,
                actor=None,
                patient=patient,
                notification_type=reminder.notification_type,
                subtype=reminder.timing.value,
                title=reminder.title,
                message=reminder.message,
                related_id=related_id,
                related_type=related_type,
                related_item_name=item_name,
                priority=reminder.priority,
                original_scheduled_time=scheduled_at,
                deduplication_key=key,
            )
        except Exception:
            result.failed += 1
            logger.exception(f"Failed to send {reminder.timing.value} reminder for {related_type} {related_id}")
            return

        if notification is None:
            result.duplicates += 1
        else:
            result.sent += 1


async def run_reminder_loop(interval_seconds: int) -> None:
    """Scan forever; cancelled by the application lifespan on shutdown"""
    logger.info(f"Reminder loop started (every {interval_seconds}s)")
    loop = asyncio.get_running_loop()
    while True:
        started = loop.time()
        try:
            with get_db_context() as db:
                await reminder_service.scan(db)
        except Exception:
            logger.exception("Reminder scan failed")
        # fixed cadence: the scan's own duration is not added to the wait
        await asyncio.sleep(max(interval_seconds - (loop.time() - started), 0))


# Singleton instance
reminder_service = ReminderService()
