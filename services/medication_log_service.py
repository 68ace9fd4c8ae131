"""
Medication Log Service
Daily dose generation, status derivation, intake confirmation and dose history
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

import models
from models import MedicationLogStatus
from services.audit_service import AuditContext, audited
from services.errors import (
    DelayReasonRequiredError,
    FutureIntakeTimeError,
    InvalidTransitionError,
    NotFoundError,
)
from services.notification_service import notification_service
from tools.dose_status import (
    Overdue,
    derive_dose_status,
    local_day_bounds,
    local_to_utc,
    local_today,
    sort_today_logs,
    taken_notification_phrase,
    to_naive_utc,
)


logger = logging.getLogger(__name__)

# Tolerated client clock drift for reported intake times
INTAKE_CLOCK_SKEW = timedelta(minutes=2)

HISTORY_EDITABLE_FIELDS = ("notes", "side_effects", "effectiveness", "symptoms", "additional_info")


def log_snapshot(log: models.MedicationLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "status": log.status.value if log.status else None,
        "scheduled_date_time": log.scheduled_date_time,
        "actual_date_time": log.actual_date_time,
        "delay_minutes": log.delay_minutes,
        "confirmed_by": log.confirmed_by,
    }


class MedicationLogService:
    """
    Service for scheduled dose instances
    """

    # ==================== GENERATION ====================

    def ensure_logs_for_medication(
        self,
        medication: models.Medication,
        db: Session,
        day: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Create the missing logs of one medication for a local date.

        Existing (schedule, time) pairs are left alone, so repeated calls
        never duplicate doses. Does not commit.
        """
        now = now or datetime.utcnow()
        day = day or local_today(now)
        if not medication.is_current_on(day):
            return 0

        created = 0
        for schedule in medication.schedules:
            if not schedule.is_active:
                continue
            scheduled_at = local_to_utc(day, schedule.scheduled_time)
            exists = db.query(models.MedicationLog.id).filter(
                models.MedicationLog.schedule_id == schedule.id,
                models.MedicationLog.scheduled_date_time == scheduled_at,
            ).first()
            if exists:
                continue

            state = derive_dose_status(scheduled_at, None, now)
            db.add(models.MedicationLog(
                medication_id=medication.id,
                schedule_id=schedule.id,
                patient_id=medication.patient_id,
                scheduled_date_time=scheduled_at,
                status=MedicationLogStatus(state.status.value),
                delay_minutes=state.late_minutes if isinstance(state, Overdue) else 0,
            ))
            created += 1

        if created:
            db.flush()
            logger.info(f"Generated {created} logs for medication {medication.id} on {day}")
        return created

    def ensure_logs_for_day(
        self,
        patient_id: int,
        db: Session,
        day: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> int:
        medications = db.query(models.Medication).options(
            joinedload(models.Medication.schedules)
        ).filter(
            models.Medication.patient_id == patient_id,
            models.Medication.is_active.is_(True),
        ).all()
        return sum(self.ensure_logs_for_medication(m, db, day=day, now=now) for m in medications)

    def refresh_status(self, log: models.MedicationLog, now: datetime) -> bool:
        """Re-derive pending/overdue of an open log; returns True when it changed"""
        if log.status in (MedicationLogStatus.TAKEN, MedicationLogStatus.MISSED):
            return False

        state = derive_dose_status(log.scheduled_date_time, log.actual_date_time, now)
        status = MedicationLogStatus(state.status.value)
        delay = state.late_minutes if isinstance(state, Overdue) else 0
        if log.status == status and log.delay_minutes == delay:
            return False
        log.status = status
        log.delay_minutes = delay
        return True

    # ==================== QUERIES ====================

    async def get_today_logs(
        self,
        patient_id: int,
        db: Session,
        now: Optional[datetime] = None,
    ) -> List[models.MedicationLog]:
        """
        Today's doses (display timezone), generating missing ones first.

        Open doses of inactive medications are hidden; taken ones stay.
        Ordered overdue, pending, taken, then by time of day.
        """
        now = now or datetime.utcnow()
        day = local_today(now)
        self.ensure_logs_for_day(patient_id, db, day=day, now=now)

        start, end = local_day_bounds(day)
        logs = db.query(models.MedicationLog).options(
            joinedload(models.MedicationLog.medication)
        ).filter(
            models.MedicationLog.patient_id == patient_id,
            models.MedicationLog.scheduled_date_time >= start,
            models.MedicationLog.scheduled_date_time < end,
        ).all()

        visible = [
            log for log in logs
            if log.medication.is_active or log.status == MedicationLogStatus.TAKEN
        ]
        changed = sum(1 for log in visible if self.refresh_status(log, now))
        db.commit()
        if changed:
            logger.debug(f"Refreshed status of {changed} logs for patient {patient_id}")

        return sort_today_logs(visible, now)

    async def get_logs(
        self,
        patient_id: int,
        db: Session,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 500,
    ) -> List[models.MedicationLog]:
        """Logs within local dates [start_date, end_date], newest first"""
        query = db.query(models.MedicationLog).options(
            joinedload(models.MedicationLog.medication)
        ).filter(models.MedicationLog.patient_id == patient_id)

        if start_date:
            query = query.filter(models.MedicationLog.scheduled_date_time >= local_day_bounds(start_date)[0])
        if end_date:
            query = query.filter(models.MedicationLog.scheduled_date_time < local_day_bounds(end_date)[1])

        return query.order_by(models.MedicationLog.scheduled_date_time.desc()).limit(limit).all()

    def get_log(self, log_id: int, patient_id: int, db: Session) -> models.MedicationLog:
        log = db.query(models.MedicationLog).filter(
            models.MedicationLog.id == log_id,
            models.MedicationLog.patient_id == patient_id,
        ).first()
        if not log:
            raise NotFoundError(f"Medication log {log_id} not found")
        return log

    # ==================== CONFIRMATION ====================

    async def confirm_taken(
        self,
        db: Session,
        actor: models.User,
        log_id: int,
        patient_id: int,
        actual_at: Optional[datetime] = None,
        delay_reason: Optional[str] = None,
        now: Optional[datetime] = None,
        context: Optional[AuditContext] = None,
    ) -> models.MedicationLog:
        """
        Record the intake of a dose

        Raises:
            NotFoundError: No such log for the patient
            InvalidTransitionError: Dose already taken
            FutureIntakeTimeError: actual_at is later than now
            DelayReasonRequiredError: Overdue dose confirmed without a reason
        """
        now = now or datetime.utcnow()
        log = self.get_log(log_id, patient_id, db)
        context = context or AuditContext(user_id=actor.id, patient_id=patient_id)

        with audited(
            "medication_log", "confirmed_taken", context,
            entity_id=log.id, before_state=log_snapshot(log),
        ) as op:
            if log.status == MedicationLogStatus.TAKEN:
                raise InvalidTransitionError(f"Medication log {log.id} is already taken")

            intake_at = to_naive_utc(actual_at) or now
            if intake_at > now + INTAKE_CLOCK_SKEW:
                raise FutureIntakeTimeError(f"Intake time {intake_at.isoformat()} is in the future")

            current = derive_dose_status(log.scheduled_date_time, None, now)
            is_overdue = isinstance(current, Overdue) or log.status == MedicationLogStatus.OVERDUE
            reason = (delay_reason or "").strip()
            if is_overdue and not reason:
                raise DelayReasonRequiredError("A delay reason is required to confirm an overdue dose")

            taken = derive_dose_status(log.scheduled_date_time, intake_at, now)
            log.status = MedicationLogStatus.TAKEN
            log.actual_date_time = taken.actual_at
            log.delay_minutes = taken.delay_minutes
            log.delay_reason = reason or None
            log.confirmed_by = actor.id
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(log)
            op.after_state = log_snapshot(log)

        logger.info(f"Medication log {log.id} confirmed taken by user {actor.id} ({log.delay_minutes} min)")
        await self._notify_taken(db, actor, log, context)
        return log

    async def _notify_taken(
        self,
        db: Session,
        actor: models.User,
        log: models.MedicationLog,
        context: AuditContext,
    ) -> None:
        patient = db.query(models.User).filter(models.User.id == log.patient_id).first()
        medication = log.medication
        await notification_service.create_notification(
            db,
            actor=actor,
            patient=patient,
            notification_type="medication_taken",
            title="Medicamento Tomado",
            message=f"{medication.name} {medication.dosage} foi tomado {taken_notification_phrase(log.delay_minutes)}",
            related_id=log.id,
            related_type="medication_log",
            related_item_name=medication.name,
            original_scheduled_time=log.scheduled_date_time,
            metadata={"delay_minutes": log.delay_minutes, "delay_reason": log.delay_reason},
            context=context,
        )

    # ==================== HISTORY ====================

    async def create_history(
        self,
        db: Session,
        actor: models.User,
        patient_id: int,
        data: Dict[str, Any],
        now: Optional[datetime] = None,
        context: Optional[AuditContext] = None,
    ) -> Tuple[models.MedicationHistory, Optional[models.MedicationLog]]:
        """
        Record a dose annotation and, when it references a log, confirm it.

        The two steps commit separately; if the confirmation fails the
        history row stays and the error propagates.
        """
        log = None
        log_id = data.get("medication_log_id")
        if log_id is not None:
            log = self.get_log(log_id, patient_id, db)
            medication_id = log.medication_id
        else:
            medication_id = data["medication_id"]

        medication = db.query(models.Medication).filter(
            models.Medication.id == medication_id,
            models.Medication.patient_id == patient_id,
        ).first()
        if not medication:
            raise NotFoundError(f"Medication {medication_id} not found")

        history = models.MedicationHistory(
            medication_log_id=log.id if log else None,
            medication_id=medication.id,
            patient_id=patient_id,
            scheduled_date_time=to_naive_utc(data.get("scheduled_date_time")) or (log.scheduled_date_time if log else None),
            actual_date_time=to_naive_utc(data.get("actual_date_time")) or now or datetime.utcnow(),
            notes=data.get("notes"),
            side_effects=data.get("side_effects"),
            effectiveness=data.get("effectiveness"),
            symptoms=data.get("symptoms"),
            additional_info=data.get("additional_info"),
            created_by=actor.id,
        )
        db.add(history)
        db.commit()
        db.refresh(history)
        logger.info(f"Medication history {history.id} recorded for patient {patient_id}")

        if log is not None and log.status != MedicationLogStatus.TAKEN:
            log = await self.confirm_taken(
                db,
                actor=actor,
                log_id=log.id,
                patient_id=patient_id,
                actual_at=data.get("actual_date_time"),
                delay_reason=data.get("delay_reason") or data.get("notes"),
                now=now,
                context=context,
            )
        return history, log

    async def get_history(
        self,
        patient_id: int,
        db: Session,
        medication_id: Optional[int] = None,
        limit: int = 200,
    ) -> List[models.MedicationHistory]:
        query = db.query(models.MedicationHistory).filter(
            models.MedicationHistory.patient_id == patient_id
        )
        if medication_id is not None:
            query = query.filter(models.MedicationHistory.medication_id == medication_id)
        return query.order_by(models.MedicationHistory.created_at.desc()).limit(limit).all()

    def _get_history(self, history_id: int, patient_id: int, db: Session) -> models.MedicationHistory:
        history = db.query(models.MedicationHistory).filter(
            models.MedicationHistory.id == history_id,
            models.MedicationHistory.patient_id == patient_id,
        ).first()
        if not history:
            raise NotFoundError(f"Medication history {history_id} not found")
        return history

    async def update_history(
        self,
        history_id: int,
        patient_id: int,
        data: Dict[str, Any],
        db: Session
    ) -> models.MedicationHistory:
        """Edit the annotation fields of a history entry; the dose log is left untouched"""
        history = self._get_history(history_id, patient_id, db)

        for field in HISTORY_EDITABLE_FIELDS:
            if field in data:
                setattr(history, field, data[field])
        if data.get("actual_date_time") is not None:
            history.actual_date_time = to_naive_utc(data["actual_date_time"])

        db.commit()
        db.refresh(history)
        logger.info(f"Medication history {history_id} updated")
        return history

    async def delete_history(self, history_id: int, patient_id: int, db: Session) -> None:
        history = self._get_history(history_id, patient_id, db)
        db.delete(history)
        db.commit()
        logger.info(f"Medication history {history_id} deleted")


# Singleton instance
medication_log_service = MedicationLogService()
