"""
Medication Service
Business logic for medications and their daily schedules
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

import models
from models import MedicationLogStatus
from services.audit_service import AuditContext
from services.errors import MedicationInUseError, NotFoundError
from services.medication_log_service import medication_log_service
from services.notification_service import notification_service
from tools.dose_status import local_day_bounds, local_today, parse_clock


logger = logging.getLogger(__name__)

# Optional columns an update may set back to null
CLEARABLE_FIELDS = {"end_date", "instructions"}


def normalize_schedule_times(times: List[str]) -> List[str]:
    """Validate "HH:MM" strings, zero-pad and drop duplicates keeping order"""
    normalized = []
    for value in times:
        clock = parse_clock(value).strftime("%H:%M")
        if clock not in normalized:
            normalized.append(clock)
    return normalized


def medication_snapshot(medication: models.Medication) -> Dict[str, Any]:
    return {
        "id": medication.id,
        "name": medication.name,
        "dosage": medication.dosage,
        "frequency": medication.frequency,
        "start_date": medication.start_date,
        "end_date": medication.end_date,
        "instructions": medication.instructions,
        "is_active": medication.is_active,
        "schedules": medication.schedule_times,
    }


class MedicationService:
    """
    Service for medication management
    """

    async def get_medications(
        self,
        patient_id: int,
        db: Session,
        active_only: bool = False,
    ) -> List[models.Medication]:
        query = db.query(models.Medication).options(
            joinedload(models.Medication.schedules)
        ).filter(models.Medication.patient_id == patient_id)
        if active_only:
            query = query.filter(models.Medication.is_active.is_(True))
        return query.order_by(models.Medication.name).all()

    def get_medication(self, medication_id: int, patient_id: int, db: Session) -> models.Medication:
        medication = db.query(models.Medication).filter(
            models.Medication.id == medication_id,
            models.Medication.patient_id == patient_id,
        ).first()
        if not medication:
            raise NotFoundError(f"Medication {medication_id} not found")
        return medication

    async def add_medication(
        self,
        db: Session,
        actor: models.User,
        patient_id: int,
        name: str,
        dosage: str,
        frequency: str,
        schedules: List[str],
        start_date=None,
        end_date=None,
        instructions: Optional[str] = None,
        now: Optional[datetime] = None,
        context: Optional[AuditContext] = None,
    ) -> models.Medication:
        """
        Add a medication with its daily dose times

        Today's doses are created straight away; the ones already past the
        grace window start out overdue.
        """
        now = now or datetime.utcnow()
        times = normalize_schedule_times(schedules)
        if start_date and end_date and end_date < start_date:
            raise ValueError("end_date must not be before start_date")

        medication = models.Medication(
            patient_id=patient_id,
            name=name,
            dosage=dosage,
            frequency=frequency,
            start_date=start_date or local_today(now),
            end_date=end_date,
            instructions=instructions,
            is_active=True,
        )
        medication.schedules = [models.MedicationSchedule(scheduled_time=t) for t in times]
        db.add(medication)
        db.flush()

        medication_log_service.ensure_logs_for_medication(medication, db, now=now)
        db.commit()
        db.refresh(medication)

        logger.info(f"Added medication {medication.name} ({medication.id}) for patient {patient_id}")
        await self._notify(
            db, actor, medication, "medication_added", "Novo Medicamento",
            f"{medication.name} {medication.dosage} foi adicionado",
            context=context,
        )
        return medication

    async def update_medication(
        self,
        db: Session,
        actor: models.User,
        medication_id: int,
        patient_id: int,
        updates: Dict[str, Any],
        schedules: Optional[List[str]] = None,
        now: Optional[datetime] = None,
        context: Optional[AuditContext] = None,
    ) -> models.Medication:
        """
        Update medication fields and optionally replace its dose times.

        Only the keys present in updates are applied; an explicit None clears
        end_date or instructions and is ignored for required fields.
        Removed times are deactivated and their open doses for today are
        dropped; taken doses are kept.
        """
        now = now or datetime.utcnow()
        medication = self.get_medication(medication_id, patient_id, db)
        before = medication_snapshot(medication)

        for field, value in updates.items():
            if hasattr(medication, field) and (value is not None or field in CLEARABLE_FIELDS):
                setattr(medication, field, value)

        if medication.start_date and medication.end_date and medication.end_date < medication.start_date:
            raise ValueError("end_date must not be before start_date")

        if schedules is not None:
            self._replace_schedules(medication, normalize_schedule_times(schedules), db, now)

        db.flush()
        medication_log_service.ensure_logs_for_medication(medication, db, now=now)
        db.commit()
        db.refresh(medication)

        logger.info(f"Updated medication {medication.id}")
        await self._notify(
            db, actor, medication, "medication_updated", "Medicamento Atualizado",
            f"{medication.name} {medication.dosage} foi atualizado",
            context=context,
            metadata={"before": before, "after": medication_snapshot(medication)},
        )
        return medication

    def _replace_schedules(self, medication: models.Medication, times: List[str], db: Session, now: datetime) -> None:
        current = {s.scheduled_time: s for s in medication.schedules}
        for clock, schedule in current.items():
            schedule.is_active = clock in times

        removed = [s.id for t, s in current.items() if t not in times]
        if removed:
            start, end = local_day_bounds(local_today(now))
            db.query(models.MedicationLog).filter(
                models.MedicationLog.schedule_id.in_(removed),
                models.MedicationLog.status != MedicationLogStatus.TAKEN,
                models.MedicationLog.scheduled_date_time >= start,
                models.MedicationLog.scheduled_date_time < end,
            ).delete(synchronize_session=False)

        for clock in times:
            if clock not in current:
                medication.schedules.append(models.MedicationSchedule(scheduled_time=clock))

    async def has_taken_logs(self, medication_id: int, patient_id: int, db: Session) -> bool:
        self.get_medication(medication_id, patient_id, db)
        return db.query(models.MedicationLog.id).filter(
            models.MedicationLog.medication_id == medication_id,
            models.MedicationLog.status == MedicationLogStatus.TAKEN,
        ).first() is not None

    async def delete_medication(self, db: Session, medication_id: int, patient_id: int) -> None:
        """
        Hard delete a medication that was never taken

        Raises:
            MedicationInUseError: Some dose was taken; inactivate instead
        """
        medication = self.get_medication(medication_id, patient_id, db)
        if await self.has_taken_logs(medication_id, patient_id, db):
            raise MedicationInUseError(
                f"Medication {medication_id} has taken doses and can only be inactivated"
            )

        db.query(models.MedicationHistory).filter(
            models.MedicationHistory.medication_id == medication_id
        ).delete(synchronize_session=False)
        db.delete(medication)
        db.commit()
        logger.info(f"Deleted medication {medication_id}")

    async def set_active(
        self,
        db: Session,
        actor: models.User,
        medication_id: int,
        patient_id: int,
        active: bool,
        now: Optional[datetime] = None,
        context: Optional[AuditContext] = None,
    ) -> models.Medication:
        """Inactivate or reactivate; reactivation regenerates today's doses"""
        medication = self.get_medication(medication_id, patient_id, db)
        if medication.is_active == active:
            return medication

        medication.is_active = active
        if active:
            medication_log_service.ensure_logs_for_medication(medication, db, now=now)
        db.commit()
        db.refresh(medication)

        action = "reativado" if active else "inativado"
        logger.info(f"Medication {medication.id} {'reactivated' if active else 'inactivated'}")
        await self._notify(
            db, actor, medication,
            "medication_reactivated" if active else "medication_inactivated",
            "Medicamento Reativado" if active else "Medicamento Inativado",
            f"{medication.name} {medication.dosage} foi {action}",
            context=context,
        )
        return medication

    async def _notify(
        self,
        db: Session,
        actor: models.User,
        medication: models.Medication,
        notification_type: str,
        title: str,
        message: str,
        context: Optional[AuditContext] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        patient = db.query(models.User).filter(models.User.id == medication.patient_id).first()
        await notification_service.create_notification(
            db,
            actor=actor,
            patient=patient,
            notification_type=notification_type,
            title=title,
            message=message,
            related_id=medication.id,
            related_type="medication",
            related_item_name=medication.name,
            metadata=metadata,
            context=context,
        )


# Singleton instance
medication_service = MedicationService()
