"""
Tests for Medication Log Service
Daily dose generation, status refresh, intake confirmation and history
"""

import pytest
from datetime import datetime, timedelta, timezone

from models import (
    Effectiveness,
    GlobalNotification,
    MedicationHistory,
    MedicationLog,
    MedicationLogStatus,
    NotificationAuditLog,
)
from services.errors import DelayReasonRequiredError, FutureIntakeTimeError, InvalidTransitionError, NotFoundError
from services.medication_log_service import MedicationLogService


# 09:30 in Sao Paulo: the 08:00 dose (11:00 UTC) is overdue, the 20:00 one pending
NOW = datetime(2024, 5, 1, 12, 30)
MORNING_DOSE = datetime(2024, 5, 1, 11, 0)
EVENING_DOSE = datetime(2024, 5, 1, 23, 0)


@pytest.fixture
def service():
    return MedicationLogService()


# =============================================================================
# Generation
# =============================================================================

class TestDailyGeneration:

    @pytest.mark.database
    def test_generates_one_log_per_schedule(self, service, db_session, test_medication):
        created = service.ensure_logs_for_medication(test_medication, db_session, now=NOW)
        db_session.commit()

        logs = db_session.query(MedicationLog).order_by(MedicationLog.scheduled_date_time).all()
        assert created == 2
        assert [log.scheduled_date_time for log in logs] == [MORNING_DOSE, EVENING_DOSE]
        assert logs[0].status == MedicationLogStatus.OVERDUE
        assert logs[0].delay_minutes == 90
        assert logs[1].status == MedicationLogStatus.PENDING

    @pytest.mark.database
    def test_generation_is_idempotent(self, service, db_session, test_medication):
        service.ensure_logs_for_medication(test_medication, db_session, now=NOW)
        db_session.commit()

        assert service.ensure_logs_for_medication(test_medication, db_session, now=NOW) == 0
        assert db_session.query(MedicationLog).count() == 2

    @pytest.mark.database
    def test_no_logs_outside_treatment_period(self, service, db_session, test_medication):
        test_medication.end_date = NOW.date() - timedelta(days=1)
        db_session.commit()

        assert service.ensure_logs_for_medication(test_medication, db_session, now=NOW) == 0

    @pytest.mark.asyncio
    async def test_today_logs_sorted_overdue_first(self, service, db_session, test_medication, test_patient):
        logs = await service.get_today_logs(test_patient.id, db_session, now=NOW)

        assert [log.scheduled_date_time for log in logs] == [MORNING_DOSE, EVENING_DOSE]
        assert logs[0].status == MedicationLogStatus.OVERDUE

    @pytest.mark.asyncio
    async def test_status_is_refreshed_as_time_passes(self, service, db_session, test_medication, test_patient):
        await service.get_today_logs(test_patient.id, db_session, now=NOW)
        later = EVENING_DOSE + timedelta(minutes=30)
        logs = await service.get_today_logs(test_patient.id, db_session, now=later)

        evening = next(log for log in logs if log.scheduled_date_time == EVENING_DOSE)
        assert evening.status == MedicationLogStatus.OVERDUE
        assert evening.delay_minutes == 30

    @pytest.mark.asyncio
    async def test_inactive_medication_keeps_only_taken_doses(self, service, db_session, test_medication, test_patient, make_log):
        make_log(MORNING_DOSE, MedicationLogStatus.TAKEN, actual_at=MORNING_DOSE)
        make_log(EVENING_DOSE, schedule_index=1)
        test_medication.is_active = False
        db_session.commit()

        logs = await service.get_today_logs(test_patient.id, db_session, now=NOW)

        assert [log.status for log in logs] == [MedicationLogStatus.TAKEN]


# =============================================================================
# Confirmation
# =============================================================================

class TestConfirmTaken:

    @pytest.mark.asyncio
    async def test_confirm_pending_dose(self, service, db_session, test_patient, make_log):
        log = make_log(EVENING_DOSE, schedule_index=1)
        actual = EVENING_DOSE + timedelta(minutes=7)

        confirmed = await service.confirm_taken(
            db_session, test_patient, log.id, test_patient.id, actual_at=actual, now=actual
        )

        assert confirmed.status == MedicationLogStatus.TAKEN
        assert confirmed.actual_date_time == actual
        assert confirmed.delay_minutes == 7
        assert confirmed.confirmed_by == test_patient.id

        notification = db_session.query(GlobalNotification).one()
        assert notification.type == "medication_taken"
        assert notification.title == "Medicamento Tomado"
        assert notification.message == "Losartana 50mg foi tomado com 7min de atraso"

        audit = db_session.query(NotificationAuditLog).filter(
            NotificationAuditLog.entity_type == "medication_log"
        ).one()
        assert audit.action == "confirmed_taken"
        assert audit.success is True

    @pytest.mark.asyncio
    async def test_taken_is_terminal(self, service, db_session, test_patient, make_log):
        log = make_log(MORNING_DOSE, MedicationLogStatus.TAKEN, actual_at=MORNING_DOSE)

        with pytest.raises(InvalidTransitionError):
            await service.confirm_taken(db_session, test_patient, log.id, test_patient.id, now=NOW)

        audit = db_session.query(NotificationAuditLog).one()
        assert audit.success is False
        assert "already taken" in audit.error_message
        assert db_session.query(GlobalNotification).count() == 0

    @pytest.mark.asyncio
    async def test_overdue_requires_reason(self, service, db_session, test_patient, make_log):
        log = make_log(MORNING_DOSE)

        with pytest.raises(DelayReasonRequiredError):
            await service.confirm_taken(db_session, test_patient, log.id, test_patient.id, delay_reason="  ", now=NOW)

        confirmed = await service.confirm_taken(
            db_session, test_patient, log.id, test_patient.id, delay_reason="Estava dormindo", now=NOW
        )
        assert confirmed.status == MedicationLogStatus.TAKEN
        assert confirmed.delay_minutes == 90
        assert confirmed.delay_reason == "Estava dormindo"

    @pytest.mark.asyncio
    async def test_aware_intake_time_is_stored_as_utc(self, service, db_session, test_patient, make_log):
        log = make_log(EVENING_DOSE, schedule_index=1)
        local_intake = datetime(2024, 5, 1, 19, 50, tzinfo=timezone(timedelta(hours=-3)))

        confirmed = await service.confirm_taken(
            db_session, test_patient, log.id, test_patient.id, actual_at=local_intake, now=EVENING_DOSE
        )

        assert confirmed.actual_date_time == datetime(2024, 5, 1, 22, 50)
        assert confirmed.delay_minutes == -10

    @pytest.mark.asyncio
    async def test_future_intake_time_rejected(self, service, db_session, test_patient, make_log):
        log = make_log(EVENING_DOSE, schedule_index=1)

        with pytest.raises(FutureIntakeTimeError):
            await service.confirm_taken(
                db_session, test_patient, log.id, test_patient.id,
                actual_at=NOW + timedelta(minutes=10), now=NOW,
            )

        db_session.refresh(log)
        assert log.status == MedicationLogStatus.PENDING
        assert log.actual_date_time is None

        # small drift of the client clock is tolerated
        confirmed = await service.confirm_taken(
            db_session, test_patient, log.id, test_patient.id,
            actual_at=NOW + timedelta(minutes=1), now=NOW,
        )
        assert confirmed.status == MedicationLogStatus.TAKEN

    @pytest.mark.asyncio
    async def test_log_of_other_patient(self, service, db_session, other_patient, make_log):
        log = make_log(EVENING_DOSE, schedule_index=1)

        with pytest.raises(NotFoundError):
            await service.confirm_taken(db_session, other_patient, log.id, other_patient.id, now=NOW)


# =============================================================================
# History
# =============================================================================

class TestHistory:

    @pytest.mark.asyncio
    async def test_history_confirms_referenced_dose(self, service, db_session, test_patient, make_log):
        log = make_log(EVENING_DOSE, schedule_index=1)

        history, confirmed = await service.create_history(
            db_session, test_patient, test_patient.id,
            {"medication_log_id": log.id, "side_effects": "Tontura leve", "effectiveness": Effectiveness.EFFECTIVE},
            now=EVENING_DOSE,
        )

        assert history.medication_log_id == log.id
        assert history.scheduled_date_time == EVENING_DOSE
        assert history.side_effects == "Tontura leve"
        assert confirmed.status == MedicationLogStatus.TAKEN

    @pytest.mark.asyncio
    async def test_notes_serve_as_delay_reason(self, service, db_session, test_patient, make_log):
        log = make_log(MORNING_DOSE)

        _, confirmed = await service.create_history(
            db_session, test_patient, test_patient.id,
            {"medication_log_id": log.id, "notes": "Acordei tarde"},
            now=NOW,
        )

        assert confirmed.delay_reason == "Acordei tarde"

    @pytest.mark.asyncio
    async def test_history_survives_failed_confirmation(self, service, db_session, test_patient, make_log):
        log = make_log(MORNING_DOSE)

        with pytest.raises(DelayReasonRequiredError):
            await service.create_history(
                db_session, test_patient, test_patient.id,
                {"medication_log_id": log.id, "side_effects": "Nenhum"},
                now=NOW,
            )

        assert db_session.query(MedicationHistory).count() == 1
        db_session.refresh(log)
        assert log.status == MedicationLogStatus.PENDING

    @pytest.mark.asyncio
    async def test_history_without_log(self, service, db_session, test_patient, test_medication):
        history, log = await service.create_history(
            db_session, test_patient, test_patient.id,
            {"medication_id": test_medication.id, "symptoms": "Dor de cabeça"},
            now=NOW,
        )

        assert log is None
        assert history.actual_date_time == NOW
        assert len(await service.get_history(test_patient.id, db_session)) == 1
