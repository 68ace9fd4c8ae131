"""
Tests for Reminder Service
Reminder windows and the periodic scan
"""

import pytest
from datetime import datetime
from types import SimpleNamespace

from models import Appointment, GlobalNotification, MedicalTest, MedicationLog, MedicationLogStatus
from services.reminder_service import (
    APPOINTMENT,
    EXAM,
    ReminderService,
    ReminderTiming,
    build_event_reminder,
    build_reminder,
    classify,
)


MORNING_DOSE = datetime(2024, 5, 1, 11, 0)


@pytest.fixture
def service():
    return ReminderService()


@pytest.fixture
def medication():
    return SimpleNamespace(name="Losartana", dosage="50mg")


# 14:00 in Sao Paulo
@pytest.fixture
def appointment():
    return SimpleNamespace(appointment_date=datetime(2024, 5, 1, 17, 0), title="Cardiologista", doctor_name="Dr. Paulo")


@pytest.fixture
def exam():
    return SimpleNamespace(test_date=datetime(2024, 5, 1, 17, 0), name="Hemograma")


class TestWindows:

    @pytest.mark.unit
    @pytest.mark.parametrize("minutes,expected", [
        (-21, None),
        (-20, ReminderTiming.UPCOMING),
        (-10, ReminderTiming.UPCOMING),
        (-9, ReminderTiming.ON_TIME),
        (10, ReminderTiming.ON_TIME),
        (11, ReminderTiming.OVERDUE),
        (20, ReminderTiming.OVERDUE),
        (23, None),
        (24, None),
        (25, ReminderTiming.CONTINUOUS),
        (26, ReminderTiming.CONTINUOUS),
        (1440, ReminderTiming.CONTINUOUS),
        (1444, ReminderTiming.CONTINUOUS),
        (1445, None),
    ])
    def test_classify(self, minutes, expected):
        assert classify(minutes) == expected

    @pytest.mark.unit
    def test_upcoming_reminder(self, medication):
        reminder = build_reminder(medication, -15)

        assert reminder.title == "Medicamento em Breve"
        assert reminder.message == "Losartana 50mg deve ser tomado em 15 minutos"
        assert reminder.priority == "normal"

    @pytest.mark.unit
    def test_on_time_reminder(self, medication):
        reminder = build_reminder(medication, 0)

        assert reminder.title == "Hora do Medicamento"
        assert reminder.notification_type == "medication_reminder"
        assert reminder.priority == "high"

    @pytest.mark.unit
    def test_overdue_escalates_after_an_hour(self, medication):
        first = build_reminder(medication, 15)
        later = build_reminder(medication, 90)

        assert first.notification_type == "medication_overdue"
        assert first.priority == "high"
        assert first.dedup_suffix == "overdue"
        assert later.priority == "critical"
        assert later.message == "Losartana 50mg está atrasado há 1h 30min"
        assert later.dedup_suffix == "continuous_90"



class TestEventWindows:

    @pytest.mark.unit
    def test_appointment_day_before(self, appointment):
        reminder = build_event_reminder(APPOINTMENT, appointment, -24 * 60 + 30)

        assert reminder.title == "Consulta Amanhã"
        assert reminder.message == 'Consulta "Cardiologista" com Dr. Paulo em 24 horas (01/05 às 14:00)'
        assert reminder.notification_type == "appointment_reminder"
        assert reminder.dedup_suffix == "24h_before"

    @pytest.mark.unit
    @pytest.mark.parametrize("minutes,title,suffix", [
        (-60, "Consulta em 1 Hora", "1h_before"),
        (-15, "Consulta em Breve", "15min_before"),
        (5, "Hora da Consulta", "on_time"),
        (15, "Consulta Atrasada", "overdue"),
        (31, "Confirme sua Consulta", "continuous_30"),
        (180, "Confirme sua Consulta", "continuous_180"),
    ])
    def test_appointment_windows(self, appointment, minutes, title, suffix):
        reminder = build_event_reminder(APPOINTMENT, appointment, minutes)

        assert reminder.title == title
        assert reminder.dedup_suffix == suffix

    @pytest.mark.unit
    @pytest.mark.parametrize("minutes", [-100, -40, 12, 20, 195])
    def test_no_reminder_between_windows(self, appointment, minutes):
        assert build_event_reminder(APPOINTMENT, appointment, minutes) is None

    @pytest.mark.unit
    def test_exam_wording(self, exam):
        assert build_event_reminder(EXAM, exam, 0).title == "Hora do Exame"

        overdue = build_event_reminder(EXAM, exam, 16)
        assert overdue.title == "Exame Atrasado"
        assert overdue.notification_type == "test_overdue"
        assert overdue.message == 'Exame "Hemograma" está 16 minutos atrasado (era para 14:00). Confirme se compareceu.'

        assert build_event_reminder(EXAM, exam, 45).title == "Confirme seu Exame"

class TestScan:

    @pytest.mark.asyncio
    async def test_scan_generates_logs_and_sends_once(self, service, db_session, test_medication):
        now = datetime(2024, 5, 1, 11, 5)

        first = await service.scan(db_session, now=now)
        second = await service.scan(db_session, now=now)

        assert db_session.query(MedicationLog).count() == 2
        assert first.sent == 1
        assert second.sent == 0
        assert second.duplicates == 1

        notification = db_session.query(GlobalNotification).one()
        assert notification.title == "Hora do Medicamento"
        assert notification.subtype == "on_time"
        assert notification.notification_trigger_time is not None

    @pytest.mark.asyncio
    async def test_continuous_notices_are_distinct(self, service, db_session, test_medication, make_log):
        make_log(MORNING_DOSE)

        await service.scan(db_session, now=datetime(2024, 5, 1, 11, 25))
        await service.scan(db_session, now=datetime(2024, 5, 1, 11, 30))

        keys = [n.deduplication_key for n in db_session.query(GlobalNotification).order_by(GlobalNotification.id)]
        assert len(keys) == 2
        assert keys[0].endswith("continuous_25_2024-05-01")
        assert keys[1].endswith("continuous_30_2024-05-01")

    @pytest.mark.asyncio
    async def test_mark_reached_between_scans_is_still_sent(self, service, db_session, test_medication, make_log):
        make_log(MORNING_DOSE)

        before_mark = await service.scan(db_session, now=datetime(2024, 5, 1, 11, 24, 59))
        past_mark = await service.scan(db_session, now=datetime(2024, 5, 1, 11, 26, 0))
        same_mark = await service.scan(db_session, now=datetime(2024, 5, 1, 11, 27, 1))

        assert before_mark.sent == 0
        assert past_mark.sent == 1
        assert same_mark.sent == 0
        notification = db_session.query(GlobalNotification).one()
        assert notification.deduplication_key.endswith("continuous_25_2024-05-01")
        assert notification.message == "Losartana 50mg está atrasado há 26 min"

    @pytest.mark.asyncio
    async def test_taken_doses_are_skipped(self, service, db_session, test_medication, make_log):
        make_log(MORNING_DOSE, MedicationLogStatus.TAKEN, actual_at=MORNING_DOSE)

        result = await service.scan(db_session, now=datetime(2024, 5, 1, 11, 5))

        assert result.sent == 0
        assert db_session.query(GlobalNotification).count() == 0

    @pytest.mark.asyncio
    async def test_inactive_medications_are_skipped(self, service, db_session, test_medication, make_log):
        make_log(MORNING_DOSE)
        test_medication.is_active = False
        db_session.commit()

        result = await service.scan(db_session, now=datetime(2024, 5, 1, 11, 5))

        assert result.scanned == 0

    @pytest.mark.asyncio
    async def test_appointment_reminder_sent_once(self, service, db_session, test_patient):
        db_session.add_all([
            Appointment(patient_id=test_patient.id, title="Cardiologista", appointment_date=datetime(2024, 5, 1, 17, 0)),
            Appointment(patient_id=test_patient.id, title="Dermatologista", appointment_date=datetime(2024, 5, 1, 17, 0),
                        status="cancelled"),
        ])
        db_session.commit()

        first = await service.scan(db_session, now=datetime(2024, 5, 1, 16, 0))
        second = await service.scan(db_session, now=datetime(2024, 5, 1, 16, 2))

        assert first.sent == 1
        assert second.duplicates == 1
        notification = db_session.query(GlobalNotification).one()
        assert notification.type == "appointment_reminder"
        assert notification.related_type == "appointment"
        assert notification.related_item_name == "Cardiologista"
        assert notification.deduplication_key.endswith("1h_before_2024-05-01")

    @pytest.mark.asyncio
    async def test_exam_overdue_mark_reached_between_scans(self, service, db_session, test_patient):
        db_session.add(MedicalTest(patient_id=test_patient.id, name="Hemograma", test_date=datetime(2024, 5, 1, 16, 0)))
        db_session.commit()

        before_mark = await service.scan(db_session, now=datetime(2024, 5, 1, 16, 29, 59))
        past_mark = await service.scan(db_session, now=datetime(2024, 5, 1, 16, 31, 0))

        assert before_mark.sent == 0
        assert past_mark.sent == 1
        notification = db_session.query(GlobalNotification).one()
        assert notification.type == "test_overdue"
        assert notification.deduplication_key.endswith("continuous_30_2024-05-01")
