"""
Tests for Notification Association Backfill
"""

import pytest
from datetime import datetime

from models import GlobalNotification, UserNotification
from services.errors import NotFoundError
from services.notification_backfill import backfill_user_notifications


@pytest.fixture
def global_notifications(db_session, test_patient):
    """Three active notifications and one inactive, none delivered yet"""
    notifications = []
    for i in range(4):
        notification = GlobalNotification(
            user_id=test_patient.id,
            user_name=test_patient.name,
            patient_id=test_patient.id,
            patient_name=test_patient.name,
            type="medication_taken",
            title=f"Medicamento Tomado {i}",
            message="Losartana 50mg foi tomado no horário correto",
            priority="high" if i == 0 else "normal",
            notification_trigger_time=datetime.utcnow(),
            is_active=i != 3,
        )
        db_session.add(notification)
        notifications.append(notification)
    db_session.commit()
    return notifications


class TestBackfill:

    @pytest.mark.database
    def test_creates_missing_rows(self, db_session, test_patient, global_notifications):
        report = backfill_user_notifications(db_session, test_patient.id)

        assert report.total == 3
        assert report.created == 3
        assert report.already_present == 0
        assert report.failed == 0

        rows = db_session.query(UserNotification).filter(UserNotification.user_id == test_patient.id).all()
        assert len(rows) == 3
        row = next(r for r in rows if r.global_notification_id == global_notifications[0].id)
        assert row.access_type == "direct"
        assert row.access_level == "full"
        assert row.delivery_status == "delivered"
        assert row.delivery_method == "web_push"
        assert row.user_profile_type == "patient"
        assert row.priority == "high"
        assert row.is_read is False

    @pytest.mark.database
    def test_second_run_is_idempotent(self, db_session, test_patient, global_notifications):
        backfill_user_notifications(db_session, test_patient.id)
        report = backfill_user_notifications(db_session, test_patient.id)

        assert report.created == 0
        assert report.already_present == 3
        assert report.failed == 0
        assert db_session.query(UserNotification).count() == 3

    @pytest.mark.database
    def test_existing_delivery_counts_as_present(self, db_session, test_patient, global_notifications):
        db_session.add(UserNotification(
            user_id=test_patient.id,
            global_notification_id=global_notifications[1].id,
            is_read=True,
        ))
        db_session.commit()

        report = backfill_user_notifications(db_session, test_patient.id)

        assert report.created == 2
        assert report.already_present == 1
        existing = db_session.query(UserNotification).filter(
            UserNotification.global_notification_id == global_notifications[1].id
        ).one()
        assert existing.is_read is True

    @pytest.mark.database
    def test_limit_and_inactive(self, db_session, test_patient, global_notifications):
        report = backfill_user_notifications(db_session, test_patient.id, limit=2)
        assert report.total == 2

        report = backfill_user_notifications(db_session, test_patient.id, include_inactive=True)
        assert report.total == 4
        assert report.created == 2

    @pytest.mark.database
    def test_profile_type_override(self, db_session, test_caregiver, global_notifications):
        backfill_user_notifications(db_session, test_caregiver.id, profile_type="family")

        rows = db_session.query(UserNotification).filter(UserNotification.user_id == test_caregiver.id).all()
        assert {r.user_profile_type for r in rows} == {"family"}

    @pytest.mark.database
    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            backfill_user_notifications(db_session, 999)
