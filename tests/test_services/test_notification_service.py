"""
Tests for Notification Service
Creation, distribution to everyone with access, read state and audit entries
"""

import json
import pytest
from datetime import date

from models import GlobalNotification, NotificationAuditLog, UserNotification
from services.connection_registry import ConnectionRegistry
from services.errors import NotFoundError
from services.notification_service import (
    NotificationService,
    build_deduplication_key,
)


class FakeConnection:
    def __init__(self):
        self.sent = []
        self.closed = False

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.closed = True


@pytest.fixture
def service():
    return NotificationService()


async def notify(service, db, actor, patient, **kwargs):
    values = {
        "notification_type": "medication_added",
        "title": "Novo Medicamento",
        "message": "Losartana 50mg foi adicionado",
    }
    values.update(kwargs)
    return await service.create_notification(db, actor=actor, patient=patient, **values)


# =============================================================================
# Creation
# =============================================================================

class TestCreateNotification:

    @pytest.mark.asyncio
    async def test_distributes_to_patient_and_caregivers(self, service, db_session, test_patient, test_caregiver):
        notification = await notify(service, db_session, test_caregiver, test_patient)

        deliveries = db_session.query(UserNotification).filter(
            UserNotification.global_notification_id == notification.id
        ).all()
        by_user = {d.user_id: d for d in deliveries}

        assert notification.distribution_count == 2
        assert notification.user_name == "Pedro Souza"
        assert notification.patient_name == "Maria Souza"
        assert by_user[test_patient.id].access_type == "direct"
        assert by_user[test_patient.id].access_level == "full"
        assert by_user[test_caregiver.id].access_type == "caregiver"
        assert all(d.delivery_status == "delivered" and d.is_read is False for d in deliveries)

    @pytest.mark.asyncio
    async def test_unrelated_users_get_nothing(self, service, db_session, test_patient, other_patient):
        await notify(service, db_session, test_patient, test_patient)

        assert db_session.query(UserNotification).filter(UserNotification.user_id == other_patient.id).count() == 0

    @pytest.mark.asyncio
    async def test_creation_is_audited(self, service, db_session, test_patient):
        notification = await notify(service, db_session, test_patient, test_patient)

        entry = db_session.query(NotificationAuditLog).filter(
            NotificationAuditLog.entity_type == "global_notification"
        ).one()
        assert entry.action == "created"
        assert entry.entity_id == notification.id
        assert entry.success is True
        assert json.loads(entry.after_state)["title"] == "Novo Medicamento"

    @pytest.mark.asyncio
    async def test_system_notification_without_actor(self, service, db_session, test_patient):
        notification = await notify(service, db_session, None, test_patient)
        assert notification.user_name == "Sistema"

    @pytest.mark.asyncio
    async def test_duplicate_key_is_skipped(self, service, db_session, test_patient):
        key = build_deduplication_key("medication_reminder", test_patient.id, 12, "on_time", date(2024, 5, 1))

        first = await notify(service, db_session, None, test_patient, deduplication_key=key)
        second = await notify(service, db_session, None, test_patient, deduplication_key=key)

        assert first is not None
        assert second is None
        assert db_session.query(GlobalNotification).count() == 1

    @pytest.mark.unit
    def test_deduplication_key_format(self):
        key = build_deduplication_key("medication_reminder", 7, 12, "on_time", date(2024, 5, 1))
        assert key == "medication_reminder_7_12_on_time_2024-05-01"

    @pytest.mark.asyncio
    async def test_connected_recipients_get_live_push(self, service, db_session, test_patient, test_caregiver):
        registry = ConnectionRegistry()
        connection = FakeConnection()
        await registry.register(test_caregiver.id, connection)
        service.registry = registry

        notification = await notify(service, db_session, test_patient, test_patient)

        assert len(connection.sent) == 1
        assert connection.sent[0]["type"] == "notification"
        assert connection.sent[0]["data"]["id"] == notification.id


# =============================================================================
# Read side
# =============================================================================

class TestReadState:

    @pytest.mark.asyncio
    async def test_list_newest_first_with_pagination(self, service, db_session, test_patient):
        for i in range(3):
            await notify(service, db_session, test_patient, test_patient, title=f"N{i}")

        page, has_more = await service.list_for_user(test_patient.id, db_session, limit=2)
        assert [d.global_notification.title for d in page] == ["N2", "N1"]
        assert has_more is True

        page, has_more = await service.list_for_user(test_patient.id, db_session, limit=2, offset=2)
        assert [d.global_notification.title for d in page] == ["N0"]
        assert has_more is False

    @pytest.mark.asyncio
    async def test_inactive_notifications_are_hidden(self, service, db_session, test_patient):
        notification = await notify(service, db_session, test_patient, test_patient)
        notification.is_active = False
        db_session.commit()

        page, _ = await service.list_for_user(test_patient.id, db_session)
        assert page == []

    @pytest.mark.asyncio
    async def test_summary_counts(self, service, db_session, test_patient):
        await notify(service, db_session, None, test_patient, priority="normal")
        await notify(service, db_session, None, test_patient, priority="high")
        await notify(service, db_session, None, test_patient, priority="critical")

        summary = await service.get_summary(test_patient.id, db_session)
        assert summary == {"total": 3, "unread": 3, "high_priority": 2, "critical": 1}

    @pytest.mark.asyncio
    async def test_mark_read(self, service, db_session, test_patient):
        await notify(service, db_session, test_patient, test_patient)
        delivery = db_session.query(UserNotification).filter(UserNotification.user_id == test_patient.id).one()

        updated = await service.mark_read(test_patient.id, delivery.id, db_session)

        assert updated.is_read is True
        assert updated.read_at is not None
        entry = db_session.query(NotificationAuditLog).filter(NotificationAuditLog.action == "read").one()
        assert entry.entity_type == "user_notification"
        assert entry.entity_id == delivery.id
        assert json.loads(entry.before_state)["is_read"] is False

    @pytest.mark.asyncio
    async def test_cannot_mark_someone_elses_notification(self, service, db_session, test_patient, other_patient):
        await notify(service, db_session, test_patient, test_patient)
        delivery = db_session.query(UserNotification).filter(UserNotification.user_id == test_patient.id).one()

        with pytest.raises(NotFoundError):
            await service.mark_read(other_patient.id, delivery.id, db_session)

    @pytest.mark.asyncio
    async def test_mark_all_read(self, service, db_session, test_patient):
        for _ in range(2):
            await notify(service, db_session, test_patient, test_patient)

        assert await service.mark_all_read(test_patient.id, db_session) == 2
        assert await service.mark_all_read(test_patient.id, db_session) == 0

        summary = await service.get_summary(test_patient.id, db_session)
        assert summary["unread"] == 0
        assert db_session.query(NotificationAuditLog).filter(
            NotificationAuditLog.action == "bulk_read"
        ).count() == 2
