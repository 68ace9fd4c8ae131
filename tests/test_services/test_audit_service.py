"""
Tests for Audit Service
Request context capture and the best-effort audit writer
"""

import json
import pytest
from types import SimpleNamespace

from models import NotificationAuditLog
from services.audit_service import (
    AuditContext,
    AuditEntry,
    AuditWriter,
    audited,
    generate_trace_id,
    record_audit,
)


def fake_request(headers=None, host="10.0.0.5", cookies=None):
    return SimpleNamespace(
        headers=headers or {},
        client=SimpleNamespace(host=host) if host else None,
        cookies=cookies or {},
    )


def make_entry(**overrides) -> AuditEntry:
    values = {"entity_type": "global_notification", "entity_id": 1, "action": "created", "success": True}
    values.update(overrides)
    return AuditEntry(**values)


# =============================================================================
# Context
# =============================================================================

class TestAuditContext:

    @pytest.mark.unit
    def test_forwarded_for_wins_over_client_host(self):
        request = fake_request({"x-forwarded-for": "200.1.2.3, 10.0.0.1", "user-agent": "Mozilla/5.0"})
        context = AuditContext.from_request(request, user_id=3, patient_id=4)

        assert context.ip_address == "200.1.2.3"
        assert context.user_agent == "Mozilla/5.0"
        assert context.user_id == 3
        assert context.patient_id == 4

    @pytest.mark.unit
    def test_defaults_when_headers_missing(self):
        context = AuditContext.from_request(fake_request(host=None))

        assert context.ip_address == "unknown"
        assert context.user_agent == "unknown"
        assert context.session_id is None
        assert context.request_id.startswith("req_")
        assert context.correlation_id.startswith("corr_")

    @pytest.mark.unit
    def test_client_supplied_trace_ids_are_kept(self):
        request = fake_request(
            {"x-request-id": "req-abc", "x-correlation-id": "corr-xyz"},
            cookies={"session_id": "s-1"},
        )
        context = AuditContext.from_request(request)

        assert context.request_id == "req-abc"
        assert context.correlation_id == "corr-xyz"
        assert context.session_id == "s-1"

    @pytest.mark.unit
    def test_trace_id_format(self):
        prefix, millis, suffix = generate_trace_id("corr").split("_")
        assert prefix == "corr"
        assert millis.isdigit()
        assert len(suffix) == 9


# =============================================================================
# audited()
# =============================================================================

class TestAudited:

    @pytest.mark.database
    def test_success_writes_one_entry(self, db_session):
        context = AuditContext(ip_address="1.2.3.4", user_id=5, patient_id=6)
        with audited("global_notification", "created", context, details={"type": "medication_added"}) as op:
            op.entity_id = 42
            op.after_state = {"title": "Novo Medicamento"}

        entries = db_session.query(NotificationAuditLog).all()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.entity_type == "global_notification"
        assert entry.entity_id == 42
        assert entry.action == "created"
        assert entry.success is True
        assert entry.ip_address == "1.2.3.4"
        assert entry.user_id == 5
        assert entry.patient_id == 6
        assert json.loads(entry.after_state) == {"title": "Novo Medicamento"}
        assert json.loads(entry.details) == {"type": "medication_added"}
        assert entry.processing_time_ms >= 0
        assert entry.processing_node

    @pytest.mark.database
    def test_failure_is_recorded_and_reraised(self, db_session):
        with pytest.raises(ValueError, match="boom"):
            with audited("medication_log", "confirmed_taken", entity_id=9):
                raise ValueError("boom")

        entry = db_session.query(NotificationAuditLog).one()
        assert entry.success is False
        assert entry.error_message == "boom"
        assert entry.entity_id == 9

    @pytest.mark.database
    def test_record_audit(self, db_session):
        record_audit("user_notification", "bulk_read", 0, details={"updated": 3})

        entry = db_session.query(NotificationAuditLog).one()
        assert entry.action == "bulk_read"
        assert entry.entity_id == 0


# =============================================================================
# Writer
# =============================================================================

class TestAuditWriter:

    @pytest.mark.unit
    def test_write_failure_never_raises(self):
        def broken_factory():
            raise RuntimeError("database down")

        writer = AuditWriter(session_factory=broken_factory, async_writes=False)
        writer.submit(make_entry())

        assert writer.stats.failed == 1
        assert writer.stats.written == 0

    @pytest.mark.unit
    def test_full_queue_drops_entries(self, session_factory):
        writer = AuditWriter(session_factory=session_factory, async_writes=True, queue_size=1)
        writer._ensure_worker = lambda: None

        writer.submit(make_entry())
        writer.submit(make_entry(entity_id=2))

        assert writer.stats.dropped == 1

    @pytest.mark.database
    def test_async_writes_are_flushed(self, session_factory, db_session):
        writer = AuditWriter(session_factory=session_factory, async_writes=True, queue_size=10)
        writer.start()
        for i in range(3):
            writer.submit(make_entry(entity_id=i + 1))
        writer.flush()
        writer.stop()

        assert writer.stats.written == 3
        assert db_session.query(NotificationAuditLog).count() == 3
