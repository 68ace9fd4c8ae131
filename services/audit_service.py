"""
Audit Service
Captures request context around state-changing operations and writes
notification audit entries through a best-effort writer
"""

import json
import logging
import os
import queue
import random
import string
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Optional

from sqlalchemy.orm import Session

from config import settings
from database import SessionLocal
import models


logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_trace_id(prefix: str, length: int = 9) -> str:
    """"<prefix>_<epoch ms>_<random>", e.g. corr_1718000000000_k3j9x0a1b"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=length))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def processing_node() -> str:
    return settings.PROCESSING_NODE or os.environ.get("NODE_NAME") or f"node_{os.getpid()}"


def _to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


# ==================== CONTEXT ====================

@dataclass
class AuditContext:
    """Request metadata carried into every audit entry of an operation"""
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    session_id: Optional[str] = None
    request_id: str = field(default_factory=lambda: generate_trace_id("req"))
    correlation_id: str = field(default_factory=lambda: generate_trace_id("corr"))
    processing_start_time: float = field(default_factory=time.monotonic)
    user_id: Optional[int] = None
    patient_id: Optional[int] = None

    @classmethod
    def from_request(cls, request, user_id: Optional[int] = None, patient_id: Optional[int] = None) -> "AuditContext":
        """Build a context from a FastAPI/Starlette request"""
        headers = request.headers

        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            ip_address = forwarded.split(",")[0].strip()
        elif request.client and request.client.host:
            ip_address = request.client.host
        else:
            ip_address = "unknown"

        return cls(
            ip_address=ip_address,
            user_agent=headers.get("user-agent") or "unknown",
            session_id=headers.get("x-session-id") or request.cookies.get("session_id"),
            request_id=headers.get("x-request-id") or generate_trace_id("req"),
            correlation_id=headers.get("x-correlation-id") or generate_trace_id("corr"),
            user_id=user_id,
            patient_id=patient_id,
        )

    def elapsed_ms(self) -> int:
        return max(0, int((time.monotonic() - self.processing_start_time) * 1000))


@dataclass
class AuditEntry:
    """One row of notification_audit_log"""
    entity_type: str
    entity_id: int
    action: str
    success: bool
    details: Optional[str] = None
    user_id: Optional[int] = None
    patient_id: Optional[int] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    before_state: Optional[str] = None
    after_state: Optional[str] = None
    processing_node: Optional[str] = None
    request_id: Optional[str] = None
    correlation_id: Optional[str] = None
    processing_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class AuditOperation:
    """
    Handle yielded by audited(); the wrapped block may fill in what it
    learns while running (the id of a created row, the after state).
    """
    entity_type: str
    action: str
    entity_id: int = 0
    before_state: Any = None
    after_state: Any = None
    details: Optional[Dict[str, Any]] = None
    success: bool = True
    error_message: Optional[str] = None

    def to_entry(self, context: AuditContext) -> AuditEntry:
        return AuditEntry(
            entity_type=self.entity_type,
            entity_id=self.entity_id or 0,
            action=self.action,
            success=self.success,
            details=_to_json(self.details),
            user_id=context.user_id,
            patient_id=context.patient_id,
            session_id=context.session_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            before_state=_to_json(self.before_state),
            after_state=_to_json(self.after_state),
            processing_node=processing_node(),
            request_id=context.request_id,
            correlation_id=context.correlation_id,
            processing_time_ms=context.elapsed_ms(),
            error_message=self.error_message,
        )


# ==================== WRITER ====================

@dataclass
class AuditWriterStats:
    written: int = 0
    failed: int = 0
    dropped: int = 0


class AuditWriter:
    """
    Best-effort sink for audit entries.

    With async writes, entries go to a bounded queue drained by a daemon
    thread; a full queue drops the entry. Without, entries are written
    inline. Either way submit() never raises; failures only show up in
    the log and in stats.
    """

    _STOP = object()

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        async_writes: Optional[bool] = None,
        queue_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.async_writes = settings.AUDIT_ASYNC_WRITES if async_writes is None else async_writes
        self.stats = AuditWriterStats()
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size or settings.AUDIT_QUEUE_SIZE)
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    def submit(self, entry: AuditEntry) -> None:
        if not self.async_writes:
            self._write(entry)
            return

        self._ensure_worker()
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            self._count("dropped")
            logger.warning(f"Audit queue full, dropped {entry.action} entry for {entry.entity_type} {entry.entity_id}")

    def start(self) -> None:
        if self.async_writes:
            self._ensure_worker()

    def flush(self) -> None:
        """Block until every queued entry has been handled"""
        if self._worker is not None and self._worker.is_alive():
            self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        worker = self._worker
        if worker is None:
            return
        self._queue.put(self._STOP)
        worker.join(timeout)
        self._worker = None

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._run, name="audit-writer", daemon=True)
                self._worker.start()

    def _run(self) -> None:
        while True:
            entry = self._queue.get()
            try:
                if entry is self._STOP:
                    return
                self._write(entry)
            finally:
                self._queue.task_done()

    def _write(self, entry: AuditEntry) -> None:
        session = None
        try:
            session = self.session_factory()
            session.add(models.NotificationAuditLog(**asdict(entry)))
            session.commit()
            self._count("written")
        except Exception:
            self._count("failed")
            logger.exception(f"Failed to write audit entry {entry.action} for {entry.entity_type} {entry.entity_id}")
        finally:
            if session is not None:
                session.close()

    def _count(self, name: str) -> None:
        with self._lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)


audit_writer = AuditWriter()


@contextmanager
def audited(
    entity_type: str,
    action: str,
    context: Optional[AuditContext] = None,
    entity_id: int = 0,
    before_state: Any = None,
    details: Optional[Dict[str, Any]] = None,
    writer: Optional[AuditWriter] = None,
) -> Iterator[AuditOperation]:
    """
    Wrap a state-changing operation so it leaves exactly one audit entry.

    The entry records success=False and the error message when the block
    raises; the exception itself propagates unchanged.

    Usage:
        with audited("global_notification", "created", context) as op:
            notification = ...
            op.entity_id = notification.id
            op.after_state = {...}
    """
    context = context or AuditContext()
    operation = AuditOperation(
        entity_type=entity_type,
        action=action,
        entity_id=entity_id,
        before_state=before_state,
        details=details,
    )
    try:
        yield operation
    except BaseException as e:
        operation.success = False
        operation.error_message = str(e) or type(e).__name__
        raise
    finally:
        _emit(operation, context, writer or audit_writer)


def record_audit(
    entity_type: str,
    action: str,
    entity_id: int,
    context: Optional[AuditContext] = None,
    success: bool = True,
    details: Optional[Dict[str, Any]] = None,
    before_state: Any = None,
    after_state: Any = None,
    error_message: Optional[str] = None,
    writer: Optional[AuditWriter] = None,
) -> None:
    """Write a single entry for an action that already happened"""
    operation = AuditOperation(
        entity_type=entity_type,
        action=action,
        entity_id=entity_id,
        before_state=before_state,
        after_state=after_state,
        details=details,
        success=success,
        error_message=error_message,
    )
    _emit(operation, context or AuditContext(), writer or audit_writer)


def _emit(operation: AuditOperation, context: AuditContext, writer: AuditWriter) -> None:
    try:
        writer.submit(operation.to_entry(context))
    except Exception:
        logger.exception(f"Could not build audit entry for {operation.entity_type} {operation.action}")
