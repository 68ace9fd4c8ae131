"""
Notification Association Backfill
Ensures a user has exactly one delivery row for every active global notification
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from services.errors import NotFoundError


logger = logging.getLogger(__name__)

CONFLICT_COLUMNS = ["global_notification_id", "user_id"]


@dataclass
class BackfillReport:
    """Outcome counts of one backfill run"""
    user_id: int
    total: int = 0
    created: int = 0
    already_present: int = 0
    failed: int = 0


def _insert_ignoring_conflict(db: Session, values: Dict[str, Any]) -> bool:
    """
    INSERT ... ON CONFLICT DO NOTHING keyed on (global_notification_id, user_id).

    Returns True when a row was inserted, False when it already existed.
    """
    table = models.UserNotification.__table__
    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = pg_insert(table).values(**values).on_conflict_do_nothing(index_elements=CONFLICT_COLUMNS)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(index_elements=CONFLICT_COLUMNS)
    else:
        try:
            db.execute(table.insert().values(**values))
            return True
        except IntegrityError:
            db.rollback()
            return False

    return db.execute(stmt).rowcount == 1


def backfill_user_notifications(
    db: Session,
    user_id: int,
    patient_id: Optional[int] = None,
    limit: Optional[int] = None,
    profile_type: Optional[str] = None,
    include_inactive: bool = False,
) -> BackfillReport:
    """
    Associate every active global notification with a user.

    Idempotent: rows that already exist are counted as already present and
    a second run creates nothing. Each row commits on its own so one bad row
    does not undo the rest.

    Args:
        db: Database session
        user_id: Target user
        patient_id: Only notifications about this patient
        limit: Process at most this many notifications (oldest first)
        profile_type: Profile recorded on the rows instead of the user's own
        include_inactive: Also associate notifications that were deactivated
    """
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    query = db.query(models.GlobalNotification)
    if not include_inactive:
        query = query.filter(models.GlobalNotification.is_active.is_(True))
    if patient_id is not None:
        query = query.filter(models.GlobalNotification.patient_id == patient_id)
    query = query.order_by(models.GlobalNotification.id)
    if limit:
        query = query.limit(limit)
    notifications = query.all()

    report = BackfillReport(user_id=user_id, total=len(notifications))
    now = datetime.utcnow()
    if profile_type is None and user.profile_type:
        profile_type = user.profile_type.value

    for notification in notifications:
        values = {
            "user_id": user.id,
            "global_notification_id": notification.id,
            "user_profile_type": profile_type,
            "user_name": user.name,
            "access_type": "direct",
            "access_level": "full",
            "delivery_status": "delivered",
            "is_read": False,
            "delivered_at": now,
            "delivery_method": "web_push",
            "priority": notification.priority or "normal",
            "created_at": now,
            "updated_at": now,
        }
        try:
            inserted = _insert_ignoring_conflict(db, values)
            db.commit()
        except Exception:
            db.rollback()
            report.failed += 1
            logger.exception(f"Failed to associate notification {notification.id} with user {user_id}")
            continue

        if inserted:
            report.created += 1
        else:
            report.already_present += 1

    logger.info(
        f"Backfill for user {user_id}: {report.total} notifications, {report.created} created, "
        f"{report.already_present} already present, {report.failed} failed"
    )
    return report
