"""
Notification Service
Creates global notifications, distributes them to everyone with access to
the patient, and tracks per-user read state
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

import models
from models import NotificationPriority
from services.audit_service import AuditContext, audited, processing_node, record_audit
from services.care_service import care_service
from services.errors import NotFoundError


logger = logging.getLogger(__name__)

HIGH_PRIORITIES = (NotificationPriority.HIGH.value, NotificationPriority.CRITICAL.value)
SYSTEM_ACTOR_NAME = "Sistema"


def build_deduplication_key(
    notification_type: str,
    patient_id: int,
    related_id: Optional[int],
    timing: str,
    day: date,
) -> str:
    """e.g. medication_reminder_7_12_on_time_2024-05-01"""
    return f"{notification_type}_{patient_id}_{related_id}_{timing}_{day.strftime('%Y-%m-%d')}"


def notification_snapshot(notification: models.GlobalNotification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "subtype": notification.subtype,
        "title": notification.title,
        "message": notification.message,
        "patient_id": notification.patient_id,
        "related_id": notification.related_id,
        "related_type": notification.related_type,
        "priority": notification.priority,
        "is_active": notification.is_active,
        "distribution_count": notification.distribution_count,
    }


def user_notification_payload(delivery: models.UserNotification) -> Dict[str, Any]:
    """Flattened view of a delivery row joined with its global notification"""
    notification = delivery.global_notification
    return {
        "id": delivery.id,
        "global_notification_id": notification.id,
        "type": notification.type,
        "subtype": notification.subtype,
        "title": notification.title,
        "message": notification.message,
        "patient_id": notification.patient_id,
        "patient_name": notification.patient_name,
        "related_id": notification.related_id,
        "related_type": notification.related_type,
        "related_item_name": notification.related_item_name,
        "priority": notification.priority,
        "is_read": bool(delivery.is_read),
        "read_at": delivery.read_at,
        "delivery_status": delivery.delivery_status,
        "created_at": notification.created_at,
    }


class NotificationService:
    """
    Service for global notifications and their per-user deliveries
    """

    def __init__(self):
        # Set by the application lifespan; None means no live push
        self.registry = None

    async def create_notification(
        self,
        db: Session,
        actor: Optional[models.User],
        patient: models.User,
        notification_type: str,
        title: str,
        message: str,
        subtype: Optional[str] = None,
        related_id: Optional[int] = None,
        related_type: Optional[str] = None,
        related_item_name: Optional[str] = None,
        priority: str = NotificationPriority.NORMAL.value,
        original_scheduled_time: Optional[datetime] = None,
        deduplication_key: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        context: Optional[AuditContext] = None,
    ) -> Optional[models.GlobalNotification]:
        """
        Create a notification and one delivery row per user with access.

        A missing actor means the system raised it (reminders).
        Returns None when an active notification with the same
        deduplication key already exists.
        """
        if deduplication_key and db.query(models.GlobalNotification.id).filter(
            models.GlobalNotification.deduplication_key == deduplication_key,
            models.GlobalNotification.is_active.is_(True),
        ).first():
            logger.debug(f"Skipping duplicate notification {deduplication_key}")
            return None

        context = context or AuditContext(user_id=actor.id if actor else None, patient_id=patient.id)
        with audited("global_notification", "created", context, details={"type": notification_type}) as op:
            now = datetime.utcnow()
            notification = models.GlobalNotification(
                user_id=actor.id if actor else patient.id,
                user_name=actor.name if actor else SYSTEM_ACTOR_NAME,
                patient_id=patient.id,
                patient_name=patient.name,
                type=notification_type,
                subtype=subtype,
                title=title,
                message=message,
                related_id=related_id,
                related_type=related_type,
                related_item_name=related_item_name,
                priority=priority,
                original_scheduled_time=original_scheduled_time,
                notification_trigger_time=now,
                processed_at=now,
                processing_node=processing_node(),
                extra_metadata=json.dumps(metadata, default=str) if metadata else None,
                deduplication_key=deduplication_key,
            )
            db.add(notification)
            db.flush()

            recipients = self._distribute(notification, db)
            notification.distributed_at = now
            notification.distribution_count = len(recipients)
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(notification)

            op.entity_id = notification.id
            op.after_state = notification_snapshot(notification)

        logger.info(
            f"Notification {notification.id} ({notification_type}) for patient {patient.id} "
            f"sent to {len(recipients)} users"
        )
        await self._push(notification, recipients)
        return notification

    def _distribute(self, notification: models.GlobalNotification, db: Session) -> List[int]:
        recipients = []
        for user, access_type, access_level in care_service.users_with_access(notification.patient_id, db):
            db.add(models.UserNotification(
                user_id=user.id,
                global_notification_id=notification.id,
                user_profile_type=user.profile_type.value if user.profile_type else None,
                user_name=user.name,
                access_type=access_type,
                access_level=access_level,
                delivery_status="delivered",
                delivered_at=notification.notification_trigger_time,
                priority=notification.priority,
            ))
            recipients.append(user.id)
        return recipients

    async def _push(self, notification: models.GlobalNotification, recipients: List[int]) -> None:
        if self.registry is None or not recipients:
            return
        try:
            await self.registry.broadcast(recipients, "notification", notification_snapshot(notification))
        except Exception:
            logger.exception(f"Live push of notification {notification.id} failed")

    # ==================== READ SIDE ====================

    def _active_deliveries(self, user_id: int, db: Session):
        return db.query(models.UserNotification).join(
            models.GlobalNotification,
            models.UserNotification.global_notification_id == models.GlobalNotification.id,
        ).filter(
            models.UserNotification.user_id == user_id,
            models.GlobalNotification.is_active.is_(True),
        )

    async def list_for_user(
        self,
        user_id: int,
        db: Session,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
    ) -> Tuple[List[models.UserNotification], bool]:
        """Newest first; returns (page, has_more)"""
        query = self._active_deliveries(user_id, db)
        if unread_only:
            query = query.filter(models.UserNotification.is_read.is_(False))

        rows = query.order_by(
            models.GlobalNotification.created_at.desc(),
            models.UserNotification.id.desc(),
        ).offset(offset).limit(limit + 1).all()
        return rows[:limit], len(rows) > limit

    async def get_summary(self, user_id: int, db: Session) -> Dict[str, int]:
        base = self._active_deliveries(user_id, db)
        unread = base.filter(models.UserNotification.is_read.is_(False))
        return {
            "total": base.with_entities(func.count(models.UserNotification.id)).scalar() or 0,
            "unread": unread.with_entities(func.count(models.UserNotification.id)).scalar() or 0,
            "high_priority": unread.filter(
                models.GlobalNotification.priority.in_(HIGH_PRIORITIES)
            ).with_entities(func.count(models.UserNotification.id)).scalar() or 0,
            "critical": unread.filter(
                models.GlobalNotification.priority == NotificationPriority.CRITICAL.value
            ).with_entities(func.count(models.UserNotification.id)).scalar() or 0,
        }

    async def mark_read(
        self,
        user_id: int,
        delivery_id: int,
        db: Session,
        context: Optional[AuditContext] = None,
    ) -> models.UserNotification:
        """
        Mark one of the user's notifications read

        Raises:
            NotFoundError: No such notification for this user
        """
        delivery = db.query(models.UserNotification).filter(
            models.UserNotification.id == delivery_id,
            models.UserNotification.user_id == user_id,
        ).first()
        if not delivery:
            raise NotFoundError(f"Notification {delivery_id} not found")

        before = {"is_read": bool(delivery.is_read), "read_at": delivery.read_at}
        if not delivery.is_read:
            delivery.is_read = True
            delivery.read_at = datetime.utcnow()
            db.commit()
            db.refresh(delivery)

        record_audit(
            "user_notification", "read", delivery.id,
            context=context or AuditContext(user_id=user_id),
            before_state=before,
            after_state={"is_read": True, "read_at": delivery.read_at},
        )
        return delivery

    async def mark_all_read(
        self,
        user_id: int,
        db: Session,
        context: Optional[AuditContext] = None,
    ) -> int:
        """Mark every unread notification of the user read; returns how many changed"""
        now = datetime.utcnow()
        unread = db.query(models.UserNotification).filter(
            models.UserNotification.user_id == user_id,
            models.UserNotification.is_read.is_(False),
        ).all()
        for delivery in unread:
            delivery.is_read = True
            delivery.read_at = now
        db.commit()

        record_audit(
            "user_notification", "bulk_read", 0,
            context=context or AuditContext(user_id=user_id),
            details={"updated": len(unread)},
        )
        logger.info(f"Marked {len(unread)} notifications read for user {user_id}")
        return len(unread)


# Singleton instance
notification_service = NotificationService()
