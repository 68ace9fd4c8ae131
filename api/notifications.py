"""
Notifications API Router
The caller's notifications, summary counts and read state
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, pagination_params, services
from api.schemas.notification import (
    MarkAllReadResponse,
    NotificationItem,
    NotificationList,
    NotificationSummary,
    Pagination,
)
from services.audit_service import AuditContext
from services.errors import NotFoundError
from services.notification_service import user_notification_payload
import models


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def get_notifications(
    unread_only: bool = Query(False),
    page: dict = Depends(pagination_params),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Notifications delivered to the caller, newest first, with summary counts
    """
    notification_service = services.get_notification_service()

    deliveries, has_more = await notification_service.list_for_user(
        user.id, db, limit=page["limit"], offset=page["offset"], unread_only=unread_only
    )
    summary = await notification_service.get_summary(user.id, db)

    return NotificationList(
        notifications=[NotificationItem(**user_notification_payload(d)) for d in deliveries],
        summary=NotificationSummary(**summary),
        pagination=Pagination(limit=page["limit"], offset=page["offset"], has_more=has_more),
    )


@router.put("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_read(
    request: Request,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_service = services.get_notification_service()
    context = AuditContext.from_request(request, user_id=user.id)
    updated = await notification_service.mark_all_read(user.id, db, context=context)
    return MarkAllReadResponse(updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationItem)
async def mark_read(
    notification_id: int,
    request: Request,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_service = services.get_notification_service()
    context = AuditContext.from_request(request, user_id=user.id)

    try:
        delivery = await notification_service.mark_read(user.id, notification_id, db, context=context)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return NotificationItem(**user_notification_payload(delivery))
