"""
Notification Schemas
Pydantic models for per-user notification listing and read state
"""

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel


# ==================== RESPONSE SCHEMAS ====================

class NotificationItem(BaseModel):
    """One delivery of a global notification to the caller"""
    id: int
    global_notification_id: int
    type: str
    subtype: Optional[str] = None
    title: str
    message: str
    patient_id: int
    patient_name: str
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    related_item_name: Optional[str] = None
    priority: str = "normal"
    is_read: bool = False
    read_at: Optional[datetime] = None
    delivery_status: Optional[str] = None
    created_at: datetime


class NotificationSummary(BaseModel):
    total: int = 0
    unread: int = 0
    high_priority: int = 0
    critical: int = 0


class Pagination(BaseModel):
    limit: int
    offset: int
    has_more: bool


class NotificationList(BaseModel):
    notifications: List[NotificationItem]
    summary: NotificationSummary
    pagination: Pagination


class MarkAllReadResponse(BaseModel):
    updated: int
