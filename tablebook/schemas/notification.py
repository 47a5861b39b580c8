"""Notification schemas"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel

from tablebook.models.audit import NotificationType


class NotificationResult(BaseModel):
    """Outcome of a single send request"""
    success: bool
    notification_type: NotificationType
    message: str
    reason: Optional[str] = None  # not_confirmed, already_sent, past_due, too_early, ...
    reservation_id: Optional[UUID] = None
    reservation_number: Optional[str] = None
    channel: Optional[str] = None
    provider_message_id: Optional[str] = None
    hours_until_reservation: Optional[float] = None
    retried: bool = False


class BatchReminderItem(BaseModel):
    """Per-reservation line of a batch run"""
    reservation_id: UUID
    reservation_number: Optional[str] = None
    success: bool
    reason: Optional[str] = None
    message: str


class BatchReminderResult(BaseModel):
    """Summary of a batch reminder run"""
    success: bool
    message: str
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    details: List[BatchReminderItem] = []


class RetryRequest(BaseModel):
    """Retry the most recent failed delivery of a type"""
    notification_type: NotificationType


class CancellationNoticeRequest(BaseModel):
    """Explicit cancellation notice"""
    reason: Optional[str] = None


class NotificationAttemptResponse(BaseModel):
    """Ledger entry"""
    id: UUID
    notification_type: str
    channel: str
    recipient: Optional[str]
    success: bool
    provider_message_id: Optional[str]
    error: Optional[str]
    attempted_at: datetime

    class Config:
        from_attributes = True


class NotificationHistoryResponse(BaseModel):
    """Notification flags and ledger for one reservation"""
    reservation_id: UUID
    reservation_number: str
    customer_email: Optional[str]
    confirmation_sent: bool
    reminder_sent: bool
    attempts: List[NotificationAttemptResponse] = []


class NotificationStatsResponse(BaseModel):
    """Delivery statistics over a trailing window"""
    period_days: int
    total_reservations: int = 0
    confirmations_sent: int = 0
    reminders_sent: int = 0
    total_attempts: int = 0
    successful_attempts: int = 0
    confirmation_rate: float = 0.0
    reminder_rate: float = 0.0
    delivery_success_rate: float = 0.0
