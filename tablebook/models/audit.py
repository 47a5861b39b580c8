"""Append-only reservation history and notification ledger"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Text, Index, Uuid, event

from tablebook.database import Base


class HistoryAction(str, enum.Enum):
    """Lifecycle events recorded for a reservation"""
    CREATED = "created"
    UPDATED = "updated"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    TABLE_ASSIGNED = "table_assigned"
    ARCHIVED = "archived"


class NotificationType(str, enum.Enum):
    """Customer notifications tied to the reservation lifecycle"""
    CONFIRMATION = "confirmation"
    REMINDER = "reminder"
    CANCELLATION = "cancellation"


class ReservationHistory(Base):
    """Audit trail of reservation lifecycle events"""
    __tablename__ = "reservation_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False)

    action = Column(String(50), nullable=False)
    actor_id = Column(Uuid)  # null for system jobs
    detail = Column(JSON)  # {"from": "pending", "reason": "..."}

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_reservation_history_reservation", "reservation_id", "created_at"),
    )


class NotificationAttempt(Base):
    """One delivery attempt, successful or not"""
    __tablename__ = "notification_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False)

    notification_type = Column(String(20), nullable=False)
    channel = Column(String(10), nullable=False)  # email, sms, none
    recipient = Column(String(255))

    success = Column(Boolean, nullable=False)
    provider_message_id = Column(String(255))
    error = Column(Text)

    attempted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notification_attempts_reservation", "reservation_id", "attempted_at"),
    )


class ImmutableRecordError(Exception):
    """Raised when an append-only row is modified or removed"""


def _reject_mutation(mapper, connection, target):
    raise ImmutableRecordError(f"{type(target).__name__} rows are append-only")


for _model in (ReservationHistory, NotificationAttempt):
    event.listen(_model, "before_update", _reject_mutation)
    event.listen(_model, "before_delete", _reject_mutation)
