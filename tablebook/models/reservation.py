"""Reservation model"""

import enum
import uuid
from datetime import datetime, timedelta
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Boolean, Enum, Index, Uuid

from tablebook.database import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ReservationStatus(str, enum.Enum):
    """Reservation lifecycle states"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_STATUSES = frozenset(
    {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW}
)

# Only these statuses hold a claim on a table or on seating capacity
BLOCKING_STATUSES = (ReservationStatus.CONFIRMED, ReservationStatus.SEATED)


class ReservationSource(str, enum.Enum):
    """Channel a reservation came in through"""
    ONLINE = "online"
    PHONE = "phone"
    WALK_IN = "walk_in"
    APP = "app"
    PARTNER = "partner"
    STAFF = "staff"


class Reservation(Base):
    """Table reservations"""
    __tablename__ = "reservations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_number = Column(String(32), unique=True, nullable=False)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id"), nullable=False, index=True)

    # Customer snapshot
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20))
    customer_email = Column(String(255))
    special_requests = Column(Text)
    notes = Column(Text)
    source = Column(Enum(ReservationSource, name="reservation_source", values_callable=_enum_values), default=ReservationSource.ONLINE)

    # Schedule
    reservation_datetime = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=120)
    end_datetime = Column(DateTime, nullable=False)
    party_size = Column(Integer, nullable=False)

    # Table assignment
    floor_plan_id = Column(Uuid, ForeignKey("floor_plans.id"))
    table_id = Column(Uuid, ForeignKey("floor_plan_tables.id"))
    table_number = Column(String(20))
    table_assigned_at = Column(DateTime)
    table_assigned_by = Column(Uuid)

    # Status
    status = Column(
        Enum(ReservationStatus, name="reservation_status", values_callable=_enum_values),
        default=ReservationStatus.PENDING,
        nullable=False,
    )
    requested_at = Column(DateTime, default=datetime.utcnow)
    confirmed_at = Column(DateTime)
    seated_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)  # also stamped for no_show

    # Preferences (advisory only)
    seating_area = Column(String(50))  # indoor, terrace, bar, private
    table_shape = Column(String(20))
    accessibility = Column(Boolean, default=False)
    quiet = Column(Boolean, default=False)

    # Notification flags
    confirmation_sent = Column(Boolean, default=False, nullable=False)
    reminder_sent = Column(Boolean, default=False, nullable=False)

    # Actors
    created_by = Column(Uuid)
    last_modified_by = Column(Uuid)

    # Soft delete
    is_active = Column(Boolean, default=True, nullable=False)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_reservations_restaurant_start", "restaurant_id", "reservation_datetime"),
        Index("idx_reservations_restaurant_status", "restaurant_id", "status"),
        Index("idx_reservations_table", "floor_plan_id", "table_id"),
    )

    def set_schedule(self, start: datetime, duration_minutes: int) -> None:
        """Set start and duration, keeping the derived end in sync"""
        self.reservation_datetime = start
        self.duration_minutes = duration_minutes
        self.end_datetime = start + timedelta(minutes=duration_minutes)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_table(self) -> bool:
        return self.floor_plan_id is not None and self.table_id is not None

    def can_be_modified(self) -> bool:
        """Details may only change before guests are seated"""
        return self.status in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

    def __repr__(self):
        return f"<Reservation {self.reservation_number} {self.status}>"
