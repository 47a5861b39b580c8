"""Database models"""

from tablebook.models.restaurant import Restaurant
from tablebook.models.floor_plan import FloorPlan, Table, TableStatus
from tablebook.models.reservation import (
    Reservation,
    ReservationSource,
    ReservationStatus,
    TERMINAL_STATUSES,
    BLOCKING_STATUSES,
)
from tablebook.models.audit import (
    HistoryAction,
    NotificationAttempt,
    NotificationType,
    ReservationHistory,
)

__all__ = [
    "Restaurant",
    "FloorPlan",
    "Table",
    "TableStatus",
    "Reservation",
    "ReservationSource",
    "ReservationStatus",
    "TERMINAL_STATUSES",
    "BLOCKING_STATUSES",
    "HistoryAction",
    "NotificationAttempt",
    "NotificationType",
    "ReservationHistory",
]
