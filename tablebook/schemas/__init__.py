"""Pydantic schemas for request/response validation"""

from tablebook.schemas.reservation import (
    ReservationCreate,
    ReservationUpdate,
    StatusChange,
    TableAssignment,
    ReservationResponse,
    ReservationListResponse,
    ReservationsByDateResponse,
    HistoryEntryResponse,
    ReservationHistoryResponse,
)
from tablebook.schemas.notification import (
    NotificationResult,
    BatchReminderItem,
    BatchReminderResult,
    RetryRequest,
    CancellationNoticeRequest,
    NotificationAttemptResponse,
    NotificationHistoryResponse,
    NotificationStatsResponse,
)
from tablebook.schemas.jobs import (
    JobResult,
    JobInfo,
    JobStatusResponse,
    RestaurantWeeklyStats,
)

__all__ = [
    "ReservationCreate",
    "ReservationUpdate",
    "StatusChange",
    "TableAssignment",
    "ReservationResponse",
    "ReservationListResponse",
    "ReservationsByDateResponse",
    "HistoryEntryResponse",
    "ReservationHistoryResponse",
    "NotificationResult",
    "BatchReminderItem",
    "BatchReminderResult",
    "RetryRequest",
    "CancellationNoticeRequest",
    "NotificationAttemptResponse",
    "NotificationHistoryResponse",
    "NotificationStatsResponse",
    "JobResult",
    "JobInfo",
    "JobStatusResponse",
    "RestaurantWeeklyStats",
]
