"""Reservation schemas"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from tablebook.models.reservation import ReservationSource, ReservationStatus


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC; offset-aware input is converted"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ReservationCreate(BaseModel):
    """Create reservation request"""
    customer_name: str = Field(min_length=1, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    customer_email: Optional[str] = Field(default=None, max_length=255)
    party_size: int = Field(ge=1)
    reservation_datetime: datetime
    duration_minutes: Optional[int] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    source: ReservationSource = ReservationSource.ONLINE

    # Preferences
    seating_area: Optional[str] = None
    table_shape: Optional[str] = None
    accessibility: bool = False
    quiet: bool = False

    # Staff bookings skip the pending step
    auto_confirm: bool = False

    @field_validator("reservation_datetime")
    @classmethod
    def naive_utc_start(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class ReservationUpdate(BaseModel):
    """Update reservation request"""
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    customer_email: Optional[str] = Field(default=None, max_length=255)
    party_size: Optional[int] = Field(default=None, ge=1)
    reservation_datetime: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    seating_area: Optional[str] = None
    table_shape: Optional[str] = None
    accessibility: Optional[bool] = None
    quiet: Optional[bool] = None

    @field_validator("reservation_datetime")
    @classmethod
    def naive_utc_start(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class StatusChange(BaseModel):
    """Status change request"""
    status: ReservationStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class TableAssignment(BaseModel):
    """Table assignment request"""
    floor_plan_id: UUID
    table_id: UUID


class ReservationResponse(BaseModel):
    """Reservation response"""
    id: UUID
    reservation_number: str
    restaurant_id: UUID
    customer_name: str
    customer_phone: Optional[str]
    customer_email: Optional[str]
    special_requests: Optional[str]
    notes: Optional[str]
    source: Optional[ReservationSource]
    party_size: int
    reservation_datetime: datetime
    duration_minutes: int
    end_datetime: datetime
    floor_plan_id: Optional[UUID]
    table_id: Optional[UUID]
    table_number: Optional[str]
    table_assigned_at: Optional[datetime]
    status: ReservationStatus
    requested_at: Optional[datetime]
    confirmed_at: Optional[datetime]
    seated_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    seating_area: Optional[str]
    table_shape: Optional[str]
    accessibility: Optional[bool]
    quiet: Optional[bool]
    confirmation_sent: bool
    reminder_sent: bool
    created_by: Optional[UUID]
    last_modified_by: Optional[UUID]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReservationListResponse(BaseModel):
    """Paginated reservation list"""
    items: List[ReservationResponse]
    total: int
    page: int
    page_size: int


class ReservationsByDateResponse(BaseModel):
    """Reservations of one calendar day with a per-status summary"""
    reservation_date: date
    items: List[ReservationResponse]
    total: int
    summary: Dict[str, int]


class HistoryEntryResponse(BaseModel):
    """History entry"""
    id: UUID
    action: str
    actor_id: Optional[UUID]
    detail: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class ReservationHistoryResponse(BaseModel):
    """Lifecycle history of one reservation, oldest first"""
    reservation_id: UUID
    reservation_number: str
    entries: List[HistoryEntryResponse]
