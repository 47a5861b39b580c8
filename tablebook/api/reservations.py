"""Reservation management API endpoints"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tablebook.api.deps import get_actor_id, get_reservation_service, verify_restaurant
from tablebook.models.reservation import ReservationStatus
from tablebook.models.restaurant import Restaurant
from tablebook.schemas.reservation import (
    HistoryEntryResponse,
    ReservationCreate,
    ReservationHistoryResponse,
    ReservationListResponse,
    ReservationResponse,
    ReservationsByDateResponse,
    ReservationUpdate,
    StatusChange,
    TableAssignment,
)
from tablebook.services.reservations import ReservationService

router = APIRouter()


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    restaurant_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status: Optional[ReservationStatus] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    customer_name: Optional[str] = None,
    customer_email: Optional[str] = None,
    sort_by: str = "reservation_datetime",
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """List reservations for a restaurant with filters and pagination"""
    items, total = await service.list(
        restaurant_id,
        status=status,
        on_date=on_date,
        date_from=date_from,
        date_to=date_to,
        customer_name=customer_name,
        customer_email=customer_email,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return ReservationListResponse(items=items, total=total, page=page, page_size=page_size)


@router.post("", response_model=ReservationResponse, status_code=201)
async def create_reservation(
    restaurant_id: UUID,
    reservation_data: ReservationCreate,
    actor_id: Optional[UUID] = Depends(get_actor_id),
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Create a new reservation"""
    return await service.create(restaurant_id, reservation_data, actor_id)


@router.get("/by-date/{day}", response_model=ReservationsByDateResponse)
async def reservations_by_date(
    restaurant_id: UUID,
    day: date,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """All reservations of one day with a summary by status"""
    items, summary = await service.by_date(restaurant_id, day)
    return ReservationsByDateResponse(reservation_date=day, items=items, total=len(items), summary=summary)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    restaurant_id: UUID,
    reservation_id: UUID,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Get reservation details"""
    return await service.get(restaurant_id, reservation_id)


@router.put("/{reservation_id}", response_model=ReservationResponse)
async def update_reservation(
    restaurant_id: UUID,
    reservation_id: UUID,
    reservation_data: ReservationUpdate,
    actor_id: Optional[UUID] = Depends(get_actor_id),
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Update reservation details"""
    return await service.update(restaurant_id, reservation_id, reservation_data, actor_id)


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
async def change_reservation_status(
    restaurant_id: UUID,
    reservation_id: UUID,
    change: StatusChange,
    actor_id: Optional[UUID] = Depends(get_actor_id),
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Move a reservation to another status"""
    return await service.change_status(restaurant_id, reservation_id, change.status, actor_id, change.reason)


@router.put("/{reservation_id}/table", response_model=ReservationResponse)
async def assign_table(
    restaurant_id: UUID,
    reservation_id: UUID,
    assignment: TableAssignment,
    actor_id: Optional[UUID] = Depends(get_actor_id),
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Assign or re-assign a table"""
    return await service.assign_table(
        restaurant_id, reservation_id, assignment.floor_plan_id, assignment.table_id, actor_id
    )


@router.get("/{reservation_id}/history", response_model=ReservationHistoryResponse)
async def reservation_history(
    restaurant_id: UUID,
    reservation_id: UUID,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Lifecycle history of a reservation"""
    reservation, entries = await service.get_history(restaurant_id, reservation_id)
    return ReservationHistoryResponse(
        reservation_id=reservation.id,
        reservation_number=reservation.reservation_number,
        entries=[HistoryEntryResponse.model_validate(e) for e in entries],
    )


@router.delete("/{reservation_id}", status_code=204)
async def delete_reservation(
    restaurant_id: UUID,
    reservation_id: UUID,
    reason: Optional[str] = None,
    actor_id: Optional[UUID] = Depends(get_actor_id),
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
):
    """Cancel (if still open) and soft-delete a reservation"""
    await service.soft_delete(restaurant_id, reservation_id, actor_id, reason)
