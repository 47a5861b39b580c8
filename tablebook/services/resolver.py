"""Conflict and capacity checks for proposed reservation slots.

Every check is a plain read followed by a decision. Nothing is locked, so two
bookings racing for the same slot can both pass; that risk is accepted.
Only confirmed and seated reservations block a slot: pending requests never
block each other, which keeps online booking optimistic.
"""

from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.models.floor_plan import Table
from tablebook.models.reservation import Reservation, BLOCKING_STATUSES
from tablebook.models.restaurant import Restaurant
from tablebook.services.errors import ConflictError, NotFoundError, ReservationValidationError

logger = structlog.get_logger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """True when the half-open intervals [a_start, a_end) and [b_start, b_end) intersect"""
    return a_start < b_end and b_start < a_end


def describe_conflict(reservation: Reservation) -> dict:
    return {
        "reservation_id": str(reservation.id),
        "reservation_number": reservation.reservation_number,
        "customer_name": reservation.customer_name,
        "start": reservation.reservation_datetime.isoformat(),
        "end": reservation.end_datetime.isoformat(),
        "party_size": reservation.party_size,
    }


class ConflictResolver:
    """Decides whether a table/time/party-size proposal can be accepted"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _overlapping(self, restaurant_id: UUID, start: datetime, end: datetime, exclude_reservation_id: Optional[UUID]):
        conditions = [
            Reservation.restaurant_id == restaurant_id,
            Reservation.is_active == True,  # noqa: E712
            Reservation.status.in_(BLOCKING_STATUSES),
            Reservation.reservation_datetime < end,
            Reservation.end_datetime > start,
        ]
        if exclude_reservation_id is not None:
            conditions.append(Reservation.id != exclude_reservation_id)
        return conditions

    async def find_table_conflicts(
        self,
        restaurant_id: UUID,
        floor_plan_id: UUID,
        table_id: UUID,
        start: datetime,
        duration_minutes: int,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        """Blocking reservations on the table whose interval overlaps the proposal"""
        end = start + timedelta(minutes=duration_minutes)
        result = await self.db.execute(
            select(Reservation)
            .where(
                *self._overlapping(restaurant_id, start, end, exclude_reservation_id),
                Reservation.floor_plan_id == floor_plan_id,
                Reservation.table_id == table_id,
            )
            .order_by(Reservation.reservation_datetime)
        )
        candidates = result.scalars().all()
        return [
            r for r in candidates
            if intervals_overlap(start, end, r.reservation_datetime, r.end_datetime)
        ]

    async def ensure_table_free(
        self,
        restaurant_id: UUID,
        floor_plan_id: UUID,
        table_id: UUID,
        table_number: str,
        start: datetime,
        duration_minutes: int,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> None:
        conflicts = await self.find_table_conflicts(
            restaurant_id, floor_plan_id, table_id, start, duration_minutes, exclude_reservation_id
        )
        if not conflicts:
            return

        first = conflicts[0]
        logger.info(
            "Table slot conflict",
            table_number=table_number,
            conflicting_reservation=first.reservation_number,
            conflict_count=len(conflicts),
        )
        raise ConflictError(
            f"Table {table_number} is already booked by reservation {first.reservation_number} "
            f"({first.customer_name}) at {first.reservation_datetime:%Y-%m-%d %H:%M}",
            conflicts=[describe_conflict(r) for r in conflicts],
        )

    async def booked_covers(
        self,
        restaurant_id: UUID,
        start: datetime,
        duration_minutes: int,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> int:
        """Guests already holding a confirmed or seated claim during the interval"""
        end = start + timedelta(minutes=duration_minutes)
        result = await self.db.execute(
            select(func.coalesce(func.sum(Reservation.party_size), 0)).where(
                *self._overlapping(restaurant_id, start, end, exclude_reservation_id)
            )
        )
        return int(result.scalar() or 0)

    async def ensure_capacity(
        self,
        restaurant_id: UUID,
        start: datetime,
        duration_minutes: int,
        party_size: int,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> None:
        restaurant = await self.db.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found", restaurant_id=str(restaurant_id))

        if not restaurant.seating_capacity:
            return

        booked = await self.booked_covers(restaurant_id, start, duration_minutes, exclude_reservation_id)
        if booked + party_size > restaurant.seating_capacity:
            logger.info(
                "Restaurant capacity exceeded",
                restaurant_id=str(restaurant_id),
                booked=booked,
                requested=party_size,
                capacity=restaurant.seating_capacity,
            )
            raise ConflictError(
                f"Not enough capacity: {booked} of {restaurant.seating_capacity} seats already booked, "
                f"{party_size} requested",
                booked=booked,
                requested=party_size,
                capacity=restaurant.seating_capacity,
            )

    @staticmethod
    def ensure_table_fits(table: Table, party_size: int) -> None:
        if party_size > table.capacity:
            raise ReservationValidationError(
                f"Table {table.number} seats only {table.capacity} guests ({party_size} requested)",
                field="table_id",
                table_capacity=table.capacity,
                party_size=party_size,
            )
