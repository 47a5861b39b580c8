"""
Reservation service: create, update, status changes, table assignment and
queries, scoped to one restaurant.
"""

import secrets
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.config import Settings, settings as default_settings
from tablebook.models.audit import HistoryAction, ReservationHistory
from tablebook.models.reservation import Reservation, ReservationStatus
from tablebook.models.restaurant import Restaurant
from tablebook.schemas.reservation import ReservationCreate, ReservationUpdate
from tablebook.services.errors import ConflictError, NotFoundError, ReservationValidationError
from tablebook.services.notifications import NotificationOrchestrator
from tablebook.services.resolver import ConflictResolver
from tablebook.services.state_machine import ReservationStateMachine, record_history
from tablebook.services.tables import TableAllocationGateway

logger = structlog.get_logger(__name__)

SORTABLE_FIELDS = {
    "reservation_datetime": Reservation.reservation_datetime,
    "created_at": Reservation.created_at,
    "party_size": Reservation.party_size,
    "customer_name": Reservation.customer_name,
    "status": Reservation.status,
}

SCHEDULE_FIELDS = ("reservation_datetime", "duration_minutes", "party_size")

# Optional details an update may reset to null
CLEARABLE_FIELDS = (
    "customer_phone", "customer_email", "special_requests", "notes", "seating_area", "table_shape",
)


class ReservationService:
    """Entry point for every reservation mutation and query"""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationOrchestrator,
        clock: Callable[[], datetime] = datetime.utcnow,
        config: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock
        self.config = config
        self.resolver = ConflictResolver(db)
        self.gateway = TableAllocationGateway(db)
        self.state_machine = ReservationStateMachine(db, self.gateway, notifier, self.resolver, clock)

    # Validation helpers

    def _check_start(self, start: datetime) -> None:
        if start <= self.clock():
            raise ReservationValidationError(
                "Reservation time must be in the future",
                field="reservation_datetime",
            )

    def _check_duration(self, duration_minutes: int) -> None:
        low, high = self.config.min_duration_minutes, self.config.max_duration_minutes
        if not low <= duration_minutes <= high:
            raise ReservationValidationError(
                f"Duration must be between {low} and {high} minutes",
                field="duration_minutes",
            )

    def _check_party_size(self, party_size: int) -> None:
        if not 1 <= party_size <= self.config.max_party_size:
            raise ReservationValidationError(
                f"Party size must be between 1 and {self.config.max_party_size}",
                field="party_size",
            )

    async def _get_restaurant(self, restaurant_id: UUID) -> Restaurant:
        restaurant = await self.db.get(Restaurant, restaurant_id)
        if restaurant is None or not restaurant.is_active:
            raise NotFoundError("Restaurant not found", restaurant_id=str(restaurant_id))
        return restaurant

    async def generate_reservation_number(self, restaurant_id: UUID) -> str:
        """RES-YYYYMMDD-NNNN from the restaurant's count for the day, with a random fallback"""
        now = self.clock()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        prefix = f"RES-{now:%Y%m%d}"

        result = await self.db.execute(
            select(func.count(Reservation.id)).where(
                Reservation.restaurant_id == restaurant_id,
                Reservation.created_at >= day_start,
                Reservation.created_at < day_start + timedelta(days=1),
            )
        )
        sequence = (result.scalar() or 0) + 1

        for attempt in range(self.config.reservation_number_max_attempts):
            candidate = f"{prefix}-{sequence + attempt:04d}"
            if not await self._number_taken(candidate):
                return candidate

        while True:
            candidate = f"{prefix}-{secrets.token_hex(3).upper()}"
            if not await self._number_taken(candidate):
                logger.warning("Reservation number sequence exhausted", fallback=candidate)
                return candidate

    async def _number_taken(self, number: str) -> bool:
        result = await self.db.execute(
            select(Reservation.id).where(Reservation.reservation_number == number)
        )
        return result.first() is not None

    # Mutations

    async def create(
        self,
        restaurant_id: UUID,
        data: ReservationCreate,
        actor_id: Optional[UUID] = None,
    ) -> Reservation:
        await self._get_restaurant(restaurant_id)

        duration = (
            data.duration_minutes
            if data.duration_minutes is not None
            else self.config.default_duration_minutes
        )
        self._check_start(data.reservation_datetime)
        self._check_duration(duration)
        self._check_party_size(data.party_size)

        await self.resolver.ensure_capacity(
            restaurant_id, data.reservation_datetime, duration, data.party_size
        )

        now = self.clock()
        reservation = Reservation(
            reservation_number=await self.generate_reservation_number(restaurant_id),
            restaurant_id=restaurant_id,
            customer_name=data.customer_name.strip(),
            customer_phone=data.customer_phone,
            customer_email=data.customer_email,
            special_requests=data.special_requests,
            notes=data.notes,
            source=data.source,
            party_size=data.party_size,
            seating_area=data.seating_area,
            table_shape=data.table_shape,
            accessibility=data.accessibility,
            quiet=data.quiet,
            status=ReservationStatus.PENDING,
            requested_at=now,
            confirmation_sent=False,
            reminder_sent=False,
            created_by=actor_id,
            last_modified_by=actor_id,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        reservation.set_schedule(data.reservation_datetime, duration)
        self.db.add(reservation)
        await self.db.flush()

        record_history(
            self.db, reservation, HistoryAction.CREATED.value, actor_id,
            {"source": data.source.value}, at=now,
        )
        await self.db.commit()

        logger.info(
            "Reservation created",
            reservation_id=str(reservation.id),
            reservation_number=reservation.reservation_number,
            restaurant_id=str(restaurant_id),
            party_size=reservation.party_size,
        )

        if data.auto_confirm:
            try:
                await self.state_machine.transition(
                    reservation, ReservationStatus.CONFIRMED, actor_id, reason="auto-confirmed"
                )
            except ConflictError as e:
                # The booking is already committed; it stays pending for staff review
                logger.warning(
                    "Auto-confirm skipped",
                    reservation_id=str(reservation.id),
                    reservation_number=reservation.reservation_number,
                    error=e.message,
                )

        return reservation

    async def update(
        self,
        restaurant_id: UUID,
        reservation_id: UUID,
        data: ReservationUpdate,
        actor_id: Optional[UUID] = None,
    ) -> Reservation:
        reservation = await self.get(restaurant_id, reservation_id)

        if not reservation.can_be_modified():
            raise ReservationValidationError(
                f"Reservation cannot be modified in status {reservation.status.value}",
                current_status=reservation.status.value,
            )

        changes = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k in CLEARABLE_FIELDS
        }
        if not changes:
            return reservation

        start = changes.get("reservation_datetime", reservation.reservation_datetime)
        duration = changes.get("duration_minutes", reservation.duration_minutes)
        party_size = changes.get("party_size", reservation.party_size)

        if any(field in changes for field in SCHEDULE_FIELDS):
            if "reservation_datetime" in changes:
                self._check_start(start)
            self._check_duration(duration)
            self._check_party_size(party_size)

            await self.resolver.ensure_capacity(
                restaurant_id, start, duration, party_size,
                exclude_reservation_id=reservation.id,
            )
            if reservation.has_table:
                table = await self.gateway.find_table(
                    restaurant_id, reservation.floor_plan_id, reservation.table_id
                )
                self.resolver.ensure_table_fits(table, party_size)
                await self.resolver.ensure_table_free(
                    restaurant_id, reservation.floor_plan_id, reservation.table_id,
                    reservation.table_number, start, duration,
                    exclude_reservation_id=reservation.id,
                )

        for field, value in changes.items():
            if field not in ("reservation_datetime", "duration_minutes"):
                setattr(reservation, field, value)
        reservation.set_schedule(start, duration)

        now = self.clock()
        reservation.last_modified_by = actor_id
        reservation.updated_at = now
        record_history(
            self.db, reservation, HistoryAction.UPDATED.value, actor_id,
            {"fields": sorted(changes)}, at=now,
        )
        await self.db.commit()

        logger.info(
            "Reservation updated",
            reservation_id=str(reservation.id),
            reservation_number=reservation.reservation_number,
            fields=sorted(changes),
        )
        return reservation

    async def change_status(
        self,
        restaurant_id: UUID,
        reservation_id: UUID,
        status: ReservationStatus,
        actor_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        reservation = await self.get(restaurant_id, reservation_id)
        return await self.state_machine.transition(reservation, status, actor_id, reason)

    async def assign_table(
        self,
        restaurant_id: UUID,
        reservation_id: UUID,
        floor_plan_id: UUID,
        table_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> Reservation:
        reservation = await self.get(restaurant_id, reservation_id)

        if not reservation.can_be_modified():
            raise ReservationValidationError(
                f"Cannot assign a table to a reservation in status {reservation.status.value}",
                current_status=reservation.status.value,
            )

        table = await self.gateway.find_table(restaurant_id, floor_plan_id, table_id)
        self.resolver.ensure_table_fits(table, reservation.party_size)
        await self.resolver.ensure_table_free(
            restaurant_id, floor_plan_id, table_id, table.number,
            reservation.reservation_datetime, reservation.duration_minutes,
            exclude_reservation_id=reservation.id,
        )

        previous = reservation.table_number
        now = self.clock()
        reservation.floor_plan_id = floor_plan_id
        reservation.table_id = table_id
        reservation.table_number = table.number
        reservation.table_assigned_at = now
        reservation.table_assigned_by = actor_id
        reservation.last_modified_by = actor_id
        reservation.updated_at = now

        detail = {"table_number": table.number, "floor_plan_id": str(floor_plan_id), "table_id": str(table_id)}
        if previous:
            detail["previous_table_number"] = previous
        record_history(self.db, reservation, HistoryAction.TABLE_ASSIGNED.value, actor_id, detail, at=now)
        await self.db.commit()

        logger.info(
            "Table assigned",
            reservation_number=reservation.reservation_number,
            table_number=table.number,
            previous_table_number=previous,
        )
        return reservation

    async def soft_delete(
        self,
        restaurant_id: UUID,
        reservation_id: UUID,
        actor_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        """Cancel if still open, then hide the reservation"""
        reservation = await self.get(restaurant_id, reservation_id)

        if reservation.status in (ReservationStatus.SEATED, ReservationStatus.COMPLETED):
            raise ReservationValidationError(
                f"Cannot delete a reservation in status {reservation.status.value}",
                current_status=reservation.status.value,
            )

        if not reservation.is_terminal:
            await self.state_machine.transition(
                reservation, ReservationStatus.CANCELLED, actor_id, reason=reason or "deleted"
            )

        return await self.archive(reservation, actor_id, reason=reason or "deleted")

    async def archive(
        self,
        reservation: Reservation,
        actor_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        now = self.clock()
        reservation.is_active = False
        reservation.last_modified_by = actor_id
        reservation.updated_at = now
        record_history(
            self.db, reservation, HistoryAction.ARCHIVED.value, actor_id,
            {"reason": reason} if reason else {}, at=now,
        )
        await self.db.commit()

        logger.info(
            "Reservation archived",
            reservation_id=str(reservation.id),
            reservation_number=reservation.reservation_number,
        )
        return reservation

    # Queries

    async def get(self, restaurant_id: UUID, reservation_id: UUID, include_inactive: bool = False) -> Reservation:
        query = select(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.restaurant_id == restaurant_id,
        )
        if not include_inactive:
            query = query.where(Reservation.is_active == True)  # noqa: E712

        result = await self.db.execute(query)
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reservation not found", reservation_id=str(reservation_id))
        return reservation

    async def list(
        self,
        restaurant_id: UUID,
        status: Optional[ReservationStatus] = None,
        on_date: Optional[date] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        sort_by: str = "reservation_datetime",
        sort_order: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Reservation], int]:
        if sort_by not in SORTABLE_FIELDS:
            raise ReservationValidationError(
                f"Cannot sort by {sort_by}",
                field="sort_by",
                allowed=sorted(SORTABLE_FIELDS),
            )

        conditions = [
            Reservation.restaurant_id == restaurant_id,
            Reservation.is_active == True,  # noqa: E712
        ]
        if status:
            conditions.append(Reservation.status == status)
        if on_date:
            day_start = datetime.combine(on_date, datetime.min.time())
            conditions.append(Reservation.reservation_datetime >= day_start)
            conditions.append(Reservation.reservation_datetime < day_start + timedelta(days=1))
        if date_from:
            conditions.append(Reservation.reservation_datetime >= date_from)
        if date_to:
            conditions.append(Reservation.reservation_datetime <= date_to)
        if customer_name:
            conditions.append(Reservation.customer_name.ilike(f"%{customer_name}%"))
        if customer_email:
            conditions.append(Reservation.customer_email == customer_email.strip().lower())

        total_result = await self.db.execute(select(func.count(Reservation.id)).where(*conditions))
        total = total_result.scalar() or 0

        column = SORTABLE_FIELDS[sort_by]
        order = column.desc() if sort_order == "desc" else column.asc()
        result = await self.db.execute(
            select(Reservation)
            .where(*conditions)
            .order_by(order, Reservation.reservation_number)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def by_date(self, restaurant_id: UUID, day: date) -> Tuple[List[Reservation], Dict[str, int]]:
        """All of a day's reservations in start order, plus counts per status"""
        day_start = datetime.combine(day, datetime.min.time())
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.restaurant_id == restaurant_id,
                Reservation.is_active == True,  # noqa: E712
                Reservation.reservation_datetime >= day_start,
                Reservation.reservation_datetime < day_start + timedelta(days=1),
            )
            .order_by(Reservation.reservation_datetime)
        )
        reservations = list(result.scalars().all())

        summary = {status.value: 0 for status in ReservationStatus}
        for reservation in reservations:
            summary[reservation.status.value] += 1
        return reservations, summary

    async def get_history(self, restaurant_id: UUID, reservation_id: UUID) -> Tuple[Reservation, List[ReservationHistory]]:
        reservation = await self.get(restaurant_id, reservation_id, include_inactive=True)
        result = await self.db.execute(
            select(ReservationHistory)
            .where(ReservationHistory.reservation_id == reservation.id)
            .order_by(ReservationHistory.created_at, ReservationHistory.id)
        )
        return reservation, list(result.scalars().all())
