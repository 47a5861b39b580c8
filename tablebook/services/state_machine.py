"""
Reservation state machine.

The transition table below is the single source of truth for which status
changes are legal, which timestamp each one stamps and which side effects run
once the change is committed.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.models.audit import ReservationHistory
from tablebook.models.floor_plan import TableStatus
from tablebook.models.reservation import Reservation, ReservationStatus
from tablebook.services.errors import IllegalTransitionError
from tablebook.services.notifications import NotificationOrchestrator
from tablebook.services.resolver import ConflictResolver
from tablebook.services.tables import TableAllocationGateway

logger = structlog.get_logger(__name__)


class Effect(str, enum.Enum):
    """Follow-up actions run after a transition is committed"""
    REQUEST_CONFIRMATION = "request_confirmation"
    REQUEST_CANCELLATION = "request_cancellation"
    OCCUPY_TABLE = "occupy_table"
    MARK_TABLE_CLEANING = "mark_table_cleaning"
    RELEASE_RESERVED_TABLE = "release_reserved_table"


@dataclass(frozen=True)
class Transition:
    source: ReservationStatus
    target: ReservationStatus
    timestamp_field: str
    effects: Tuple[Effect, ...] = ()


_S = ReservationStatus
_CLOSING_EFFECTS = (Effect.REQUEST_CANCELLATION, Effect.RELEASE_RESERVED_TABLE)

TRANSITIONS: Dict[Tuple[ReservationStatus, ReservationStatus], Transition] = {
    (t.source, t.target): t
    for t in (
        Transition(_S.PENDING, _S.CONFIRMED, "confirmed_at", (Effect.REQUEST_CONFIRMATION,)),
        Transition(_S.PENDING, _S.CANCELLED, "cancelled_at", _CLOSING_EFFECTS),
        Transition(_S.CONFIRMED, _S.SEATED, "seated_at", (Effect.OCCUPY_TABLE,)),
        Transition(_S.CONFIRMED, _S.CANCELLED, "cancelled_at", _CLOSING_EFFECTS),
        Transition(_S.CONFIRMED, _S.NO_SHOW, "cancelled_at", _CLOSING_EFFECTS),
        Transition(_S.SEATED, _S.COMPLETED, "completed_at", (Effect.MARK_TABLE_CLEANING,)),
        Transition(_S.SEATED, _S.CANCELLED, "cancelled_at", _CLOSING_EFFECTS),
    )
}


def allowed_targets(status: ReservationStatus) -> List[ReservationStatus]:
    """Statuses reachable in one step from the given status"""
    return [target for (source, target) in TRANSITIONS if source == status]


def record_history(
    db: AsyncSession,
    reservation: Reservation,
    action: str,
    actor_id: Optional[UUID],
    detail: Optional[dict] = None,
    at: Optional[datetime] = None,
) -> ReservationHistory:
    """Stage an append-only history entry; the caller commits"""
    entry = ReservationHistory(
        reservation_id=reservation.id,
        action=action,
        actor_id=actor_id,
        detail=detail or {},
    )
    if at is not None:
        entry.created_at = at
    db.add(entry)
    return entry


class ReservationStateMachine:
    """Applies legal status changes and dispatches their side effects"""

    def __init__(
        self,
        db: AsyncSession,
        gateway: TableAllocationGateway,
        notifier: NotificationOrchestrator,
        resolver: ConflictResolver,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier
        self.resolver = resolver
        self.clock = clock

    async def transition(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        actor_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        source = reservation.status
        rule = TRANSITIONS.get((source, target))
        allowed = [s.value for s in allowed_targets(source)]

        if rule is None:
            raise IllegalTransitionError(
                f"Cannot change status from {source.value} to {target.value}",
                current_status=source.value,
                allowed=allowed,
            )

        if target == ReservationStatus.SEATED and not reservation.has_table:
            raise IllegalTransitionError(
                "A table must be assigned before seating guests",
                current_status=source.value,
                allowed=allowed,
            )

        if target == ReservationStatus.CONFIRMED:
            await self._check_slot(reservation)

        now = self.clock()
        reservation.status = target
        setattr(reservation, rule.timestamp_field, now)
        reservation.last_modified_by = actor_id
        reservation.updated_at = now

        detail = {"from": source.value}
        if reason:
            detail["reason"] = reason
        record_history(self.db, reservation, target.value, actor_id, detail, at=now)

        await self.db.commit()

        logger.info(
            "Reservation status changed",
            reservation_id=str(reservation.id),
            reservation_number=reservation.reservation_number,
            from_status=source.value,
            to_status=target.value,
        )

        for effect in rule.effects:
            await self._run_effect(effect, reservation, reason)

        return reservation

    async def _check_slot(self, reservation: Reservation) -> None:
        """Capacity and table checks for a reservation about to claim its slot"""
        await self.resolver.ensure_capacity(
            reservation.restaurant_id,
            reservation.reservation_datetime,
            reservation.duration_minutes,
            reservation.party_size,
            exclude_reservation_id=reservation.id,
        )
        if reservation.has_table:
            await self.resolver.ensure_table_free(
                reservation.restaurant_id,
                reservation.floor_plan_id,
                reservation.table_id,
                reservation.table_number,
                reservation.reservation_datetime,
                reservation.duration_minutes,
                exclude_reservation_id=reservation.id,
            )

    async def _run_effect(self, effect: Effect, reservation: Reservation, reason: Optional[str]) -> None:
        try:
            if effect == Effect.REQUEST_CONFIRMATION:
                await self.notifier.send_confirmation(reservation.id)
            elif effect == Effect.REQUEST_CANCELLATION:
                await self.notifier.send_cancellation(reservation.id, reason)
            elif reservation.has_table:
                await self._update_table(effect, reservation)
        except Exception as e:
            logger.error(
                "Post-transition effect failed",
                effect=effect.value,
                reservation_id=str(reservation.id),
                error=str(e),
            )
            await self.db.rollback()
            await self.db.refresh(reservation)

    async def _update_table(self, effect: Effect, reservation: Reservation) -> None:
        args = (reservation.restaurant_id, reservation.floor_plan_id, reservation.table_id)
        if effect == Effect.OCCUPY_TABLE:
            await self.gateway.set_table_status(*args, TableStatus.OCCUPIED)
        elif effect == Effect.MARK_TABLE_CLEANING:
            await self.gateway.set_table_status(*args, TableStatus.CLEANING)
        elif effect == Effect.RELEASE_RESERVED_TABLE:
            await self.gateway.set_table_status(*args, TableStatus.AVAILABLE, only_if=TableStatus.RESERVED)
