"""Tests for reservation status transitions and their side effects"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from tablebook.models import ReservationHistory, ReservationStatus, Table, TableStatus, TERMINAL_STATUSES
from tablebook.services.errors import IllegalTransitionError
from tablebook.services.resolver import ConflictResolver
from tablebook.services.state_machine import (
    Effect,
    ReservationStateMachine,
    TRANSITIONS,
    allowed_targets,
)
from tablebook.services.tables import TableAllocationGateway

from tests.conftest import NOW

EVENING = NOW.replace(hour=19) + timedelta(days=1)

S = ReservationStatus
LEGAL = {
    S.PENDING: {S.CONFIRMED, S.CANCELLED},
    S.CONFIRMED: {S.SEATED, S.CANCELLED, S.NO_SHOW},
    S.SEATED: {S.COMPLETED, S.CANCELLED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
    S.NO_SHOW: set(),
}


def test_transition_table_matches_lifecycle():
    for status, targets in LEGAL.items():
        assert set(allowed_targets(status)) == targets


def test_terminal_statuses_have_no_outgoing_transitions():
    for (source, _target) in TRANSITIONS:
        assert source not in TERMINAL_STATUSES


def test_transition_effects_and_timestamps():
    assert TRANSITIONS[(S.PENDING, S.CONFIRMED)].effects == (Effect.REQUEST_CONFIRMATION,)
    assert TRANSITIONS[(S.CONFIRMED, S.SEATED)].effects == (Effect.OCCUPY_TABLE,)
    assert TRANSITIONS[(S.SEATED, S.COMPLETED)].effects == (Effect.MARK_TABLE_CLEANING,)
    assert Effect.RELEASE_RESERVED_TABLE in TRANSITIONS[(S.CONFIRMED, S.NO_SHOW)].effects
    assert TRANSITIONS[(S.CONFIRMED, S.NO_SHOW)].timestamp_field == "cancelled_at"
    assert TRANSITIONS[(S.SEATED, S.COMPLETED)].timestamp_field == "completed_at"


@pytest.mark.asyncio
async def test_illegal_transitions_are_rejected(service, book, test_restaurant):
    reservation = await book(EVENING)

    for target in (S.SEATED, S.COMPLETED, S.NO_SHOW, S.PENDING):
        with pytest.raises(IllegalTransitionError) as exc:
            await service.change_status(test_restaurant.id, reservation.id, target)
        assert exc.value.current_status == "pending"
        assert set(exc.value.allowed) == {"confirmed", "cancelled"}

    refreshed = await service.get(test_restaurant.id, reservation.id)
    assert refreshed.status == S.PENDING


@pytest.mark.asyncio
async def test_terminal_reservation_cannot_move(service, book, test_restaurant):
    reservation = await book(EVENING)
    await service.change_status(test_restaurant.id, reservation.id, S.CANCELLED)

    with pytest.raises(IllegalTransitionError) as exc:
        await service.change_status(test_restaurant.id, reservation.id, S.CONFIRMED)

    assert exc.value.allowed == []


@pytest.mark.asyncio
async def test_seating_requires_a_table(service, book, test_restaurant):
    reservation = await book(EVENING, confirm=True)

    with pytest.raises(IllegalTransitionError) as exc:
        await service.change_status(test_restaurant.id, reservation.id, S.SEATED)

    assert "table" in exc.value.message
    refreshed = await service.get(test_restaurant.id, reservation.id)
    assert refreshed.status == S.CONFIRMED
    assert refreshed.seated_at is None


@pytest.mark.asyncio
async def test_transition_stamps_timestamp_and_writes_history(test_db, service, book, test_restaurant, clock):
    reservation = await book(EVENING)
    actor = test_restaurant.id  # any UUID will do as actor

    clock.advance(minutes=5)
    confirmed = await service.change_status(test_restaurant.id, reservation.id, S.CONFIRMED, actor_id=actor, reason="Called back")

    assert confirmed.status == S.CONFIRMED
    assert confirmed.confirmed_at == NOW + timedelta(minutes=5)
    assert confirmed.last_modified_by == actor

    result = await test_db.execute(
        select(ReservationHistory).where(
            ReservationHistory.reservation_id == reservation.id,
            ReservationHistory.action == "confirmed",
        )
    )
    entry = result.scalar_one()
    assert entry.actor_id == actor
    assert entry.detail == {"from": "pending", "reason": "Called back"}


@pytest.mark.asyncio
async def test_confirmation_triggers_notification(service, book, test_restaurant, transport):
    reservation = await book(EVENING)

    confirmed = await service.change_status(test_restaurant.id, reservation.id, S.CONFIRMED)

    assert len(transport.sent_of("confirmation")) == 1
    assert transport.sent[0]["data"]["reservation_number"] == reservation.reservation_number
    assert confirmed.confirmation_sent is True


@pytest.mark.asyncio
async def test_seating_and_completion_update_table(test_db, service, book, test_restaurant, test_floor_plan, test_tables):
    t1 = test_tables[0]
    reservation = await book(EVENING, confirm=True)
    await service.assign_table(test_restaurant.id, reservation.id, test_floor_plan.id, t1.id)

    await service.change_status(test_restaurant.id, reservation.id, S.SEATED)
    table = await test_db.get(Table, t1.id)
    assert table.status == TableStatus.OCCUPIED

    completed = await service.change_status(test_restaurant.id, reservation.id, S.COMPLETED)
    table = await test_db.get(Table, t1.id)
    assert table.status == TableStatus.CLEANING
    assert completed.completed_at is not None


@pytest.mark.asyncio
async def test_cancellation_releases_only_reserved_tables(test_db, service, book, test_restaurant, test_floor_plan, test_tables):
    t1, t3 = test_tables[0], test_tables[2]
    first = await book(EVENING, confirm=True)
    second = await book(EVENING, confirm=True)
    await service.assign_table(test_restaurant.id, first.id, test_floor_plan.id, t1.id)
    await service.assign_table(test_restaurant.id, second.id, test_floor_plan.id, t3.id)

    # Staff marked T1 as held; T3 is in use by walk-ins
    (await test_db.get(Table, t1.id)).status = TableStatus.RESERVED
    (await test_db.get(Table, t3.id)).status = TableStatus.OCCUPIED
    await test_db.commit()

    await service.change_status(test_restaurant.id, first.id, S.CANCELLED, reason="Sick")
    await service.change_status(test_restaurant.id, second.id, S.CANCELLED)

    assert (await test_db.get(Table, t1.id)).status == TableStatus.AVAILABLE
    assert (await test_db.get(Table, t3.id)).status == TableStatus.OCCUPIED


@pytest.mark.asyncio
async def test_cancellation_sends_notice_with_reason(service, book, test_restaurant, transport):
    reservation = await book(EVENING)

    await service.change_status(test_restaurant.id, reservation.id, S.CANCELLED, reason="Kitchen closed")

    notices = transport.sent_of("cancellation")
    assert len(notices) == 1
    assert notices[0]["data"]["reason"] == "Kitchen closed"


class ExplodingNotifier:
    """Notifier whose every call fails"""

    async def send_confirmation(self, reservation_id):
        raise RuntimeError("notification backend down")

    async def send_cancellation(self, reservation_id, reason=None):
        raise RuntimeError("notification backend down")


@pytest.mark.asyncio
async def test_effect_failure_does_not_undo_transition(test_db, service, book, test_restaurant, clock):
    reservation = await book(EVENING)
    machine = ReservationStateMachine(
        test_db,
        TableAllocationGateway(test_db),
        ExplodingNotifier(),
        ConflictResolver(test_db),
        clock,
    )

    result = await machine.transition(reservation, S.CONFIRMED)

    assert result.status == S.CONFIRMED
    refreshed = await service.get(test_restaurant.id, reservation.id)
    assert refreshed.status == S.CONFIRMED
    assert refreshed.confirmation_sent is False
