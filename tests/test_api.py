"""HTTP surface tests"""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from tests.conftest import NOW

EVENING = NOW.replace(hour=19) + timedelta(days=1)


def _payload(**overrides):
    payload = {
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
        "customer_phone": "+33612345678",
        "party_size": 4,
        "reservation_datetime": EVENING.isoformat(),
    }
    payload.update(overrides)
    return payload


async def _create(client, restaurant, **overrides):
    response = await client.post(f"/restaurants/{restaurant.id}/reservations", json=_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_reservation(client: AsyncClient, test_restaurant):
    actor = uuid4()
    response = await client.post(
        f"/restaurants/{test_restaurant.id}/reservations",
        json=_payload(),
        headers={"X-Actor-Id": str(actor)},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["reservation_number"] == "RES-20260615-0001"
    assert data["status"] == "pending"
    assert data["created_by"] == str(actor)
    assert data["duration_minutes"] == 120


@pytest.mark.asyncio
async def test_offset_datetimes_are_stored_as_utc(client: AsyncClient, test_restaurant):
    data = await _create(client, test_restaurant, reservation_datetime="2026-06-16T19:00:00+02:00")

    assert data["reservation_datetime"] == "2026-06-16T17:00:00"


@pytest.mark.asyncio
async def test_create_in_the_past_is_rejected(client: AsyncClient, test_restaurant):
    response = await client.post(
        f"/restaurants/{test_restaurant.id}/reservations",
        json=_payload(reservation_datetime=(NOW - timedelta(days=1)).isoformat()),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["field"] == "reservation_datetime"

    listing = await client.get(f"/restaurants/{test_restaurant.id}/reservations")
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_malformed_body_is_rejected(client: AsyncClient, test_restaurant):
    response = await client.post(
        f"/restaurants/{test_restaurant.id}/reservations",
        json=_payload(party_size=0),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_and_inactive_restaurants(client: AsyncClient, test_db, test_restaurant):
    response = await client.get(f"/restaurants/{uuid4()}/reservations")
    assert response.status_code == 404

    test_restaurant.is_active = False
    await test_db.commit()

    response = await client.get(f"/restaurants/{test_restaurant.id}/reservations")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_actor_header(client: AsyncClient, test_restaurant):
    response = await client.post(
        f"/restaurants/{test_restaurant.id}/reservations",
        json=_payload(),
        headers={"X-Actor-Id": "not-a-uuid"},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "X-Actor-Id"


@pytest.mark.asyncio
async def test_illegal_status_change(client: AsyncClient, test_restaurant):
    reservation = await _create(client, test_restaurant)

    response = await client.patch(
        f"/restaurants/{test_restaurant.id}/reservations/{reservation['id']}/status",
        json={"status": "completed"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["current_status"] == "pending"
    assert sorted(body["allowed_transitions"]) == ["cancelled", "confirmed"]


@pytest.mark.asyncio
async def test_full_lifecycle(client: AsyncClient, test_restaurant, test_floor_plan, test_tables, transport):
    base = f"/restaurants/{test_restaurant.id}/reservations"
    reservation = await _create(client, test_restaurant)
    rid = reservation["id"]

    response = await client.patch(f"{base}/{rid}/status", json={"status": "confirmed"})
    assert response.status_code == 200
    assert response.json()["confirmation_sent"] is True

    response = await client.put(
        f"{base}/{rid}/table",
        json={"floor_plan_id": str(test_floor_plan.id), "table_id": str(test_tables[0].id)},
    )
    assert response.status_code == 200
    assert response.json()["table_number"] == "T1"

    response = await client.patch(f"{base}/{rid}/status", json={"status": "seated"})
    assert response.status_code == 200
    assert response.json()["seated_at"] is not None

    response = await client.patch(f"{base}/{rid}/status", json={"status": "completed"})
    assert response.status_code == 200

    history = await client.get(f"{base}/{rid}/history")
    actions = [e["action"] for e in history.json()["entries"]]
    assert set(actions) == {"created", "confirmed", "table_assigned", "seated", "completed"}


@pytest.mark.asyncio
async def test_table_conflict_returns_409(client: AsyncClient, test_restaurant, test_floor_plan, test_tables):
    base = f"/restaurants/{test_restaurant.id}/reservations"
    table = {"floor_plan_id": str(test_floor_plan.id), "table_id": str(test_tables[0].id)}

    first = await _create(client, test_restaurant, auto_confirm=True)
    assert first["status"] == "confirmed"
    await client.put(f"{base}/{first['id']}/table", json=table)

    second = await _create(
        client, test_restaurant, party_size=2,
        reservation_datetime=(EVENING + timedelta(minutes=30)).isoformat(),
    )
    response = await client.put(f"{base}/{second['id']}/table", json=table)

    assert response.status_code == 409
    body = response.json()
    assert first["reservation_number"] in body["message"]
    assert body["conflicts"][0]["reservation_number"] == first["reservation_number"]


@pytest.mark.asyncio
async def test_list_and_by_date(client: AsyncClient, test_restaurant):
    base = f"/restaurants/{test_restaurant.id}/reservations"
    await _create(client, test_restaurant, customer_name="Alice Martin")
    await _create(client, test_restaurant, customer_name="Bruno Petit", auto_confirm=True)

    response = await client.get(base, params={"customer_name": "bruno"})
    assert response.status_code == 200
    assert response.json()["total"] == 1

    response = await client.get(base, params={"status": "pending", "page_size": 5})
    assert [r["customer_name"] for r in response.json()["items"]] == ["Alice Martin"]

    response = await client.get(f"{base}/by-date/{EVENING.date().isoformat()}")
    body = response.json()
    assert body["total"] == 2
    assert body["summary"]["pending"] == 1
    assert body["summary"]["confirmed"] == 1


@pytest.mark.asyncio
async def test_update_reservation(client: AsyncClient, test_restaurant):
    reservation = await _create(client, test_restaurant)

    response = await client.put(
        f"/restaurants/{test_restaurant.id}/reservations/{reservation['id']}",
        json={"party_size": 6, "special_requests": "High chair"},
    )

    assert response.status_code == 200
    assert response.json()["party_size"] == 6
    assert response.json()["special_requests"] == "High chair"


@pytest.mark.asyncio
async def test_delete_reservation(client: AsyncClient, test_restaurant):
    base = f"/restaurants/{test_restaurant.id}/reservations"
    reservation = await _create(client, test_restaurant)

    response = await client.delete(f"{base}/{reservation['id']}", params={"reason": "Duplicate"})
    assert response.status_code == 204

    response = await client.get(f"{base}/{reservation['id']}")
    assert response.status_code == 404

    history = await client.get(f"{base}/{reservation['id']}/history")
    assert history.status_code == 200
    assert "archived" in [e["action"] for e in history.json()["entries"]]


@pytest.mark.asyncio
async def test_notification_endpoints(client: AsyncClient, test_restaurant, transport):
    base = f"/restaurants/{test_restaurant.id}/notifications"
    reservation = await _create(client, test_restaurant, auto_confirm=True)

    response = await client.post(f"{base}/reservations/{reservation['id']}/reminder")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["notification_type"] == "reminder"

    response = await client.post(f"{base}/reservations/{reservation['id']}/reminder")
    assert response.json()["reason"] == "already_sent"

    response = await client.get(f"{base}/reservations/{reservation['id']}")
    body = response.json()
    assert body["reminder_sent"] is True
    assert len(body["attempts"]) == 2

    response = await client.post(
        f"{base}/reservations/{reservation['id']}/retry",
        json={"notification_type": "confirmation"},
    )
    assert response.json()["reason"] == "no_failed_attempt"

    response = await client.get(f"{base}/stats", params={"days": 7})
    assert response.json()["total_attempts"] == 2

    response = await client.post(f"{base}/reminders/batch")
    assert response.status_code == 200
    assert response.json()["sent"] == 0


@pytest.mark.asyncio
async def test_notifications_are_scoped_to_restaurant(client: AsyncClient, test_restaurant, other_restaurant):
    restaurant, _, _ = other_restaurant
    reservation = await _create(client, test_restaurant, auto_confirm=True)

    response = await client.post(
        f"/restaurants/{restaurant.id}/notifications/reservations/{reservation['id']}/reminder"
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_job_endpoints(client: AsyncClient, test_restaurant):
    response = await client.get("/jobs/status")
    assert response.status_code == 200
    assert len(response.json()["jobs"]) == 5

    response = await client.post("/jobs/mark_no_shows/run")
    assert response.status_code == 200
    assert response.json()["job"] == "mark_no_shows"
    assert response.json()["success"] is True

    response = await client.post("/jobs/reindex/run")
    assert response.status_code == 400
