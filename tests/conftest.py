"""Test configuration and fixtures"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tablebook.api.deps import get_clock, get_config, get_transports
from tablebook.config import Settings
from tablebook.database import Base, get_db
from tablebook.jobs.maintenance import MaintenanceJobs
from tablebook.main import app
from tablebook.models import FloorPlan, Restaurant, Table
from tablebook.schemas.reservation import ReservationCreate
from tablebook.services.notifications import NotificationOrchestrator
from tablebook.services.reservations import ReservationService
from tablebook.services.transport import DeliveryResult, NotificationTransport


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday, noon UTC
NOW = datetime(2026, 6, 15, 12, 0)


class FrozenClock:
    """Controllable stand-in for datetime.utcnow"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingTransport(NotificationTransport):
    """Email transport that records sends instead of delivering them"""

    channel = "email"

    def __init__(self):
        self.sent = []
        self.fail = False

    def recipient_for(self, reservation):
        return reservation.customer_email or None

    async def send(self, to, notification_type, data):
        self.sent.append({"to": to, "type": notification_type, "data": data})
        if self.fail:
            return DeliveryResult(success=False, error="Mailbox unavailable")
        return DeliveryResult(success=True, message_id=f"msg-{len(self.sent)}")

    def sent_of(self, notification_type):
        return [s for s in self.sent if s["type"] == notification_type]


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def test_config():
    """Settings with no pause between batch sends"""
    return Settings(notification_batch_pause_seconds=0)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def notifier(test_db, transport, clock, test_config):
    return NotificationOrchestrator(test_db, [transport], clock, test_config)


@pytest.fixture
def service(test_db, notifier, clock, test_config):
    return ReservationService(test_db, notifier, clock, test_config)


@pytest.fixture
def jobs(test_db, transport, clock, test_config):
    return MaintenanceJobs(test_db, [transport], clock, test_config)


@pytest.fixture
async def test_restaurant(test_db):
    """Create a test restaurant"""
    restaurant = Restaurant(
        id=uuid4(),
        name="Test Bistro",
        seating_capacity=20,
        tables_count=3,
    )
    test_db.add(restaurant)
    await test_db.commit()
    return restaurant


@pytest.fixture
async def test_floor_plan(test_db, test_restaurant):
    floor_plan = FloorPlan(id=uuid4(), restaurant_id=test_restaurant.id, name="Main room")
    test_db.add(floor_plan)
    await test_db.commit()
    return floor_plan


@pytest.fixture
async def test_tables(test_db, test_floor_plan):
    """T1 seats 4, T2 seats 2, T3 seats 8"""
    tables = [
        Table(id=uuid4(), floor_plan_id=test_floor_plan.id, number="T1", capacity=4),
        Table(id=uuid4(), floor_plan_id=test_floor_plan.id, number="T2", capacity=2),
        Table(id=uuid4(), floor_plan_id=test_floor_plan.id, number="T3", capacity=8),
    ]
    for table in tables:
        test_db.add(table)
    await test_db.commit()
    return tables


@pytest.fixture
async def other_restaurant(test_db):
    """Second tenant with its own floor plan and table"""
    restaurant = Restaurant(id=uuid4(), name="Other Place", seating_capacity=10)
    test_db.add(restaurant)
    await test_db.flush()

    floor_plan = FloorPlan(id=uuid4(), restaurant_id=restaurant.id, name="Terrace")
    test_db.add(floor_plan)
    await test_db.flush()

    table = Table(id=uuid4(), floor_plan_id=floor_plan.id, number="X1", capacity=4)
    test_db.add(table)
    await test_db.commit()
    return restaurant, floor_plan, table


@pytest.fixture
def book(service, test_restaurant):
    """Factory creating reservations at the restaurant through the service"""

    async def _book(start, party_size=4, duration_minutes=120, confirm=False, **fields):
        data = ReservationCreate(
            customer_name=fields.pop("customer_name", "Jane Doe"),
            customer_email=fields.pop("customer_email", "jane@example.com"),
            party_size=party_size,
            reservation_datetime=start,
            duration_minutes=duration_minutes,
            auto_confirm=confirm,
            **fields,
        )
        return await service.create(test_restaurant.id, data)

    return _book


@pytest.fixture
async def client(test_db, transport, clock, test_config):
    """Create test client with overridden dependencies"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transports] = lambda: [transport]
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_config] = lambda: test_config

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
