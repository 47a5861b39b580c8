"""Shared FastAPI dependencies"""

from datetime import datetime
from functools import lru_cache
from typing import Callable, List, Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.config import Settings, get_settings
from tablebook.database import get_db
from tablebook.jobs.maintenance import MaintenanceJobs
from tablebook.models.restaurant import Restaurant
from tablebook.services.errors import NotFoundError, PermissionDeniedError, ReservationValidationError
from tablebook.services.notifications import NotificationOrchestrator
from tablebook.services.reservations import ReservationService
from tablebook.services.transport import NotificationTransport, build_transports


def get_config() -> Settings:
    return get_settings()


def get_clock() -> Callable[[], datetime]:
    return datetime.utcnow


@lru_cache()
def get_transports() -> List[NotificationTransport]:
    """Transports are built once per process from settings"""
    return build_transports(get_settings())


async def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> Optional[UUID]:
    """Acting user from the X-Actor-Id header; persisted, not authenticated"""
    if not x_actor_id:
        return None
    try:
        return UUID(x_actor_id)
    except ValueError:
        raise ReservationValidationError("X-Actor-Id header must be a UUID", field="X-Actor-Id")


async def verify_restaurant(
    restaurant_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Restaurant:
    """Verify the restaurant exists and accepts requests"""
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found", restaurant_id=str(restaurant_id))
    if not restaurant.is_active:
        raise PermissionDeniedError("Restaurant is not active", restaurant_id=str(restaurant_id))
    return restaurant


def get_notifier(
    db: AsyncSession = Depends(get_db),
    transports: List[NotificationTransport] = Depends(get_transports),
    clock: Callable[[], datetime] = Depends(get_clock),
    config: Settings = Depends(get_config),
) -> NotificationOrchestrator:
    return NotificationOrchestrator(db, transports, clock, config)


def get_reservation_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationOrchestrator = Depends(get_notifier),
    clock: Callable[[], datetime] = Depends(get_clock),
    config: Settings = Depends(get_config),
) -> ReservationService:
    return ReservationService(db, notifier, clock, config)


def get_maintenance_jobs(
    db: AsyncSession = Depends(get_db),
    transports: List[NotificationTransport] = Depends(get_transports),
    clock: Callable[[], datetime] = Depends(get_clock),
    config: Settings = Depends(get_config),
) -> MaintenanceJobs:
    return MaintenanceJobs(db, transports, clock, config)
