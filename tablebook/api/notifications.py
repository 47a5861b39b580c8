"""Reservation notification endpoints"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tablebook.api.deps import get_notifier, get_reservation_service, verify_restaurant
from tablebook.models.restaurant import Restaurant
from tablebook.schemas.notification import (
    BatchReminderResult,
    CancellationNoticeRequest,
    NotificationHistoryResponse,
    NotificationResult,
    NotificationStatsResponse,
    RetryRequest,
)
from tablebook.services.notifications import NotificationOrchestrator
from tablebook.services.reservations import ReservationService

router = APIRouter()


async def _scoped(service: ReservationService, restaurant_id: UUID, reservation_id: UUID) -> UUID:
    """Resolve the reservation inside the restaurant before touching it"""
    reservation = await service.get(restaurant_id, reservation_id, include_inactive=True)
    return reservation.id


@router.post("/reservations/{reservation_id}/confirmation", response_model=NotificationResult)
async def send_confirmation(
    restaurant_id: UUID,
    reservation_id: UUID,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Send the confirmation notice"""
    return await notifier.send_confirmation(await _scoped(service, restaurant_id, reservation_id))


@router.post("/reservations/{reservation_id}/reminder", response_model=NotificationResult)
async def send_reminder(
    restaurant_id: UUID,
    reservation_id: UUID,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Send a reminder if the reservation is within the reminder window"""
    return await notifier.send_reminder(await _scoped(service, restaurant_id, reservation_id))


@router.post("/reservations/{reservation_id}/cancellation", response_model=NotificationResult)
async def send_cancellation(
    restaurant_id: UUID,
    reservation_id: UUID,
    request: CancellationNoticeRequest,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Send the cancellation notice"""
    return await notifier.send_cancellation(
        await _scoped(service, restaurant_id, reservation_id), request.reason
    )


@router.post("/reservations/{reservation_id}/retry", response_model=NotificationResult)
async def retry_notification(
    restaurant_id: UUID,
    reservation_id: UUID,
    request: RetryRequest,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Retry the latest failed delivery of a notification type"""
    return await notifier.retry_failed(
        await _scoped(service, restaurant_id, reservation_id), request.notification_type
    )


@router.get("/reservations/{reservation_id}", response_model=NotificationHistoryResponse)
async def notification_history(
    restaurant_id: UUID,
    reservation_id: UUID,
    restaurant: Restaurant = Depends(verify_restaurant),
    service: ReservationService = Depends(get_reservation_service),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Notification flags and delivery attempts of a reservation"""
    return await notifier.get_history(await _scoped(service, restaurant_id, reservation_id))


@router.post("/reminders/batch", response_model=BatchReminderResult)
async def send_batch_reminders(
    restaurant_id: UUID,
    restaurant: Restaurant = Depends(verify_restaurant),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Send reminders for tomorrow's confirmed reservations"""
    return await notifier.send_batch_reminders(restaurant_id)


@router.get("/stats", response_model=NotificationStatsResponse)
async def notification_stats(
    restaurant_id: UUID,
    days: int = Query(7, ge=1, le=365),
    restaurant: Restaurant = Depends(verify_restaurant),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    """Delivery statistics over a trailing window"""
    return await notifier.get_stats(restaurant_id, days)
