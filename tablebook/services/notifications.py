"""
Notification orchestrator for reservation confirmations, reminders and
cancellations.

Decides whether a notification may be sent, hands delivery to a transport and
records every attempt in the ledger. Delivery never raises into the caller and
never undoes a status change.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.config import Settings, settings as default_settings
from tablebook.models.audit import NotificationAttempt, NotificationType
from tablebook.models.reservation import Reservation, ReservationStatus
from tablebook.models.restaurant import Restaurant
from tablebook.schemas.notification import (
    BatchReminderItem,
    BatchReminderResult,
    NotificationAttemptResponse,
    NotificationHistoryResponse,
    NotificationResult,
    NotificationStatsResponse,
)
from tablebook.services.errors import NotFoundError
from tablebook.services.transport import DeliveryResult, NotificationTransport

logger = structlog.get_logger(__name__)


class NotificationOrchestrator:
    """Eligibility rules, delivery and ledger bookkeeping for customer notifications"""

    def __init__(
        self,
        db: AsyncSession,
        transports: Sequence[NotificationTransport],
        clock: Callable[[], datetime] = datetime.utcnow,
        config: Settings = default_settings,
    ):
        self.db = db
        self.transports = list(transports)
        self.clock = clock
        self.config = config

    async def _load(self, reservation_id: UUID) -> Reservation:
        reservation = await self.db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found", reservation_id=str(reservation_id))
        return reservation

    def _rejected(self, reservation: Reservation, notification_type: NotificationType, reason: str, message: str, **extra) -> NotificationResult:
        logger.info(
            "Notification not sent",
            reservation_number=reservation.reservation_number,
            notification_type=notification_type.value,
            reason=reason,
        )
        return NotificationResult(
            success=False,
            notification_type=notification_type,
            reason=reason,
            message=message,
            reservation_id=reservation.id,
            reservation_number=reservation.reservation_number,
            **extra,
        )

    async def _template_data(self, reservation: Reservation, reason: Optional[str] = None) -> dict:
        restaurant = await self.db.get(Restaurant, reservation.restaurant_id)
        data = {
            "customer_name": reservation.customer_name,
            "restaurant_name": restaurant.name if restaurant else "",
            "reservation_number": reservation.reservation_number,
            "date": reservation.reservation_datetime.strftime("%Y-%m-%d"),
            "time": reservation.reservation_datetime.strftime("%H:%M"),
            "party_size": reservation.party_size,
            "table_number": reservation.table_number or "",
            "special_requests": reservation.special_requests or "",
        }
        if reason is not None:
            data["reason"] = reason
        return data

    def _pick_transport(self, reservation: Reservation) -> Tuple[Optional[NotificationTransport], Optional[str]]:
        for transport in self.transports:
            recipient = transport.recipient_for(reservation)
            if recipient:
                return transport, recipient
        return None, None

    async def _deliver(
        self,
        reservation: Reservation,
        notification_type: NotificationType,
        reason: Optional[str] = None,
    ) -> Tuple[DeliveryResult, NotificationAttempt]:
        """Send through the first usable transport and append a ledger entry"""
        transport, recipient = self._pick_transport(reservation)

        if transport is None:
            result = DeliveryResult(success=False, error="No deliverable address or transport")
            channel = "none"
        else:
            channel = transport.channel
            data = await self._template_data(reservation, reason)
            try:
                result = await transport.send(recipient, notification_type.value, data)
            except Exception as e:
                logger.error(
                    "Transport raised during delivery",
                    reservation_number=reservation.reservation_number,
                    channel=channel,
                    error=str(e),
                )
                result = DeliveryResult(success=False, error=str(e))

        attempt = NotificationAttempt(
            reservation_id=reservation.id,
            notification_type=notification_type.value,
            channel=channel,
            recipient=recipient,
            success=result.success,
            provider_message_id=result.message_id,
            error=result.error,
            attempted_at=self.clock(),
        )
        self.db.add(attempt)

        if result.success and notification_type == NotificationType.CONFIRMATION:
            reservation.confirmation_sent = True
        if result.success and notification_type == NotificationType.REMINDER:
            reservation.reminder_sent = True

        await self.db.commit()

        log = logger.info if result.success else logger.warning
        log(
            "Notification attempt recorded",
            reservation_number=reservation.reservation_number,
            notification_type=notification_type.value,
            channel=channel,
            success=result.success,
        )
        return result, attempt

    def _delivered(self, reservation: Reservation, notification_type: NotificationType, result: DeliveryResult, attempt: NotificationAttempt, **extra) -> NotificationResult:
        return NotificationResult(
            success=result.success,
            notification_type=notification_type,
            reason=None if result.success else "delivery_failed",
            message=f"{notification_type.value.capitalize()} sent" if result.success else f"Delivery failed: {result.error}",
            reservation_id=reservation.id,
            reservation_number=reservation.reservation_number,
            channel=attempt.channel,
            provider_message_id=result.message_id,
            **extra,
        )

    async def send_confirmation(self, reservation_id: UUID) -> NotificationResult:
        reservation = await self._load(reservation_id)
        kind = NotificationType.CONFIRMATION

        if reservation.status != ReservationStatus.CONFIRMED:
            return self._rejected(reservation, kind, "not_confirmed", "Reservation must be confirmed to send a confirmation")

        result, attempt = await self._deliver(reservation, kind)
        return self._delivered(reservation, kind, result, attempt)

    async def send_reminder(self, reservation_id: UUID) -> NotificationResult:
        reservation = await self._load(reservation_id)
        kind = NotificationType.REMINDER

        if reservation.status != ReservationStatus.CONFIRMED:
            return self._rejected(reservation, kind, "not_confirmed", "Only confirmed reservations receive reminders")
        if reservation.reminder_sent:
            return self._rejected(reservation, kind, "already_sent", "Reminder already sent for this reservation")

        hours_until = (reservation.reservation_datetime - self.clock()).total_seconds() / 3600
        if hours_until < 0:
            return self._rejected(
                reservation, kind, "past_due", "Reservation start has already passed",
                hours_until_reservation=round(hours_until, 1),
            )
        if hours_until > self.config.reminder_window_hours:
            return self._rejected(
                reservation, kind, "too_early",
                f"Reminder too early (more than {self.config.reminder_window_hours}h ahead)",
                hours_until_reservation=round(hours_until, 1),
            )

        result, attempt = await self._deliver(reservation, kind)
        return self._delivered(reservation, kind, result, attempt, hours_until_reservation=round(hours_until, 1))

    async def send_cancellation(self, reservation_id: UUID, reason: Optional[str] = None) -> NotificationResult:
        reservation = await self._load(reservation_id)
        kind = NotificationType.CANCELLATION

        if reservation.status not in (ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW):
            return self._rejected(reservation, kind, "invalid_status", "Reservation must be cancelled or marked no-show")

        result, attempt = await self._deliver(reservation, kind, reason=reason or "")
        return self._delivered(reservation, kind, result, attempt)

    async def send_batch_reminders(self, restaurant_id: Optional[UUID] = None) -> BatchReminderResult:
        """Send reminders for tomorrow's confirmed reservations, one at a time"""
        today = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        day_after = tomorrow + timedelta(days=1)

        query = select(Reservation.id).where(
            Reservation.status == ReservationStatus.CONFIRMED,
            Reservation.is_active == True,  # noqa: E712
            Reservation.reminder_sent == False,  # noqa: E712
            Reservation.reservation_datetime >= tomorrow,
            Reservation.reservation_datetime < day_after,
        )
        if restaurant_id is not None:
            query = query.where(Reservation.restaurant_id == restaurant_id)

        result = await self.db.execute(query.order_by(Reservation.reservation_datetime))
        reservation_ids = result.scalars().all()

        if not reservation_ids:
            return BatchReminderResult(success=True, message="No reservation needs a reminder")

        logger.info("Sending batch reminders", count=len(reservation_ids), restaurant_id=str(restaurant_id) if restaurant_id else None)

        sent = failed = skipped = 0
        details = []
        for index, reservation_id in enumerate(reservation_ids):
            try:
                outcome = await self.send_reminder(reservation_id)
            except Exception as e:
                await self.db.rollback()
                failed += 1
                logger.error("Batch reminder failed", reservation_id=str(reservation_id), error=str(e))
                details.append(BatchReminderItem(reservation_id=reservation_id, success=False, reason="error", message=str(e)))
            else:
                if outcome.success:
                    sent += 1
                elif outcome.reason == "delivery_failed":
                    failed += 1
                else:
                    skipped += 1
                details.append(
                    BatchReminderItem(
                        reservation_id=reservation_id,
                        reservation_number=outcome.reservation_number,
                        success=outcome.success,
                        reason=outcome.reason,
                        message=outcome.message,
                    )
                )

            if index < len(reservation_ids) - 1 and self.config.notification_batch_pause_seconds > 0:
                await asyncio.sleep(self.config.notification_batch_pause_seconds)

        logger.info("Batch reminders finished", sent=sent, failed=failed, skipped=skipped)
        return BatchReminderResult(
            success=True,
            message=f"Batch reminders finished: {sent} sent, {failed} failed, {skipped} skipped",
            sent=sent,
            failed=failed,
            skipped=skipped,
            details=details,
        )

    async def retry_failed(self, reservation_id: UUID, notification_type: NotificationType) -> NotificationResult:
        """Re-send the most recent failed delivery of the given type"""
        reservation = await self._load(reservation_id)

        result = await self.db.execute(
            select(NotificationAttempt)
            .where(
                NotificationAttempt.reservation_id == reservation.id,
                NotificationAttempt.notification_type == notification_type.value,
                NotificationAttempt.success == False,  # noqa: E712
            )
            .order_by(NotificationAttempt.attempted_at.desc())
            .limit(1)
        )
        last_failure = result.scalar_one_or_none()
        if last_failure is None:
            return self._rejected(
                reservation, notification_type, "no_failed_attempt",
                f"No failed {notification_type.value} delivery to retry",
            )

        if notification_type == NotificationType.CONFIRMATION:
            outcome = await self.send_confirmation(reservation.id)
        elif notification_type == NotificationType.REMINDER:
            outcome = await self.send_reminder(reservation.id)
        else:
            outcome = await self.send_cancellation(reservation.id)

        outcome.retried = True
        return outcome

    async def get_history(self, reservation_id: UUID) -> NotificationHistoryResponse:
        reservation = await self._load(reservation_id)
        result = await self.db.execute(
            select(NotificationAttempt)
            .where(NotificationAttempt.reservation_id == reservation.id)
            .order_by(NotificationAttempt.attempted_at.desc())
        )
        return NotificationHistoryResponse(
            reservation_id=reservation.id,
            reservation_number=reservation.reservation_number,
            customer_email=reservation.customer_email,
            confirmation_sent=reservation.confirmation_sent,
            reminder_sent=reservation.reminder_sent,
            attempts=[NotificationAttemptResponse.model_validate(a) for a in result.scalars().all()],
        )

    async def get_stats(self, restaurant_id: Optional[UUID] = None, days: int = 7) -> NotificationStatsResponse:
        since = self.clock() - timedelta(days=days)

        reservation_filter = [Reservation.created_at >= since, Reservation.is_active == True]  # noqa: E712
        if restaurant_id is not None:
            reservation_filter.append(Reservation.restaurant_id == restaurant_id)

        counts = (
            await self.db.execute(
                select(
                    func.count(Reservation.id),
                    func.sum(case((Reservation.confirmation_sent == True, 1), else_=0)),  # noqa: E712
                    func.sum(case((Reservation.reminder_sent == True, 1), else_=0)),  # noqa: E712
                ).where(*reservation_filter)
            )
        ).one()
        total, confirmations, reminders = counts[0] or 0, counts[1] or 0, counts[2] or 0

        attempt_query = select(
            func.count(NotificationAttempt.id),
            func.sum(case((NotificationAttempt.success == True, 1), else_=0)),  # noqa: E712
        ).where(NotificationAttempt.attempted_at >= since)
        if restaurant_id is not None:
            attempt_query = attempt_query.join(
                Reservation, Reservation.id == NotificationAttempt.reservation_id
            ).where(Reservation.restaurant_id == restaurant_id)
        attempts = (await self.db.execute(attempt_query)).one()
        total_attempts, successful = attempts[0] or 0, attempts[1] or 0

        def rate(part: int, whole: int) -> float:
            return round(part / whole * 100, 1) if whole else 0.0

        return NotificationStatsResponse(
            period_days=days,
            total_reservations=total,
            confirmations_sent=confirmations,
            reminders_sent=reminders,
            total_attempts=total_attempts,
            successful_attempts=successful,
            confirmation_rate=rate(confirmations, total),
            reminder_rate=rate(reminders, total),
            delivery_success_rate=rate(successful, total_attempts),
        )
