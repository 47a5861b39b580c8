"""
Scheduled reservation maintenance.

Each job selects candidate ids, reloads every reservation and lets the state
machine decide whether the change still applies, so re-running a job (or
running it concurrently with staff edits) leaves already-handled reservations
untouched. A failure on one reservation is rolled back and counted; the job
moves on to the next one.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.config import Settings, settings as default_settings
from tablebook.models.reservation import Reservation, ReservationStatus, TERMINAL_STATUSES
from tablebook.models.restaurant import Restaurant
from tablebook.schemas.jobs import JobInfo, JobResult, JobStatusResponse, RestaurantWeeklyStats
from tablebook.services.errors import IllegalTransitionError, ReservationValidationError
from tablebook.services.notifications import NotificationOrchestrator
from tablebook.services.reservations import ReservationService
from tablebook.services.transport import NotificationTransport

logger = structlog.get_logger(__name__)

# name -> (crontab, description); times are UTC
JOB_SCHEDULES: Dict[str, Tuple[str, str]] = {
    "daily_reminders": ("0 10 * * *", "Send reminders for tomorrow's confirmed reservations"),
    "mark_no_shows": ("0 * * * *", "Mark confirmed reservations past the grace period as no-show"),
    "auto_release_tables": ("*/15 * * * *", "Complete seated reservations well past their end time"),
    "cleanup_expired": ("0 2 * * *", "Complete stale seated reservations and archive old terminal ones"),
    "weekly_stats": ("0 9 * * 1", "Log per-restaurant statistics for the trailing week"),
}


def job_status() -> JobStatusResponse:
    return JobStatusResponse(
        jobs=[
            JobInfo(name=name, schedule=schedule, description=description)
            for name, (schedule, description) in JOB_SCHEDULES.items()
        ]
    )


class MaintenanceJobs:
    """Job bodies shared by the Celery beat tasks and the on-demand trigger"""

    def __init__(
        self,
        db: AsyncSession,
        transports: Sequence[NotificationTransport],
        clock: Callable[[], datetime] = datetime.utcnow,
        config: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock
        self.config = config
        self.notifier = NotificationOrchestrator(db, transports, clock, config)
        self.service = ReservationService(db, self.notifier, clock, config)
        self.state_machine = self.service.state_machine

    async def run_job(self, name: str) -> JobResult:
        if name not in JOB_SCHEDULES:
            raise ReservationValidationError(
                f"Unknown job: {name}",
                field="job",
                available_jobs=list(JOB_SCHEDULES),
            )

        started_at = self.clock()
        logger.info("Job started", job=name)
        try:
            result = await getattr(self, f"_{name}")(JobResult(job=name, success=True, started_at=started_at))
        except Exception as e:
            await self.db.rollback()
            logger.error("Job failed", job=name, error=str(e))
            result = JobResult(job=name, success=False, error=str(e), started_at=started_at)

        result.finished_at = self.clock()
        logger.info(
            "Job finished",
            job=name,
            success=result.success,
            processed=result.processed,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def daily_reminders(self) -> JobResult:
        return await self.run_job("daily_reminders")

    async def mark_no_shows(self) -> JobResult:
        return await self.run_job("mark_no_shows")

    async def auto_release_tables(self) -> JobResult:
        return await self.run_job("auto_release_tables")

    async def cleanup_expired(self) -> JobResult:
        return await self.run_job("cleanup_expired")

    async def weekly_stats(self) -> JobResult:
        return await self.run_job("weekly_stats")

    # Job bodies

    async def _daily_reminders(self, result: JobResult) -> JobResult:
        batch = await self.notifier.send_batch_reminders()
        result.processed = batch.sent
        result.failed = batch.failed
        result.skipped = batch.skipped
        result.details = {"message": batch.message}
        return result

    async def _mark_no_shows(self, result: JobResult) -> JobResult:
        cutoff = self.clock() - timedelta(minutes=self.config.no_show_grace_minutes)
        ids = await self._candidate_ids(
            Reservation.status == ReservationStatus.CONFIRMED,
            Reservation.reservation_datetime < cutoff,
        )
        return await self._transition_each(
            result, ids, ReservationStatus.NO_SHOW,
            reason=f"No arrival within {self.config.no_show_grace_minutes} minutes of start",
        )

    async def _auto_release_tables(self, result: JobResult) -> JobResult:
        cutoff = self.clock() - timedelta(minutes=self.config.auto_release_after_minutes)
        ids = await self._candidate_ids(
            Reservation.status == ReservationStatus.SEATED,
            Reservation.end_datetime < cutoff,
        )
        return await self._transition_each(
            result, ids, ReservationStatus.COMPLETED, reason="Released automatically after end time",
        )

    async def _cleanup_expired(self, result: JobResult) -> JobResult:
        now = self.clock()

        stale_ids = await self._candidate_ids(
            Reservation.status == ReservationStatus.SEATED,
            Reservation.reservation_datetime < now - timedelta(days=self.config.stale_seated_days),
        )
        result = await self._transition_each(
            result, stale_ids, ReservationStatus.COMPLETED, reason="Stale seated reservation closed",
        )
        completed = result.processed

        archive_ids = await self._candidate_ids(
            Reservation.status.in_(TERMINAL_STATUSES),
            Reservation.reservation_datetime < now - timedelta(days=self.config.archive_after_days),
        )
        archived = 0
        for reservation_id in archive_ids:
            reservation = await self.db.get(Reservation, reservation_id)
            if reservation is None or not reservation.is_active or not reservation.is_terminal:
                result.skipped += 1
                continue
            try:
                await self.service.archive(reservation, reason="expired")
                archived += 1
            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error("Archiving reservation failed", reservation_id=str(reservation_id), error=str(e))

        result.processed = completed + archived
        result.details = {"completed": completed, "archived": archived}
        return result

    async def _weekly_stats(self, result: JobResult) -> JobResult:
        since = self.clock() - timedelta(days=self.config.stats_window_days)
        restaurants = (
            await self.db.execute(
                select(Restaurant).where(Restaurant.is_active == True).order_by(Restaurant.name)  # noqa: E712
            )
        ).scalars().all()

        report: List[dict] = []
        for restaurant in restaurants:
            rows = (
                await self.db.execute(
                    select(
                        Reservation.status,
                        func.count(Reservation.id),
                        func.coalesce(func.sum(Reservation.party_size), 0),
                    )
                    .where(
                        Reservation.restaurant_id == restaurant.id,
                        Reservation.reservation_datetime >= since,
                        Reservation.is_active == True,  # noqa: E712
                    )
                    .group_by(Reservation.status)
                )
            ).all()

            by_status = {status.value: 0 for status in ReservationStatus}
            guests = 0
            for status, count, party_total in rows:
                by_status[ReservationStatus(status).value] = count
                guests += int(party_total)
            total = sum(by_status.values())

            stats = RestaurantWeeklyStats(
                restaurant_id=str(restaurant.id),
                restaurant_name=restaurant.name,
                total=total,
                by_status=by_status,
                total_guests=guests,
                average_party_size=round(guests / total, 1) if total else 0.0,
                completion_rate=round(by_status["completed"] / total * 100, 1) if total else 0.0,
                no_show_rate=round(by_status["no_show"] / total * 100, 1) if total else 0.0,
            )
            logger.info("Weekly reservation stats", **stats.model_dump())
            report.append(stats.model_dump())

        result.processed = len(report)
        result.details = {"since": since.isoformat(), "restaurants": report}
        return result

    # Helpers

    async def _candidate_ids(self, *conditions) -> List[UUID]:
        rows = await self.db.execute(
            select(Reservation.id)
            .where(Reservation.is_active == True, *conditions)  # noqa: E712
            .order_by(Reservation.reservation_datetime)
        )
        return list(rows.scalars().all())

    async def _transition_each(
        self,
        result: JobResult,
        reservation_ids: List[UUID],
        target: ReservationStatus,
        reason: str,
    ) -> JobResult:
        for reservation_id in reservation_ids:
            reservation = await self.db.get(Reservation, reservation_id)
            if reservation is None or not reservation.is_active:
                result.skipped += 1
                continue
            try:
                await self.state_machine.transition(reservation, target, actor_id=None, reason=reason)
                result.processed += 1
            except IllegalTransitionError:
                result.skipped += 1
                logger.debug(
                    "Reservation no longer eligible",
                    reservation_id=str(reservation_id),
                    status=reservation.status.value,
                    target=target.value,
                )
            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error(
                    "Job transition failed",
                    reservation_id=str(reservation_id),
                    target=target.value,
                    error=str(e),
                )
        return result
