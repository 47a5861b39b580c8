"""Background job tasks"""

import asyncio
import structlog

from tablebook.jobs.celery_app import celery_app
from tablebook.log_config import configure_logging

configure_logging()

logger = structlog.get_logger()


def run_job(name: str) -> dict:
    """Run a maintenance job in a fresh event loop with its own connections"""
    logger.info("Running scheduled job", job=name)

    async def _run():
        from tablebook.database import create_worker_engine, worker_session_factory
        from tablebook.jobs.maintenance import MaintenanceJobs
        from tablebook.services.transport import build_transports

        worker_engine = create_worker_engine()
        try:
            async with worker_session_factory(worker_engine)() as db:
                jobs = MaintenanceJobs(db, build_transports())
                result = await jobs.run_job(name)
        finally:
            await worker_engine.dispose()
        return result.model_dump(mode="json")

    return asyncio.run(_run())


@celery_app.task(name="daily_reminders")
def daily_reminders():
    """Send reminders for tomorrow's confirmed reservations"""
    return run_job("daily_reminders")


@celery_app.task(name="mark_no_shows")
def mark_no_shows():
    """Mark confirmed reservations past the grace period as no-show"""
    return run_job("mark_no_shows")


@celery_app.task(name="auto_release_tables")
def auto_release_tables():
    """Complete seated reservations well past their end time"""
    return run_job("auto_release_tables")


@celery_app.task(name="cleanup_expired")
def cleanup_expired():
    """Close stale seated reservations and archive old terminal ones"""
    return run_job("cleanup_expired")


@celery_app.task(name="weekly_stats")
def weekly_stats():
    """Log weekly reservation statistics"""
    return run_job("weekly_stats")
