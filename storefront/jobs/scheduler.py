"""
APScheduler Configuration

Background jobs run in-process on the application's event loop:
- drain_outbox every OUTBOX_POLL_SECONDS
- release_expired_reservations every RESERVATION_SWEEP_MINUTES
- sweep_inventory_alerts every ALERT_SWEEP_MINUTES
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from storefront.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE,
)


def start_scheduler():
    """Start the background job scheduler."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Background job scheduler disabled")
        return

    if not scheduler.running:
        from storefront.jobs.inventory_jobs import (
            drain_outbox,
            release_expired_reservations,
            sweep_inventory_alerts,
        )

        scheduler.add_job(
            drain_outbox,
            'interval',
            seconds=settings.OUTBOX_POLL_SECONDS,
            id='drain_outbox',
            name='Drain Outbox',
            replace_existing=True,
        )

        scheduler.add_job(
            release_expired_reservations,
            'interval',
            minutes=settings.RESERVATION_SWEEP_MINUTES,
            id='release_expired_reservations',
            name='Release Expired Reservations',
            replace_existing=True,
        )

        scheduler.add_job(
            sweep_inventory_alerts,
            'interval',
            minutes=settings.ALERT_SWEEP_MINUTES,
            id='sweep_inventory_alerts',
            name='Sweep Inventory Alerts',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
