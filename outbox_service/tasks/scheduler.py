"""APScheduler integration for recurring outbox jobs.

Each job has a stable identity (``JobId``). Its cron schedule comes from
``SchedulerSettings.schedules``; a job without a schedule stops the
service from starting.

Usage:
    scheduler = create_scheduler(settings)
    register_jobs(scheduler, {JobId.OUTBOX_RELAY: relay_job.run}, settings)
    await start_scheduler(scheduler)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from outbox_service.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from outbox_service.core.settings import SchedulerSettings

logger = logging.getLogger(__name__)


class JobId(str, Enum):
    """Identities of scheduled jobs, used as schedule configuration keys."""

    OUTBOX_RELAY = "outbox_relay"
    OUTBOX_PURGE = "outbox_purge"


JOB_NAMES: dict[str, str] = {
    JobId.OUTBOX_RELAY.value: "Relay ReadyToSend outbox records to the message bus",
    JobId.OUTBOX_PURGE.value: "Delete Completed outbox records past retention",
}


def _job_key(job_id: JobId | str) -> str:
    return job_id.value if isinstance(job_id, JobId) else str(job_id)


def create_scheduler(settings: SchedulerSettings) -> AsyncIOScheduler:
    """Create an AsyncIOScheduler (runs in the same event loop as FastAPI)."""
    return AsyncIOScheduler(
        timezone=settings.timezone,
        job_defaults={
            "coalesce": True,  # Combine multiple pending executions into one
            "max_instances": 1,  # Only one instance of each job at a time
            "misfire_grace_time": settings.misfire_grace_time,
        },
    )


def build_triggers(
    job_ids: list[str],
    settings: SchedulerSettings,
) -> dict[str, CronTrigger]:
    """Resolve a cron trigger for each job id.

    Raises:
        ConfigurationError: Some jobs have no schedule (all of them are
            listed) or a schedule is not a valid crontab expression.
    """
    missing = sorted(job_id for job_id in job_ids if not settings.schedules.get(job_id))
    if missing:
        raise ConfigurationError(
            "No cron schedule configured for scheduled jobs",
            details={"missing": missing, "setting": "SCHEDULER_SCHEDULES"},
        )

    triggers: dict[str, CronTrigger] = {}
    for job_id in job_ids:
        expression = settings.schedules[job_id]
        try:
            triggers[job_id] = CronTrigger.from_crontab(expression, timezone=settings.timezone)
        except ValueError as exc:
            raise ConfigurationError(
                "Invalid cron schedule",
                details={"job_id": job_id, "schedule": expression, "error": str(exc)},
            ) from exc
    return triggers


def register_jobs(
    scheduler: AsyncIOScheduler,
    jobs: Mapping[JobId | str, Callable[[], Awaitable[Any]]],
    settings: SchedulerSettings,
) -> None:
    """Add jobs to the scheduler with their configured cron triggers.

    Every schedule is validated before any job is added, so a bad
    configuration leaves the scheduler untouched.

    Raises:
        ConfigurationError: Missing or invalid schedules.
    """
    funcs = {_job_key(job_id): func for job_id, func in jobs.items()}
    triggers = build_triggers(list(funcs), settings)

    for job_id, func in funcs.items():
        scheduler.add_job(
            func,
            trigger=triggers[job_id],
            id=job_id,
            name=JOB_NAMES.get(job_id, job_id),
            replace_existing=True,
        )
        logger.info(
            "Scheduled job",
            extra={"job_id": job_id, "schedule": settings.schedules[job_id]},
        )

    logger.info(f"Scheduled {len(funcs)} jobs")


async def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Start the scheduler.

    Call during application startup after register_jobs().
    """
    if not scheduler.running:
        logger.info("Starting APScheduler")
        scheduler.start()
        logger.info(f"APScheduler started with {len(scheduler.get_jobs())} jobs")
    else:
        logger.warning("APScheduler is already running")


async def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the scheduler gracefully.

    Call during application shutdown.
    """
    if scheduler.running:
        logger.info("Stopping APScheduler")
        scheduler.shutdown(wait=True)
        # shutdown is handed to the event loop; let it run
        await asyncio.sleep(0)
        logger.info("APScheduler stopped")
    else:
        logger.debug("APScheduler is not running")


def get_job_status(scheduler: AsyncIOScheduler) -> list[dict[str, Any]]:
    """Get status of all scheduled jobs.

    Returns:
        List of job information dictionaries.
    """
    jobs = []
    for job in scheduler.get_jobs():
        # Pending jobs have no next_run_time until the scheduler starts
        next_run_time = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger),
            }
        )
    return jobs


__all__ = [
    "JobId",
    "build_triggers",
    "create_scheduler",
    "get_job_status",
    "register_jobs",
    "start_scheduler",
    "stop_scheduler",
]
