"""Scheduler settings: one crontab expression per job identity."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    """APScheduler configuration.

    Environment variables use SCHEDULER_ prefix. Schedules are given as a
    JSON object mapping job id to a five-field crontab expression:

        SCHEDULER_SCHEDULES='{"outbox_relay": "*/1 * * * *"}'

    Every registered job must have an entry; a missing one is a startup
    error (see ``outbox_service.tasks.scheduler.register_jobs``).
    """

    enabled: bool = Field(default=True, description="Start the scheduler with the application.")
    timezone: str = Field(default="UTC")
    schedules: dict[str, str] = Field(
        default_factory=dict,
        description="Job id -> crontab expression.",
    )
    misfire_grace_time: int = Field(
        default=60,
        ge=1,
        description="Seconds a late run is still allowed to start.",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )


__all__ = ["SchedulerSettings"]
