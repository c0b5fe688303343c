"""Scheduled background jobs."""

from __future__ import annotations

from .scheduler import (
    JobId,
    create_scheduler,
    get_job_status,
    register_jobs,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "JobId",
    "create_scheduler",
    "get_job_status",
    "register_jobs",
    "start_scheduler",
    "stop_scheduler",
]
