"""Tests for scheduled job registration."""
from __future__ import annotations

import pytest
from apscheduler.triggers.cron import CronTrigger

from outbox_service.core.exceptions import ConfigurationError
from outbox_service.core.settings import SchedulerSettings
from outbox_service.tasks.scheduler import (
    JobId,
    build_triggers,
    create_scheduler,
    get_job_status,
    register_jobs,
    start_scheduler,
    stop_scheduler,
)


async def _noop() -> None:
    return None


@pytest.fixture
def settings() -> SchedulerSettings:
    return SchedulerSettings(schedules={"outbox_relay": "*/1 * * * *"})


class TestBuildTriggers:
    def test_builds_cron_trigger(self, settings):
        triggers = build_triggers(["outbox_relay"], settings)

        assert isinstance(triggers["outbox_relay"], CronTrigger)

    def test_all_missing_schedules_are_listed(self):
        settings = SchedulerSettings(schedules={"outbox_relay": ""})

        with pytest.raises(ConfigurationError) as exc_info:
            build_triggers(["purge", "outbox_relay"], settings)

        assert exc_info.value.details["missing"] == ["outbox_relay", "purge"]

    @pytest.mark.parametrize("expression", ["every minute", "61 * * * *"])
    def test_invalid_cron_is_configuration_error(self, expression):
        settings = SchedulerSettings(schedules={"outbox_relay": expression})

        with pytest.raises(ConfigurationError, match="Invalid cron schedule"):
            build_triggers(["outbox_relay"], settings)


class TestRegisterJobs:
    def test_registers_job_under_its_id(self, settings):
        scheduler = create_scheduler(settings)

        register_jobs(scheduler, {JobId.OUTBOX_RELAY: _noop}, settings)

        job = scheduler.get_job("outbox_relay")
        assert job is not None
        assert job.func is _noop

    def test_missing_schedule_adds_nothing(self):
        settings = SchedulerSettings()
        scheduler = create_scheduler(settings)

        with pytest.raises(ConfigurationError):
            register_jobs(scheduler, {JobId.OUTBOX_RELAY: _noop, "purge": _noop}, settings)

        assert scheduler.get_jobs() == []

    def test_job_status_before_start(self, settings):
        scheduler = create_scheduler(settings)
        register_jobs(scheduler, {JobId.OUTBOX_RELAY: _noop}, settings)

        [status] = get_job_status(scheduler)

        assert status["id"] == "outbox_relay"
        assert status["name"] == "Relay ReadyToSend outbox records to the message bus"
        assert status["next_run_time"] is None
        assert status["trigger"].startswith("cron")


class TestSchedulerLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, settings):
        scheduler = create_scheduler(settings)
        register_jobs(scheduler, {JobId.OUTBOX_RELAY: _noop}, settings)

        await start_scheduler(scheduler)
        await start_scheduler(scheduler)
        try:
            assert scheduler.running
            job = scheduler.get_job("outbox_relay")
            assert job.max_instances == 1
            assert job.coalesce is True
            [status] = get_job_status(scheduler)
            assert status["next_run_time"] is not None
        finally:
            await stop_scheduler(scheduler)

        assert not scheduler.running
        await stop_scheduler(scheduler)
