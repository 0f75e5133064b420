"""
Tests for the reminder and config refresh jobs.
"""

import asyncio

import pytest

from casework_notifier.jobs import reminder_job
from casework_notifier.jobs.config_refresh_job import ConfigRefreshJob
from casework_notifier.jobs.reminder_job import (
    ContactReminderJob,
    ReminderJob,
    ReminderJobError,
    SummaryReminderJob,
    run_scheduler,
)
from casework_notifier.jobs.runtime import AutomationRuntime
from casework_notifier.services.config_store import InMemoryTier

AUTOMATION_ID = "automation-sheet"
TRACKER_ID = "tracker-sheet"


@pytest.fixture
def runtime(fake_source, transport, base_variables, variables_table):
    fake_source.spreadsheets[AUTOMATION_ID] = {"Variables": variables_table(base_variables)}
    fake_source.spreadsheets[TRACKER_ID] = {
        "Hearings": [["Case Name"]],
        "March Contacts": [["Child Name", "Case ID", "Date Seen", "Seen By"]],
    }
    return AutomationRuntime(
        source=fake_source,
        mail=transport,
        automation_sheet_id=AUTOMATION_ID,
        cache=InMemoryTier("cache"),
        durable=InMemoryTier("durable"),
    )


class TestReminderJobs:
    @pytest.mark.asyncio
    async def test_contact_job_returns_metrics(self, runtime):
        job = ContactReminderJob()

        metrics = await job.run_once(runtime)

        assert metrics["job_run"] == "contact_reminders"
        assert metrics["delivery_failures"] == 0
        assert job.last_metrics == metrics
        assert job.is_running is False
        assert job.health_check()["healthy"] is True

    @pytest.mark.asyncio
    async def test_summary_job_returns_metrics(self, runtime):
        metrics = await SummaryReminderJob().run_once(runtime)

        assert metrics["job_run"] == "summary_reminders"
        assert metrics["sheets_scanned"] == 1
        assert metrics["reminders_sent"] == 0

    @pytest.mark.asyncio
    async def test_missing_variable_aborts_without_retry(
        self, runtime, fake_source, base_variables, variables_table
    ):
        del base_variables["SSM_EMAIL"]
        fake_source.spreadsheets[AUTOMATION_ID]["Variables"] = variables_table(base_variables)
        job = ContactReminderJob()

        with pytest.raises(ReminderJobError) as exc_info:
            await job.run_once(runtime)

        assert exc_info.value.operation == "resolve_config"
        assert exc_info.value.recoverable is False
        assert job.is_running is False
        assert job.last_metrics is None

    @pytest.mark.asyncio
    async def test_missing_tracker_sheet_is_recoverable(self, runtime, fake_source):
        fake_source.spreadsheets[TRACKER_ID] = {}

        with pytest.raises(ReminderJobError) as exc_info:
            await SummaryReminderJob().run_once(runtime)

        assert exc_info.value.operation == "read_tracker"
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self, runtime):
        job = SummaryReminderJob()
        job.is_running = True

        result = await job.run_once(runtime)

        assert result == {
            "skipped": True,
            "reason": "already_running",
            "job_run": "summary_reminders",
        }

    def test_base_job_requires_an_engine(self):
        with pytest.raises(TypeError):
            ReminderJob()

    def test_job_status_before_first_run(self):
        status = ContactReminderJob().get_job_status()

        assert status["job_name"] == "contact_reminders"
        assert status["last_run_time"] is None
        assert status["last_run_metrics"] is None

    @pytest.mark.asyncio
    async def test_scheduler_survives_aborted_runs(self, monkeypatch):
        calls = []

        class FlakyJob:
            job_name = "flaky"

            async def run_once(self):
                calls.append("run")
                raise ReminderJobError("tracker down", operation="read_tracker")

        async def stop_after_first_cycle(seconds):
            calls.append(seconds)
            raise asyncio.CancelledError

        monkeypatch.setattr(reminder_job.asyncio, "sleep", stop_after_first_cycle)

        with pytest.raises(asyncio.CancelledError):
            await run_scheduler(FlakyJob(), interval_hours=24)

        assert calls == ["run", 24 * 3600]


class TestConfigRefreshJob:
    @pytest.mark.asyncio
    async def test_refresh_rebuilds_tiers_and_rediscovers_sheets(self, runtime):
        result = await ConfigRefreshJob().run_once(runtime)

        assert result["job_run"] == "config_refresh"
        assert result["variable_count"] == 9
        assert result["contact_sheets"] == ["March Contacts"]

        context = await runtime.resolver.resolve()
        assert context.source == "cache"

    @pytest.mark.asyncio
    async def test_rediscovery_failure_is_not_fatal(self, runtime, fake_source):
        fake_source.failing_sheets.add("Hearings")

        result = await ConfigRefreshJob().run_once(runtime)

        assert result["contact_sheets"] is None

    @pytest.mark.asyncio
    async def test_unreadable_variables_raise(self, runtime, fake_source):
        fake_source.failing_sheets.add("Variables")

        with pytest.raises(ReminderJobError) as exc_info:
            await ConfigRefreshJob().run_once(runtime)

        assert exc_info.value.operation == "refresh"
