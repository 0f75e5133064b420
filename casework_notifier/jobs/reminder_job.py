"""
Reminder Jobs.
Daily contact and summary scans, run as scheduler loops by the worker or
once on demand from the admin routes.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.jobs.runtime import AutomationRuntime, RuntimeConfigError, get_runtime
from casework_notifier.models.domain.config_domain import ConfigUnavailable
from casework_notifier.services.reminder_run import ReminderRunMetrics, TrackerUnavailable

logger = get_logger(__name__)


class ReminderJobError(Exception):
    """Custom exception for reminder job runs that abort."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ReminderJob(ABC):
    """
    One reminder scan per run_once() call.

    Subclasses pick the engine; configuration is resolved fresh each run and
    handed to the engine as an immutable context.
    """

    job_name = "reminders"

    def __init__(self):
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_metrics: dict | None = None

    @abstractmethod
    async def _scan(self, runtime: AutomationRuntime, metrics: ReminderRunMetrics) -> None:
        """Run the engine once, recording into metrics."""

    async def run_once(self, runtime: AutomationRuntime | None = None) -> dict:
        """
        Run a single scan.

        Returns:
            Dict: Job execution metrics

        Raises:
            ReminderJobError: configuration unavailable or tracker unreadable
        """
        if self.is_running:
            logger.warning("Reminder job already running, skipping", job=self.job_name)
            return {"skipped": True, "reason": "already_running", "job_run": self.job_name}

        metrics = ReminderRunMetrics(self.job_name)
        try:
            self.is_running = True
            logger.info("Starting reminder job", job=self.job_name)

            runtime = runtime or await get_runtime()
            await self._scan(runtime, metrics)

            metrics.finalize()
            self.last_run_time = datetime.now(UTC)
            self.last_metrics = metrics.to_dict()
            logger.info("Reminder job completed", **self.last_metrics)
            return self.last_metrics

        except (ConfigUnavailable, RuntimeConfigError) as e:
            logger.error(
                "Reminder job aborted: configuration unavailable",
                job=self.job_name,
                error=str(e),
            )
            raise ReminderJobError(str(e), operation="resolve_config", recoverable=False) from e
        except TrackerUnavailable as e:
            logger.error(
                "Reminder job aborted: tracker unavailable", job=self.job_name, error=str(e)
            )
            raise ReminderJobError(str(e), operation="read_tracker") from e
        finally:
            self.is_running = False

    def get_job_status(self) -> dict:
        return {
            "job_name": self.job_name,
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "interval_hours": settings.REMINDER_INTERVAL_HOURS,
            "last_run_metrics": self.last_metrics,
        }

    def health_check(self) -> dict:
        now = datetime.now(UTC)
        overdue_threshold = timedelta(hours=settings.REMINDER_INTERVAL_HOURS * 2)
        is_overdue = (
            self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold
        )
        return {
            "healthy": not is_overdue,
            "service": f"{self.job_name}_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
        }


class ContactReminderJob(ReminderJob):
    job_name = "contact_reminders"

    async def _scan(self, runtime: AutomationRuntime, metrics: ReminderRunMetrics) -> None:
        config = await runtime.resolver.resolve()
        await runtime.contact_service().run(config, metrics=metrics)


class SummaryReminderJob(ReminderJob):
    job_name = "summary_reminders"

    async def _scan(self, runtime: AutomationRuntime, metrics: ReminderRunMetrics) -> None:
        config = await runtime.resolver.resolve()
        await runtime.summary_service().run(config, metrics=metrics)


# Singleton instances for application use
contact_reminder_job = ContactReminderJob()
summary_reminder_job = SummaryReminderJob()


async def run_contact_reminder_job() -> dict:
    """Run a single contact reminder scan."""
    return await contact_reminder_job.run_once()


async def run_summary_reminder_job() -> dict:
    """Run a single summary reminder scan."""
    return await summary_reminder_job.run_once()


async def run_scheduler(job: ReminderJob, interval_hours: float) -> None:
    """Run job every interval_hours until cancelled."""
    logger.info("Starting reminder job scheduler", job=job.job_name, interval_hours=interval_hours)

    while True:
        try:
            metrics = await job.run_once()
            if not metrics.get("skipped"):
                logger.info("Reminder job cycle completed", job=job.job_name)
        except ReminderJobError as e:
            # Aborted runs are retried on the next cycle
            logger.error(
                "Reminder job run aborted",
                job=job.job_name,
                error=str(e),
                operation=e.operation,
                recoverable=e.recoverable,
            )
        except Exception as e:
            logger.error(
                "Error in reminder job scheduler",
                job=job.job_name,
                error=str(e),
                error_type=type(e).__name__,
            )

        await asyncio.sleep(interval_hours * 3600)


async def start_contact_reminder_scheduler() -> None:
    await run_scheduler(contact_reminder_job, settings.REMINDER_INTERVAL_HOURS)


async def start_summary_reminder_scheduler() -> None:
    await run_scheduler(summary_reminder_job, settings.REMINDER_INTERVAL_HOURS)
