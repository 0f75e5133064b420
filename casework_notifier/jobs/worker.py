"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the appropriate scheduler.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import get_logger, setup_logging
from casework_notifier.jobs.config_refresh_job import (
    run_config_refresh_job,
    start_config_refresh_scheduler,
)
from casework_notifier.jobs.reminder_job import (
    run_contact_reminder_job,
    run_summary_reminder_job,
    start_contact_reminder_scheduler,
    start_summary_reminder_scheduler,
)
from casework_notifier.jobs.runtime import shutdown_runtime

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[object]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "contact_reminders": start_contact_reminder_scheduler,
    "summary_reminders": start_summary_reminder_scheduler,
    "config_refresh": start_config_refresh_scheduler,
    "contact_reminders_once": run_contact_reminder_job,
    "summary_reminders_once": run_summary_reminder_job,
    "config_refresh_once": run_config_refresh_job,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "contact_reminders").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    try:
        await JOB_REGISTRY[name]()
    finally:
        await shutdown_runtime()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
