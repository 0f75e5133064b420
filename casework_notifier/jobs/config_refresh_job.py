"""
Config Refresh Job.
Rebuilds the cached Variables mapping from the sheet every few hours and
rediscovers the contact sheets of the case tracker.
"""

import asyncio
from datetime import UTC, datetime

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.jobs.reminder_job import ReminderJobError
from casework_notifier.jobs.runtime import AutomationRuntime, RuntimeConfigError, get_runtime
from casework_notifier.services.config_store import ConfigSourceError
from casework_notifier.services.contact_sheet_service import ContactSheetDiscoveryError

logger = get_logger(__name__)


class ConfigRefreshJob:
    job_name = "config_refresh"

    def __init__(self):
        self.is_running = False
        self.last_run_time: datetime | None = None

    async def run_once(self, runtime: AutomationRuntime | None = None) -> dict:
        """
        Force a refresh of every configuration tier.

        Raises:
            ReminderJobError: the Variables sheet could not be read
        """
        if self.is_running:
            logger.warning("Config refresh already running, skipping")
            return {"skipped": True, "reason": "already_running", "job_run": self.job_name}

        start = datetime.now(UTC)
        try:
            self.is_running = True
            runtime = runtime or await get_runtime()

            context = await runtime.resolver.refresh()

            # Discovery failure leaves the previous snapshot in place
            contact_sheets: list[str] | None = None
            tracker_id = context.tracker_spreadsheet_id
            if tracker_id:
                try:
                    sheets = await runtime.contact_sheets.get_contact_sheets(
                        tracker_id, force_refresh=True
                    )
                    contact_sheets = [sheet.name for sheet in sheets]
                except ContactSheetDiscoveryError as e:
                    logger.error("Contact sheet rediscovery failed", error=str(e))

            self.last_run_time = datetime.now(UTC)
            result = {
                "job_run": self.job_name,
                "variable_count": len(context.values),
                "contact_sheets": contact_sheets,
                "total_duration_seconds": round(
                    (self.last_run_time - start).total_seconds(), 2
                ),
            }
            logger.info("Config refresh completed", **result)
            return result

        except (ConfigSourceError, RuntimeConfigError) as e:
            logger.error("Config refresh failed", error=str(e))
            raise ReminderJobError(
                f"Config refresh failed: {e}", operation="refresh", recoverable=False
            ) from e
        finally:
            self.is_running = False


config_refresh_job = ConfigRefreshJob()


async def run_config_refresh_job() -> dict:
    return await config_refresh_job.run_once()


async def start_config_refresh_scheduler() -> None:
    interval_hours = settings.CONFIG_REFRESH_INTERVAL_HOURS
    logger.info("Starting config refresh scheduler", interval_hours=interval_hours)

    while True:
        try:
            await config_refresh_job.run_once()
        except ReminderJobError as e:
            logger.error("Config refresh run aborted", error=str(e), operation=e.operation)
        except Exception as e:
            logger.error(
                "Error in config refresh scheduler", error=str(e), error_type=type(e).__name__
            )

        await asyncio.sleep(interval_hours * 3600)
