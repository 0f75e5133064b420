"""
Per-run bookkeeping shared by the reminder engines.
"""

from collections import Counter
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from casework_notifier.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TrackerUnavailable(Exception):
    """The case tracker (or one of its tabs) could not be read; the run aborts."""

    def __init__(self, message: str, sheet: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.sheet = sheet
        self.recoverable = recoverable


def today_in(timezone: ZoneInfo) -> date:
    """Calendar date in the configured timezone."""
    return datetime.now(timezone).date()


class ReminderRunMetrics:
    """Metrics tracking for one reminder scan."""

    def __init__(self, job_run: str):
        self.job_run = job_run
        self.reset()

    def reset(self):
        """Reset all metrics for new job run."""
        self.start_time = datetime.now(UTC)
        self.sheets_scanned = 0
        self.sheets_skipped = 0
        self.rows_processed = 0
        self.reminders_sent = 0
        self.delivery_failures = 0
        self.skip_reasons: Counter[str] = Counter()
        self.periods_completed: list[str] = []
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_sheet_scanned(self):
        self.sheets_scanned += 1

    def record_sheet_skipped(self, sheet: str, reason: str):
        self.sheets_skipped += 1
        logger.info("Sheet skipped", sheet=sheet, reason=reason, job_run=self.job_run)

    def record_sent(self):
        self.rows_processed += 1
        self.reminders_sent += 1

    def record_skipped(self, reason: str):
        self.rows_processed += 1
        self.skip_reasons[reason] += 1

    def record_failure(self, row: int, error: str, sheet: str | None = None):
        self.rows_processed += 1
        self.delivery_failures += 1

        self.errors.append(
            {
                "sheet": sheet,
                "row": row,
                "error": error,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        logger.warning(
            "Reminder not sent", sheet=sheet, row=row, error=error, job_run=self.job_run
        )

    def record_period_completed(self, label: str):
        self.periods_completed.append(label)

    def finalize(self):
        """Finalize metrics and calculate totals."""
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def rows_skipped(self) -> int:
        return sum(self.skip_reasons.values())

    def to_dict(self) -> dict:
        """Convert metrics to dictionary for logging."""
        return {
            "job_run": self.job_run,
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "sheets_scanned": self.sheets_scanned,
            "sheets_skipped": self.sheets_skipped,
            "rows_processed": self.rows_processed,
            "reminders_sent": self.reminders_sent,
            "rows_skipped": self.rows_skipped,
            "delivery_failures": self.delivery_failures,
            "skip_reasons": dict(self.skip_reasons),
            "periods_completed": list(self.periods_completed),
            "errors_count": len(self.errors),
        }
