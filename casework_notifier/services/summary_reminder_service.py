"""
Summary-Reminder Engine.

Reads the hearing tracker and emails the main worker about court summaries
coming due, adding the supervisor once a summary is late and the manager once
it is severely late. Nothing is written back: re-running on the same day
sends the same reminders again.
"""

from datetime import date

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import (
    get_logger,
    log_reminder_sent,
    log_row_skipped,
)
from casework_notifier.models.domain.casework_domain import (
    SUMMARY_SUBMITTED_COL,
    MalformedRow,
    SummaryRow,
    cell_at,
)
from casework_notifier.models.domain.config_domain import ConfigContext
from casework_notifier.services import email_templates
from casework_notifier.services.escalation import SummaryAssessment, SummaryTier, assess_summary
from casework_notifier.services.google_sheets_service import GoogleSheetsError
from casework_notifier.services.interfaces import TabularSource
from casework_notifier.services.notification_service import DeliveryError, NotificationDispatcher
from casework_notifier.services.reminder_run import ReminderRunMetrics, TrackerUnavailable, today_in

logger = get_logger(__name__)

SUBJECTS = {
    SummaryTier.PRE_DUE: "Summary Due Tomorrow",
    SummaryTier.DUE_TODAY: "Summary Due Today",
    SummaryTier.MINOR_OVERDUE: "Summary Overdue: {last_name}",
    SummaryTier.SEVERE_OVERDUE: "Urgent: {last_name} Summary Severely Overdue",
}


def summary_recipients(tier: SummaryTier, config: ConfigContext) -> list[str]:
    if tier in (SummaryTier.PRE_DUE, SummaryTier.DUE_TODAY):
        return [config.main_worker_email]
    if tier is SummaryTier.MINOR_OVERDUE:
        return [config.main_worker_email, config.main_supervisor_email]
    if tier is SummaryTier.SEVERE_OVERDUE:
        return [config.main_worker_email, config.main_supervisor_email, config.manager_email]
    return []


def summary_subject(tier: SummaryTier, last_name: str) -> str:
    return SUBJECTS[tier].format(last_name=last_name)


def summary_body(config: ConfigContext, row: SummaryRow, assessment: SummaryAssessment) -> str:
    tier = assessment.tier
    if tier in (SummaryTier.PRE_DUE, SummaryTier.DUE_TODAY):
        return email_templates.standard_summary_html(
            config, row.last_name, row.summary_link, due_today=tier is SummaryTier.DUE_TODAY
        )
    if tier is SummaryTier.MINOR_OVERDUE:
        return email_templates.supervisor_included_summary_html(
            config, row.last_name, assessment.days_late, assessment.follow_up_date, row.summary_link
        )
    return email_templates.reprimanding_summary_html(
        config,
        row.last_name,
        assessment.reminders_sent,
        assessment.days_until_hearing,
        assessment.supervisor_reminders_sent,
        row.summary_due_date,
        row.summary_link,
    )


class SummaryReminderService:
    def __init__(
        self,
        source: TabularSource,
        dispatcher: NotificationDispatcher,
        sheet_name: str | None = None,
        severe_after_days: int | None = None,
    ):
        self._source = source
        self._dispatcher = dispatcher
        self._sheet_name = sheet_name if sheet_name is not None else settings.SUMMARY_SHEET_NAME
        self._severe_after_days = (
            settings.SEVERE_OVERDUE_DAYS if severe_after_days is None else severe_after_days
        )

    async def _tracker_sheet_name(self, tracker_id: str) -> str:
        if self._sheet_name:
            return self._sheet_name

        sheet_names = await self._source.list_sheet_names(tracker_id)
        if not sheet_names:
            raise TrackerUnavailable("Case tracker has no sheets")
        return sheet_names[0]

    async def run(
        self,
        config: ConfigContext,
        today: date | None = None,
        metrics: ReminderRunMetrics | None = None,
    ) -> ReminderRunMetrics:
        """
        Scan the hearing tracker once.

        Raises:
            TrackerUnavailable: the tracker or its summary sheet could not be read
        """
        today = today or today_in(config.timezone)
        metrics = metrics or ReminderRunMetrics("summary_reminders")
        tracker_id = config.tracker_spreadsheet_id

        try:
            sheet_name = await self._tracker_sheet_name(tracker_id)
            rows = await self._source.read_rows(tracker_id, sheet_name)
        except GoogleSheetsError as e:
            raise TrackerUnavailable(f"Failed to read case tracker: {e}") from e

        if rows is None:
            raise TrackerUnavailable(
                f"'{sheet_name}' sheet not found in case tracker", sheet=sheet_name
            )

        logger.info("Running summary reminders", today=today.isoformat(), sheet=sheet_name)
        metrics.record_sheet_scanned()

        for index, values in enumerate(rows[1:], start=2):
            await self._process_row(config, sheet_name, values, index, today, metrics)

        return metrics

    async def _process_row(
        self,
        config: ConfigContext,
        sheet_name: str,
        values: list,
        row_number: int,
        today: date,
        metrics: ReminderRunMetrics,
    ) -> bool:
        if cell_at(values, SUMMARY_SUBMITTED_COL) is True:
            metrics.record_skipped("submitted")
            return False

        try:
            row = SummaryRow.from_values(values, row_number)
        except MalformedRow as e:
            log_row_skipped("malformed", row_number, sheet_name, field=e.field)
            metrics.record_skipped("malformed")
            return False

        assessment = assess_summary(
            row.summary_due_date, row.next_court_date, today, self._severe_after_days
        )
        if assessment.tier is SummaryTier.NONE:
            metrics.record_skipped("not_due")
            return False

        to = summary_recipients(assessment.tier, config)
        try:
            await self._dispatcher.send(
                to,
                None,
                summary_subject(assessment.tier, row.last_name),
                summary_body(config, row, assessment),
            )
        except DeliveryError as e:
            metrics.record_failure(row_number, str(e), sheet=sheet_name)
            return False

        metrics.record_sent()
        log_reminder_sent("summary", assessment.tier.value, to, row_number, sheet_name)
        return True
