"""
Contact-Reminder Engine.

Scans the "<MonthName> Contacts" tabs of the case tracker, emails a graduated
reminder for every child seen but not yet entered, stamps the row's
last-reminder column after each successful send, and marks a month complete
once a catch-up day scan of its sheet sends nothing.
"""

import re
from collections import Counter
from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import (
    get_logger,
    log_reminder_sent,
    log_row_skipped,
)
from casework_notifier.models.domain.casework_domain import (
    CONTACT_LAST_REMINDER_COL,
    ContactRow,
    LookupMiss,
    MalformedRow,
    WorkerRecord,
)
from casework_notifier.models.domain.config_domain import (
    CONTACT_COMPLETE_MONTHS,
    ConfigContext,
    PeriodCompletionSet,
)
from casework_notifier.services import email_templates
from casework_notifier.services.config_store.resolver import ConfigurationResolver
from casework_notifier.services.config_store.variables_sheet import ConfigSourceError
from casework_notifier.services.contact_sheet_service import (
    ContactSheetDiscoveryError,
    ContactSheetService,
)
from casework_notifier.services.directory_service import DirectoryService
from casework_notifier.services.escalation import (
    ContactAssessment,
    ContactTier,
    assess_contact,
    is_catch_up_day,
    is_prior_period,
    month_name_from_number,
    month_number_from_name,
)
from casework_notifier.services.google_sheets_service import GoogleSheetsError
from casework_notifier.services.interfaces import TabularSource
from casework_notifier.services.notification_service import DeliveryError, NotificationDispatcher
from casework_notifier.services.reminder_run import ReminderRunMetrics, TrackerUnavailable, today_in

logger = get_logger(__name__)

CONTACT_SHEET_PATTERN = re.compile(r"^([A-Za-z]+) Contacts$")
LAST_SENT_FORMAT = "%m/%d/%Y"


class RowOutcome(StrEnum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class SheetDecision(StrEnum):
    SCAN = "scan"
    UNRECOGNIZED_MONTH = "unrecognized_month"
    FUTURE_PERIOD = "future_period"
    ALREADY_COMPLETE = "already_complete"


@dataclass(frozen=True, slots=True)
class SheetPlan:
    sheet_name: str
    decision: SheetDecision
    period_label: str | None = None


def plan_sheet(sheet_name: str, today: date, completed: PeriodCompletionSet) -> SheetPlan:
    """
    Decide whether a period sheet is scanned today.

    Only the month index is compared with today's; the year is not part of
    the sheet name.
    """
    match = CONTACT_SHEET_PATTERN.match(sheet_name)
    month = month_number_from_name(match.group(1)) if match else None
    if month is None:
        return SheetPlan(sheet_name, SheetDecision.UNRECOGNIZED_MONTH)

    label = month_name_from_number(month)
    if month > today.month:
        return SheetPlan(sheet_name, SheetDecision.FUTURE_PERIOD, label)
    if label in completed:
        return SheetPlan(sheet_name, SheetDecision.ALREADY_COMPLETE, label)
    return SheetPlan(sheet_name, SheetDecision.SCAN, label)


def contact_recipients(
    tier: ContactTier,
    worker: WorkerRecord,
    manager_email: str,
    within_reprimand_window: bool,
) -> tuple[list[str], list[str]]:
    """(to, bcc) for a contact reminder."""
    if tier is ContactTier.REPRIMANDING:
        return [worker.email, worker.supervisor_email], [manager_email]

    bcc = [worker.supervisor_email]
    if tier is ContactTier.POST_PERIOD and within_reprimand_window:
        bcc.append(manager_email)
    return [worker.email], bcc


def contact_subject(child_name: str) -> str:
    return f"Contact Entry Reminder – {child_name}"


def contact_body(
    config: ConfigContext, row: ContactRow, worker: WorkerRecord, assessment: ContactAssessment
) -> str:
    if assessment.tier is ContactTier.POST_PERIOD:
        return email_templates.post_period_contact_html(
            config,
            worker.display_name,
            worker.supervisor_name,
            row.child_name,
            row.case_id,
            row.date_seen,
        )

    template = (
        email_templates.reprimanding_contact_html
        if assessment.tier is ContactTier.REPRIMANDING
        else email_templates.standard_contact_html
    )
    return template(
        config,
        worker.display_name,
        worker.supervisor_name,
        row.child_name,
        row.case_id,
        row.date_seen,
        assessment.days_since_seen,
        assessment.days_remaining,
    )


class ContactReminderService:
    def __init__(
        self,
        source: TabularSource,
        dispatcher: NotificationDispatcher,
        directory: DirectoryService,
        resolver: ConfigurationResolver,
        contact_sheets: ContactSheetService,
        catch_up_weekday: int | None = None,
        reprimand_window_days: int | None = None,
    ):
        self._source = source
        self._dispatcher = dispatcher
        self._directory = directory
        self._resolver = resolver
        self._contact_sheets = contact_sheets
        self._catch_up_weekday = (
            settings.CATCH_UP_WEEKDAY if catch_up_weekday is None else catch_up_weekday
        )
        self._reprimand_window_days = (
            settings.REPRIMAND_WINDOW_DAYS
            if reprimand_window_days is None
            else reprimand_window_days
        )

    async def run(
        self,
        config: ConfigContext,
        today: date | None = None,
        metrics: ReminderRunMetrics | None = None,
    ) -> ReminderRunMetrics:
        """
        Scan every eligible contact sheet once.

        Raises:
            TrackerUnavailable: the case tracker could not be read
        """
        today = today or today_in(config.timezone)
        metrics = metrics or ReminderRunMetrics("contact_reminders")
        tracker_id = config.tracker_spreadsheet_id
        catch_up = is_catch_up_day(today, self._catch_up_weekday)
        completed = config.completed_periods

        logger.info(
            "Running contact reminders",
            today=today.isoformat(),
            catch_up_day=catch_up,
            completed_months=list(completed),
        )

        for sheet_name in await self._candidate_sheets(tracker_id):
            plan = plan_sheet(sheet_name, today, completed)
            if plan.decision is not SheetDecision.SCAN:
                metrics.record_sheet_skipped(sheet_name, plan.decision.value)
                continue

            outcomes = await self._scan_sheet(
                config, tracker_id, sheet_name, today, catch_up, metrics
            )
            if outcomes is None:
                metrics.record_sheet_skipped(sheet_name, "sheet_missing")
                continue
            metrics.record_sheet_scanned()

            # A failed delivery counts as not-sent
            if catch_up and not outcomes[RowOutcome.SENT]:
                logger.info("No reminders sent, marking month complete", sheet=sheet_name)
                completed = completed.union([plan.period_label])
                await self._persist_completed(completed, plan.period_label, metrics)

        return metrics

    async def _candidate_sheets(self, tracker_id: str) -> list[str]:
        """
        Discovered contact sheets, followed by any "<Month> Contacts" tab created
        since discovery was last refreshed.

        Raises:
            TrackerUnavailable: the case tracker could not be read
        """
        try:
            discovered = await self._contact_sheets.get_contact_sheets(tracker_id)
            tab_names = await self._source.list_sheet_names(tracker_id)
        except ContactSheetDiscoveryError as e:
            raise TrackerUnavailable(str(e)) from e
        except GoogleSheetsError as e:
            raise TrackerUnavailable(f"Failed to list case tracker tabs: {e}") from e

        names = [sheet.name for sheet in discovered]
        undiscovered = [
            name for name in tab_names if CONTACT_SHEET_PATTERN.match(name) and name not in names
        ]
        if undiscovered:
            logger.info("Contact sheets not yet discovered", sheets=undiscovered)
        return names + undiscovered

    async def _scan_sheet(
        self,
        config: ConfigContext,
        tracker_id: str,
        sheet_name: str,
        today: date,
        catch_up: bool,
        metrics: ReminderRunMetrics,
    ) -> Counter | None:
        try:
            rows = await self._source.read_rows(tracker_id, sheet_name)
        except GoogleSheetsError as e:
            raise TrackerUnavailable(f"Failed to read '{sheet_name}': {e}", sheet=sheet_name) from e

        if rows is None:
            logger.warning("Discovered contact sheet no longer exists", sheet=sheet_name)
            return None

        outcomes = Counter()
        for index, values in enumerate(rows[1:], start=2):
            outcome = await self._process_row(
                config, tracker_id, sheet_name, values, index, today, catch_up, metrics
            )
            outcomes[outcome] += 1

        logger.info(
            "Contact sheet scanned",
            sheet=sheet_name,
            rows=len(rows) - 1,
            sent=outcomes[RowOutcome.SENT],
            failed=outcomes[RowOutcome.FAILED],
        )
        return outcomes

    async def _process_row(
        self,
        config: ConfigContext,
        tracker_id: str,
        sheet_name: str,
        values: list,
        row_number: int,
        today: date,
        catch_up: bool,
        metrics: ReminderRunMetrics,
    ) -> RowOutcome:
        try:
            row = ContactRow.from_values(values, row_number)
        except MalformedRow as e:
            log_row_skipped("malformed", row_number, sheet_name, field=e.field)
            metrics.record_skipped("malformed")
            return RowOutcome.SKIPPED

        if row.contact_entered:
            metrics.record_skipped("contact_entered")
            return RowOutcome.SKIPPED

        if is_prior_period(row.date_seen, today) and not catch_up:
            log_row_skipped("prior_period_not_catch_up_day", row_number, sheet_name)
            metrics.record_skipped("prior_period_not_catch_up_day")
            return RowOutcome.SKIPPED

        try:
            worker = await self._resolve_worker(config, row.assigned_worker_name)
        except LookupMiss as e:
            log_row_skipped("worker_not_found", row_number, sheet_name, worker=e.name)
            metrics.record_skipped("worker_not_found")
            return RowOutcome.SKIPPED

        assessment = assess_contact(row.date_seen, today, self._reprimand_window_days)
        to, bcc = contact_recipients(
            assessment.tier,
            worker,
            config.manager_email,
            assessment.within_reprimand_window,
        )

        try:
            await self._dispatcher.send(
                to,
                bcc,
                contact_subject(row.child_name),
                contact_body(config, row, worker, assessment),
            )
        except DeliveryError as e:
            metrics.record_failure(row_number, str(e), sheet=sheet_name)
            return RowOutcome.FAILED

        await self._stamp_last_sent(tracker_id, sheet_name, row_number, today)
        metrics.record_sent()
        log_reminder_sent("contact", assessment.tier.value, to + bcc, row_number, sheet_name)
        return RowOutcome.SENT

    async def _resolve_worker(self, config: ConfigContext, name: str) -> WorkerRecord:
        if name == config.main_worker_name:
            return WorkerRecord(
                display_name=config.main_worker_name,
                email=config.main_worker_email,
                supervisor_name=config.main_supervisor_name,
                supervisor_email=config.main_supervisor_email,
            )

        record = await self._directory.find_by_name(name)
        if record is None:
            raise LookupMiss(name)
        return record

    async def _stamp_last_sent(
        self, tracker_id: str, sheet_name: str, row_number: int, today: date
    ) -> None:
        # The email is already out; a failed stamp only means tomorrow's scan
        # sees a stale last-sent date.
        try:
            await self._source.write_cell(
                tracker_id,
                sheet_name,
                row_number,
                CONTACT_LAST_REMINDER_COL + 1,
                today.strftime(LAST_SENT_FORMAT),
            )
        except GoogleSheetsError as e:
            logger.error(
                "Failed to record last reminder date",
                sheet=sheet_name,
                row=row_number,
                error=str(e),
            )

    async def _persist_completed(
        self, completed: PeriodCompletionSet, label: str, metrics: ReminderRunMetrics
    ) -> None:
        try:
            await self._resolver.update_value(CONTACT_COMPLETE_MONTHS, completed.serialize())
        except ConfigSourceError as e:
            logger.error("Failed to persist completed month", month=label, error=str(e))
            return
        metrics.record_period_completed(label)
        logger.info("Month marked complete", month=label, completed=completed.serialize())
