"""
Tests for the summary-reminder engine.
"""

from datetime import date

import pytest

from casework_notifier.services.escalation import SummaryTier
from casework_notifier.services.notification_service import NotificationDispatcher
from casework_notifier.services.reminder_run import TrackerUnavailable
from casework_notifier.services.summary_reminder_service import (
    SummaryReminderService,
    summary_recipients,
    summary_subject,
)

TRACKER_ID = "tracker-sheet"

HEADERS = [
    "Case Name",
    "Case Number",
    "Petition Date",
    "Judge",
    "Next Court Date",
    "Hearing Type",
    "Attorney",
    "Summary Due",
    "Notes",
    "Submitted",
    "GAL",
    "Status",
    "Summary Link",
]


def hearing(name, due, court="", submitted=False, link="https://docs.example.org/summary"):
    values = [""] * len(HEADERS)
    values[0] = name
    values[4] = court
    values[7] = due
    values[9] = submitted
    values[12] = link
    return values


@pytest.fixture
def tracker(fake_source):
    fake_source.spreadsheets[TRACKER_ID] = {
        "Hearings": [list(HEADERS)],
        "March Contacts": [["Child Name", "Case ID", "Date Seen", "Seen By"]],
    }
    return fake_source.spreadsheets[TRACKER_ID]["Hearings"]


@pytest.fixture
def service(fake_source, transport):
    return SummaryReminderService(
        fake_source, NotificationDispatcher(transport), sheet_name="", severe_after_days=7
    )


def test_recipients_grow_with_tier(config):
    assert summary_recipients(SummaryTier.PRE_DUE, config) == ["ellie@example.org"]
    assert summary_recipients(SummaryTier.DUE_TODAY, config) == ["ellie@example.org"]
    assert summary_recipients(SummaryTier.MINOR_OVERDUE, config) == [
        "ellie@example.org",
        "sam@example.org",
    ]
    assert summary_recipients(SummaryTier.SEVERE_OVERDUE, config) == [
        "ellie@example.org",
        "sam@example.org",
        "morgan@example.org",
    ]
    assert summary_recipients(SummaryTier.NONE, config) == []


def test_subjects():
    assert summary_subject(SummaryTier.PRE_DUE, "Smith") == "Summary Due Tomorrow"
    assert summary_subject(SummaryTier.DUE_TODAY, "Smith") == "Summary Due Today"
    assert summary_subject(SummaryTier.MINOR_OVERDUE, "Smith") == "Summary Overdue: Smith"
    assert (
        summary_subject(SummaryTier.SEVERE_OVERDUE, "Smith")
        == "Urgent: Smith Summary Severely Overdue"
    )


class TestSummaryReminderService:
    @pytest.mark.asyncio
    async def test_due_tomorrow_goes_to_worker_only(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024"))

        metrics = await service.run(config, today=date(2024, 3, 9))

        assert metrics.reminders_sent == 1
        [message] = transport.sent
        assert message["to"] == ["ellie@example.org"]
        assert message["bcc"] == []
        assert message["subject"] == "Summary Due Tomorrow"
        assert "The Smith summary is due tomorrow" in message["html"]
        assert 'href="https://docs.example.org/summary"' in message["html"]

    @pytest.mark.asyncio
    async def test_due_today(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024"))

        await service.run(config, today=date(2024, 3, 10))

        assert transport.sent[0]["subject"] == "Summary Due Today"
        assert "is due today" in transport.sent[0]["html"]

    @pytest.mark.asyncio
    async def test_minor_overdue_adds_supervisor(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024", court="03/25/2024"))

        await service.run(config, today=date(2024, 3, 15))

        [message] = transport.sent
        assert message["to"] == ["ellie@example.org", "sam@example.org"]
        assert message["subject"] == "Summary Overdue: Smith"
        assert "5 days late" in message["html"]
        assert "03/16/2024" in message["html"]

    @pytest.mark.asyncio
    async def test_severe_overdue_adds_manager(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024", court="03/25/2024"))

        await service.run(config, today=date(2024, 3, 20))

        [message] = transport.sent
        assert message["to"] == ["ellie@example.org", "sam@example.org", "morgan@example.org"]
        assert message["subject"] == "Urgent: Smith Summary Severely Overdue"
        assert "received 10 reminders" in message["html"]
        assert "5 days until this hearing" in message["html"]
        assert "for the past 9" in message["html"]

    @pytest.mark.asyncio
    async def test_submitted_rows_never_reminded(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024", submitted=True))
        # Submitted rows are skipped before the rest of the row is parsed
        tracker.append(hearing("", "", submitted=True))

        metrics = await service.run(config, today=date(2024, 3, 20))

        assert transport.sent == []
        assert metrics.skip_reasons["submitted"] == 2

    @pytest.mark.asyncio
    async def test_checkbox_text_is_not_submitted(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024", submitted="TRUE"))

        await service.run(config, today=date(2024, 3, 10))

        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    async def test_not_yet_due_and_malformed_rows(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/30/2024"))
        tracker.append(hearing("", "03/10/2024"))
        tracker.append(hearing("Jones, Ben", "whenever"))

        metrics = await service.run(config, today=date(2024, 3, 10))

        assert transport.sent == []
        assert metrics.skip_reasons == {"not_due": 1, "malformed": 2}

    @pytest.mark.asyncio
    async def test_missing_link_still_sends(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024", link=""))

        await service.run(config, today=date(2024, 3, 10))

        assert "No summary link was recorded" in transport.sent[0]["html"]

    @pytest.mark.asyncio
    async def test_same_day_rerun_sends_again(
        self, service, tracker, transport, fake_source, config
    ):
        tracker.append(hearing("Smith, Ava", "03/10/2024"))

        await service.run(config, today=date(2024, 3, 10))
        await service.run(config, today=date(2024, 3, 10))

        assert len(transport.sent) == 2
        assert fake_source.writes == []

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_stop_scan(self, service, tracker, transport, config):
        tracker.append(hearing("Smith, Ava", "03/10/2024"))
        tracker.append(hearing("Jones, Ben", "03/10/2024"))
        attempts = []
        transport.fail_when = lambda to, subject: attempts.append(to) or len(attempts) == 1

        metrics = await service.run(config, today=date(2024, 3, 10))

        assert metrics.delivery_failures == 1
        assert metrics.reminders_sent == 1

    @pytest.mark.asyncio
    async def test_named_sheet_is_used(self, fake_source, transport, tracker, config):
        fake_source.spreadsheets[TRACKER_ID]["Court"] = [list(HEADERS)]
        fake_source.spreadsheets[TRACKER_ID]["Court"].append(hearing("Lee, Jo", "03/10/2024"))
        tracker.append(hearing("Smith, Ava", "03/10/2024"))
        service = SummaryReminderService(
            fake_source, NotificationDispatcher(transport), sheet_name="Court"
        )

        await service.run(config, today=date(2024, 3, 10))

        [message] = transport.sent
        assert "The Lee summary" in message["html"]

    @pytest.mark.asyncio
    async def test_missing_sheet_raises(self, fake_source, transport, tracker, config):
        service = SummaryReminderService(
            fake_source, NotificationDispatcher(transport), sheet_name="Nope"
        )

        with pytest.raises(TrackerUnavailable):
            await service.run(config, today=date(2024, 3, 10))

    @pytest.mark.asyncio
    async def test_unreadable_sheet_raises(self, fake_source, service, tracker, config):
        fake_source.failing_sheets.add("Hearings")

        with pytest.raises(TrackerUnavailable):
            await service.run(config, today=date(2024, 3, 10))
