"""
Escalation classification.

Pure functions mapping a record's dates and "today" onto an escalation tier
and the counters quoted in reminder emails. Nothing here touches I/O.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

DEFAULT_REPRIMAND_WINDOW_DAYS = 7
DEFAULT_SEVERE_OVERDUE_DAYS = 7


class ContactTier(StrEnum):
    STANDARD = "standard"
    REPRIMANDING = "reprimanding"
    POST_PERIOD = "post_period"


class SummaryTier(StrEnum):
    NONE = "none"
    PRE_DUE = "pre_due"
    DUE_TODAY = "due_today"
    MINOR_OVERDUE = "minor_overdue"
    SEVERE_OVERDUE = "severe_overdue"


def month_number_from_name(name: str) -> int | None:
    """Case-insensitive month name -> 1..12, None when unrecognized."""
    wanted = (name or "").strip().lower()
    for index, month in enumerate(MONTH_NAMES, start=1):
        if month.lower() == wanted:
            return index
    return None


def month_name_from_number(number: int) -> str:
    if not 1 <= number <= 12:
        raise ValueError(f"Month number out of range: {number}")
    return MONTH_NAMES[number - 1]


def is_prior_period(day: date, today: date) -> bool:
    """True when day falls in a calendar month strictly before today's."""
    return (day.year, day.month) < (today.year, today.month)


def days_remaining_in_period(today: date) -> int:
    """Days from today to the last day of its month (0 on the last day)."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return last_day - today.day


def days_since(day: date, today: date) -> int:
    return (today - day).days


def days_late(due_date: date, today: date) -> int:
    """Whole days past the due date; -1 the day before, 0 on the day."""
    return (today - due_date).days


def days_until_hearing(court_date: date | None, today: date) -> int:
    if court_date is None:
        return 0
    return (court_date - today).days


def is_catch_up_day(today: date, catch_up_weekday: int) -> bool:
    return today.weekday() == catch_up_weekday


def classify_contact(
    date_seen: date,
    today: date,
    reprimand_window_days: int = DEFAULT_REPRIMAND_WINDOW_DAYS,
) -> ContactTier:
    if is_prior_period(date_seen, today):
        return ContactTier.POST_PERIOD
    if days_remaining_in_period(today) <= reprimand_window_days:
        return ContactTier.REPRIMANDING
    return ContactTier.STANDARD


def classify_summary(
    late_days: int, severe_after_days: int = DEFAULT_SEVERE_OVERDUE_DAYS
) -> SummaryTier:
    """
    Ordered, first match wins. Total over integer offsets: NONE only occurs
    before the day preceding the due date.
    """
    if late_days == -1:
        return SummaryTier.PRE_DUE
    if late_days == 0:
        return SummaryTier.DUE_TODAY
    if 0 < late_days < severe_after_days:
        return SummaryTier.MINOR_OVERDUE
    if late_days >= severe_after_days:
        return SummaryTier.SEVERE_OVERDUE
    return SummaryTier.NONE


@dataclass(frozen=True, slots=True)
class ContactAssessment:
    tier: ContactTier
    days_since_seen: int
    days_remaining: int
    prior_period: bool
    reprimand_window_days: int = DEFAULT_REPRIMAND_WINDOW_DAYS

    @property
    def within_reprimand_window(self) -> bool:
        return self.days_remaining <= self.reprimand_window_days


@dataclass(frozen=True, slots=True)
class SummaryAssessment:
    tier: SummaryTier
    days_late: int
    days_until_hearing: int
    follow_up_date: date

    @property
    def reminders_sent(self) -> int:
        """Worker reminders so far, one per day since the due date."""
        return max(0, self.days_late)

    @property
    def supervisor_reminders_sent(self) -> int:
        """The supervisor joins the day after the due date."""
        return max(0, self.days_late - 1)


def assess_contact(
    date_seen: date,
    today: date,
    reprimand_window_days: int = DEFAULT_REPRIMAND_WINDOW_DAYS,
) -> ContactAssessment:
    return ContactAssessment(
        tier=classify_contact(date_seen, today, reprimand_window_days),
        days_since_seen=days_since(date_seen, today),
        days_remaining=days_remaining_in_period(today),
        prior_period=is_prior_period(date_seen, today),
        reprimand_window_days=reprimand_window_days,
    )


def assess_summary(
    due_date: date,
    court_date: date | None,
    today: date,
    severe_after_days: int = DEFAULT_SEVERE_OVERDUE_DAYS,
) -> SummaryAssessment:
    late = days_late(due_date, today)
    return SummaryAssessment(
        tier=classify_summary(late, severe_after_days),
        days_late=late,
        days_until_hearing=days_until_hearing(court_date, today),
        follow_up_date=due_date + timedelta(days=severe_after_days - 1),
    )
