"""
HTML bodies for reminder emails.

Every interpolated value passes through html.escape; links are escaped for
attribute context as well. Names come from the ConfigContext of the run.
"""

from datetime import date
from html import escape

from casework_notifier.models.domain.config_domain import (
    WORKER_CELL_NUMBER,
    WORKER_OFFICE_EXTENSION,
    ConfigContext,
)

DATE_FORMAT = "%m/%d/%Y"


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def _e(value) -> str:
    return escape(str(value if value is not None else ""), quote=True)


def _link_block(summary_link: str) -> str:
    if not summary_link:
        return "<p>(No summary link was recorded for this case.)</p>"
    link = _e(summary_link)
    return f'<p><a href="{link}">{link}</a></p>'


def signature_html(config: ConfigContext) -> str:
    """Signature block; phone lines appear only when configured."""
    lines = [f"<p><strong>{_e(config.main_worker_name)}</strong><br/>"]
    lines.append("Child Protective Service Worker</p>")

    phones = []
    office_ext = config.get(WORKER_OFFICE_EXTENSION)
    cell_number = config.get(WORKER_CELL_NUMBER)
    if office_ext:
        phones.append(f"P: ext. {_e(office_ext)} (Office)")
    if cell_number:
        phones.append(f"P: {_e(cell_number)} (Cell)")
    if phones:
        lines.append("<p>" + "<br/>".join(phones) + "</p>")

    return "<br/><br/>\n" + "\n".join(lines)


# Contact reminders


def standard_contact_html(
    config: ConfigContext,
    worker_name: str,
    supervisor_name: str,
    child_name: str,
    case_id: str,
    date_seen: date,
    days_since_seen: int,
    days_remaining: int,
) -> str:
    main_worker = _e(config.main_worker_name)
    return f"""
    <p>Hello {_e(worker_name)},</p>

    <p>This is a reminder that you last saw <strong>{_e(child_name)}</strong>
    (Case ID: {_e(case_id)})
    {days_since_seen} days ago on {format_date(date_seen)}.
    There are only {days_remaining} days remaining in the month, and the contact should be
    entered as soon as possible to keep reporting accurate and timely.</p>

    <p>If the contact is not entered by the last week of the month, {_e(supervisor_name)},
    your supervisor, and {_e(config.manager_name)} will be added onto these emails.</p>

    <p>This is an automated message and will be sent daily until the contact is entered and
    {main_worker} is notified. Reply to this message to let {main_worker} know once the
    contact has been entered.</p>

    <p>Thank you for your prompt attention to this matter.</p>
    {signature_html(config)}
    """


def reprimanding_contact_html(
    config: ConfigContext,
    worker_name: str,
    supervisor_name: str,
    child_name: str,
    case_id: str,
    date_seen: date,
    days_since_seen: int,
    days_remaining: int,
) -> str:
    main_worker = _e(config.main_worker_name)
    return f"""
    <p>Hello {_e(worker_name)},</p>

    <p>This is a reminder that you last saw <strong>{_e(child_name)}</strong>
    (Case ID: {_e(case_id)})
    {days_since_seen} days ago on {format_date(date_seen)}.
    The month is almost over, and the contact must be entered immediately to maintain
    compliance.</p>

    <p>There are only {days_remaining} days remaining this month. Since it is the final week of
    the month, your supervisor {_e(supervisor_name)} and {_e(config.manager_name)} have been
    added to this email.</p>

    <p>This is an automated message and will be sent daily until the contact is entered and
    {main_worker} is notified. Reply to this message to let {main_worker} know once the
    contact has been entered.</p>

    <p>Thank you for your immediate attention to this matter.</p>
    {signature_html(config)}
    """


def post_period_contact_html(
    config: ConfigContext,
    worker_name: str,
    supervisor_name: str,
    child_name: str,
    case_id: str,
    date_seen: date,
) -> str:
    main_worker = _e(config.main_worker_name)
    return f"""
    <p>Hello {_e(worker_name)},</p>

    <p>This is an overdue reminder that you last saw <strong>{_e(child_name)}</strong>
    (Case ID: {_e(case_id)}) on {format_date(date_seen)}.
    The contact for this child is now past due for the previous month and must be entered
    immediately.</p>

    <p>Your supervisor {_e(supervisor_name)} has been notified of this delay and may follow up
    with you directly.</p>

    <p>This is an automated message and will continue to be sent weekly until the contact is
    entered and {main_worker} is notified. Reply to this message to let {main_worker} know
    once the contact has been entered.</p>

    <p>Thank you for your urgent attention to this matter.</p>
    {signature_html(config)}
    """


# Summary reminders


def standard_summary_html(
    config: ConfigContext, last_name: str, summary_link: str, due_today: bool
) -> str:
    when = "due today" if due_today else "due tomorrow"
    return f"""
    <p>Hey {_e(config.main_worker_name)},</p>
    <p>The {_e(last_name)} summary is {when}. A link to the summary is included below:</p>
    {_link_block(summary_link)}
    {signature_html(config)}
    """


def supervisor_included_summary_html(
    config: ConfigContext,
    last_name: str,
    days_late: int,
    follow_up_date: date,
    summary_link: str,
) -> str:
    supervisor = _e(config.main_supervisor_name)
    return f"""
    <p>Hey {_e(config.main_worker_name)},</p>
    <p>The {_e(last_name)} summary is {days_late} days late. If the summary isn't submitted by
    {format_date(follow_up_date)}, {supervisor} will be required to attend the hearing with you.</p>
    <p>A link to the summary is included below:</p>
    {_link_block(summary_link)}
    {signature_html(config)}
    """


def reprimanding_summary_html(
    config: ConfigContext,
    last_name: str,
    reminders_sent: int,
    days_until_hearing: int,
    supervisor_reminders_sent: int,
    due_date: date,
    summary_link: str,
) -> str:
    supervisor = _e(config.main_supervisor_name)
    manager = _e(config.manager_name)
    return f"""
    <p>{_e(config.main_worker_name)},</p>
    <p>You have now received {reminders_sent} reminders about the {_e(last_name)} summary
    being due on {format_date(due_date)}.</p>
    <p>You only have {days_until_hearing} days until this hearing and {supervisor} is required
    to attend with you.</p>
    <p>{supervisor} has been receiving these reminders for the past {supervisor_reminders_sent}
    days and now {manager} is included as well.</p>
    <p>Please submit this as soon as possible.</p>
    <p>A link to the summary is included below:</p>
    {_link_block(summary_link)}
    {signature_html(config)}
    """
