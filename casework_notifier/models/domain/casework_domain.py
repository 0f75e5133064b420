"""
Casework Domain Models
Typed records for the rows of the case tracker and the worker rosters.
Raw sheet values are parsed here, at the boundary, so the reminder engines
only ever see validated records.
/models/domain/casework_domain.py
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

# Contact sheet columns (0-based)
CONTACT_CHILD_COL = 0
CONTACT_CASE_ID_COL = 1
CONTACT_DATE_SEEN_COL = 2
CONTACT_SEEN_BY_COL = 3
CONTACT_DATE_ENTERED_COL = 4
CONTACT_LAST_REMINDER_COL = 5
CONTACT_MISSED_COL = 6
CONTACT_REASON_COL = 7

# Summary (hearing tracker) columns (0-based)
SUMMARY_NAME_COL = 0
SUMMARY_COURT_DATE_COL = 4
SUMMARY_DUE_DATE_COL = 7
SUMMARY_SUBMITTED_COL = 9
SUMMARY_LINK_COL = 12

SHEET_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%Y-%m-%dT%H:%M:%S",
)

# Google Sheets serial dates count days from this epoch
SHEETS_EPOCH = date(1899, 12, 30)


class MalformedRow(Exception):
    """A row is missing a required field or holds an unparseable value."""

    def __init__(self, message: str, row: int | None = None, field: str | None = None):
        super().__init__(message)
        self.row = row
        self.field = field


class LookupMiss(Exception):
    """A worker name could not be resolved to a roster record."""

    def __init__(self, name: str):
        super().__init__(f"No roster entry for worker '{name}'")
        self.name = name


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text ("" for blanks)."""
    if is_blank(value):
        return ""
    return str(value).strip()


def cell_at(values: list[Any], index: int) -> Any:
    """Sheets trims trailing empty cells, so short rows are padded with None."""
    return values[index] if index < len(values) else None


def parse_sheet_date(value: Any) -> date | None:
    """
    Parse a sheet cell into a calendar date.

    Accepts date/datetime objects, Sheets serial numbers and the common
    US and ISO text formats. Returns None for blanks and unparseable text.
    """
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return SHEETS_EPOCH + timedelta(days=int(value))

    text = str(value).strip()
    for fmt in SHEET_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_checkbox(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return cell_text(value).upper() == "TRUE"


@dataclass(frozen=True, slots=True)
class WorkerRecord:
    display_name: str
    email: str
    supervisor_name: str
    supervisor_email: str
    region: str | None = None


@dataclass(frozen=True, slots=True)
class ContactSheetInfo:
    """A case-tracker tab with a 'Seen By' column (1-based column index)."""

    name: str
    seen_by_col: int

    def to_dict(self) -> dict:
        return {"name": self.name, "seenByCol": self.seen_by_col}

    @classmethod
    def from_dict(cls, data: dict) -> "ContactSheetInfo":
        return cls(name=str(data["name"]), seen_by_col=int(data["seenByCol"]))


@dataclass(frozen=True, slots=True)
class ContactRow:
    row_number: int  # 1-based sheet row
    child_name: str
    case_id: str
    date_seen: date
    assigned_worker_name: str
    date_contact_entered: date | str | None = None
    last_reminder_sent: date | None = None
    missed: bool = False
    missed_reason: str | None = None

    @property
    def contact_entered(self) -> bool:
        return self.date_contact_entered is not None

    @classmethod
    def from_values(cls, values: list[Any], row_number: int) -> "ContactRow":
        """
        Build a contact row from raw cells.

        Raises:
            MalformedRow: child name, seen date or worker missing, or the
                seen date cannot be parsed
        """
        child_name = cell_text(cell_at(values, CONTACT_CHILD_COL))
        raw_seen = cell_at(values, CONTACT_DATE_SEEN_COL)
        worker = cell_text(cell_at(values, CONTACT_SEEN_BY_COL))

        if not child_name:
            raise MalformedRow("Missing child name", row=row_number, field="child_name")
        if is_blank(raw_seen):
            raise MalformedRow("Missing date seen", row=row_number, field="date_seen")
        if not worker:
            raise MalformedRow("Missing seen-by worker", row=row_number, field="seen_by")

        date_seen = parse_sheet_date(raw_seen)
        if date_seen is None:
            raise MalformedRow(
                f"Unparseable date seen: {raw_seen!r}", row=row_number, field="date_seen"
            )

        raw_entered = cell_at(values, CONTACT_DATE_ENTERED_COL)
        entered: date | str | None = None
        if not is_blank(raw_entered):
            entered = parse_sheet_date(raw_entered) or cell_text(raw_entered)

        return cls(
            row_number=row_number,
            child_name=child_name,
            case_id=cell_text(cell_at(values, CONTACT_CASE_ID_COL)),
            date_seen=date_seen,
            assigned_worker_name=worker,
            date_contact_entered=entered,
            last_reminder_sent=parse_sheet_date(cell_at(values, CONTACT_LAST_REMINDER_COL)),
            missed=parse_checkbox(cell_at(values, CONTACT_MISSED_COL)),
            missed_reason=cell_text(cell_at(values, CONTACT_REASON_COL)) or None,
        )


@dataclass(frozen=True, slots=True)
class SummaryRow:
    row_number: int  # 1-based sheet row
    case_display_name: str
    summary_due_date: date
    submitted: bool
    summary_link: str
    next_court_date: date | None = None

    @property
    def last_name(self) -> str:
        """Case names are written "LastName, FirstName"."""
        if "," in self.case_display_name:
            return self.case_display_name.split(",")[0].strip()
        return self.case_display_name.strip()

    @classmethod
    def from_values(cls, values: list[Any], row_number: int) -> "SummaryRow":
        """
        Build a summary row from raw cells.

        Raises:
            MalformedRow: case name empty or due date missing/unparseable
        """
        name = cell_text(cell_at(values, SUMMARY_NAME_COL))
        if not name or not name.split(",")[0].strip():
            raise MalformedRow("Missing case name", row=row_number, field="case_name")

        raw_due = cell_at(values, SUMMARY_DUE_DATE_COL)
        due_date = parse_sheet_date(raw_due)
        if due_date is None:
            raise MalformedRow(
                f"Missing or unparseable due date: {raw_due!r}", row=row_number, field="due_date"
            )

        return cls(
            row_number=row_number,
            case_display_name=name,
            summary_due_date=due_date,
            submitted=cell_at(values, SUMMARY_SUBMITTED_COL) is True,
            summary_link=cell_text(cell_at(values, SUMMARY_LINK_COL)),
            next_court_date=parse_sheet_date(cell_at(values, SUMMARY_COURT_DATE_COL)),
        )
