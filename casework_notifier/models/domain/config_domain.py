"""
Configuration Domain Models
The immutable configuration context handed to every component for one run,
and the completed-period set persisted inside it.
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Keys of the Variables tab
MAIN_WORKER_NAME = "MAIN_WORKER_NAME"
MAIN_WORKER_EMAIL = "MAIN_WORKER_EMAIL"
MAIN_SUPERVISOR_NAME = "MAIN_SUPERVISOR_NAME"
MAIN_SUPERVISOR_EMAIL = "MAIN_SUPERVISOR_EMAIL"
SSM_NAME = "SSM_NAME"
SSM_EMAIL = "SSM_EMAIL"
CASE_TRACKER_URL = "caseTrackerUrl"
GLOBAL_TIMEZONE = "GLOBAL_TIMEZONE"
CONTACT_COMPLETE_MONTHS = "CONTACT_COMPLETE_MONTHS"
WORKER_OFFICE_EXTENSION = "WORKER_OFFICE_EXTENSION"
WORKER_CELL_NUMBER = "WORKER_CELL_NUMBER"

# Backup row holding the serialized contact-sheet discovery result
CONTACT_SHEETS_KEY = "contactSheets"

# Stored when no month is complete yet; the key must never be empty
NO_COMPLETED_MONTHS = "None"

REQUIRED_KEYS: frozenset[str] = frozenset(
    {
        MAIN_WORKER_NAME,
        MAIN_WORKER_EMAIL,
        MAIN_SUPERVISOR_NAME,
        MAIN_SUPERVISOR_EMAIL,
        SSM_NAME,
        SSM_EMAIL,
        CASE_TRACKER_URL,
        GLOBAL_TIMEZONE,
        CONTACT_COMPLETE_MONTHS,
    }
)

_SPREADSHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")


class ConfigUnavailable(Exception):
    """Required settings could not be resolved through any tier."""

    def __init__(self, missing_keys: Iterable[str]):
        self.missing_keys = sorted(missing_keys)
        super().__init__(
            f"Critical missing variables: {', '.join(self.missing_keys)}. Check Variables sheet."
        )


def missing_keys(values: Mapping[str, str], required_keys: Iterable[str]) -> set[str]:
    return {key for key in required_keys if not values.get(key)}


def normalize_values(raw: Mapping[str, object]) -> dict[str, str]:
    """Trim keys and values, dropping blanks on either side."""
    values: dict[str, str] = {}
    for key, value in raw.items():
        key_text = str(key).strip() if key is not None else ""
        value_text = str(value).strip() if value is not None else ""
        if key_text and value_text:
            values[key_text] = value_text
    return values


def spreadsheet_id_from_url(url: str) -> str:
    """Extract the spreadsheet id from a Sheets URL; bare ids pass through."""
    match = _SPREADSHEET_ID_RE.search(url)
    if match:
        return match.group(1)
    return url.strip()


class PeriodCompletionSet:
    """
    Ordered set of period labels with case-insensitive, idempotent membership.
    Persisted as a comma-joined string.
    """

    def __init__(self, labels: Iterable[str] = ()):
        self._labels: list[str] = []
        for label in labels:
            self.add(label)

    @classmethod
    def parse(cls, text: str | None) -> "PeriodCompletionSet":
        return cls(part.strip() for part in (text or "").split(","))

    def add(self, label: str) -> bool:
        """Add a label. Returns False when it was already present."""
        label = (label or "").strip()
        if not label or label in self:
            return False
        self._labels.append(label)
        return True

    def union(self, other: Iterable[str]) -> "PeriodCompletionSet":
        merged = PeriodCompletionSet(self._labels)
        for label in other:
            merged.add(label)
        return merged

    def serialize(self) -> str:
        return ", ".join(self._labels)

    def __contains__(self, label: object) -> bool:
        if not isinstance(label, str):
            return False
        wanted = label.strip().lower()
        return any(existing.lower() == wanted for existing in self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._labels))

    def __len__(self) -> int:
        return len(self._labels)

    def __repr__(self) -> str:
        return f"PeriodCompletionSet({self._labels!r})"


@dataclass(frozen=True)
class ConfigContext:
    """
    Read-only view of the resolved configuration for one run.
    Built by the resolver; components never mutate it.
    """

    values: Mapping[str, str] = field(default_factory=dict)
    source: str = "unknown"

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __contains__(self, key: object) -> bool:
        return key in self.values

    @property
    def main_worker_name(self) -> str:
        return self.values.get(MAIN_WORKER_NAME, "")

    @property
    def main_worker_email(self) -> str:
        return self.values.get(MAIN_WORKER_EMAIL, "")

    @property
    def main_supervisor_name(self) -> str:
        return self.values.get(MAIN_SUPERVISOR_NAME, "")

    @property
    def main_supervisor_email(self) -> str:
        return self.values.get(MAIN_SUPERVISOR_EMAIL, "")

    @property
    def manager_name(self) -> str:
        return self.values.get(SSM_NAME, "")

    @property
    def manager_email(self) -> str:
        return self.values.get(SSM_EMAIL, "")

    @property
    def tracker_spreadsheet_id(self) -> str:
        return spreadsheet_id_from_url(self.values.get(CASE_TRACKER_URL, ""))

    @property
    def timezone(self) -> ZoneInfo:
        name = self.values.get(GLOBAL_TIMEZONE) or "UTC"
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigUnavailable([GLOBAL_TIMEZONE]) from e

    @property
    def completed_periods(self) -> PeriodCompletionSet:
        labels = PeriodCompletionSet.parse(self.values.get(CONTACT_COMPLETE_MONTHS))
        return PeriodCompletionSet(
            label for label in labels if label.lower() != NO_COMPLETED_MONTHS.lower()
        )
