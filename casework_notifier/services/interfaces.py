"""
Boundaries to the external collaborators: the tabular store holding the case
tracker, rosters and Variables tab, and the mail transport.

The Google Sheets and Gmail clients implement these; tests use in-memory fakes.
"""

from typing import Any, Protocol


class TabularSource(Protocol):
    async def list_sheet_names(self, spreadsheet_id: str) -> list[str]:
        """Tab names in display order."""
        ...

    async def read_rows(
        self, spreadsheet_id: str, sheet_name: str, max_rows: int | None = None
    ) -> list[list[Any]] | None:
        """All rows of a tab (header included), or None when the tab does not exist."""
        ...

    async def write_cell(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        row: int,
        column: int,
        value: Any,
        user_entered: bool = True,
    ) -> None:
        """
        Overwrite one cell; row and column are 1-based.
        user_entered=False stores the value verbatim instead of parsing it.
        """
        ...

    async def append_row(
        self, spreadsheet_id: str, sheet_name: str, values: list[Any], user_entered: bool = True
    ) -> None:
        """Append a row after the last non-empty row of a tab."""
        ...


class MailTransport(Protocol):
    async def send_mail(
        self, to: list[str], subject: str, html_body: str, bcc: list[str] | None = None
    ) -> dict:
        """Send an HTML email with an empty plain-text alternative."""
        ...
