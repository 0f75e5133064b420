"""
The Variables tab of the Automation Info spreadsheet: the source of truth for
configuration and for backup rows of structural metadata.

Rows are (key, value[, note]) below a header row. Upserts overwrite the first
row whose key matches and append otherwise, so a key never gets two rows.
"""

import asyncio

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.models.domain.casework_domain import cell_at, cell_text
from casework_notifier.models.domain.config_domain import CONTACT_SHEETS_KEY, normalize_values
from casework_notifier.services.google_sheets_service import GoogleSheetsError
from casework_notifier.services.interfaces import TabularSource

logger = get_logger(__name__)

VARIABLES_SHEET_NAME = "Variables"
AUTOFILL_NOTE = "This is autofilled, do not type in this box"

# Structural metadata kept beside the variables; never configuration values
BACKUP_ROW_KEYS = frozenset({CONTACT_SHEETS_KEY})


class ConfigSourceError(Exception):
    """The Variables tab could not be read or yielded no variables."""

    def __init__(self, message: str, operation: str = "read_all"):
        super().__init__(message)
        self.operation = operation


class VariablesSheetStore:
    def __init__(
        self,
        source: TabularSource,
        spreadsheet_id: str,
        sheet_name: str = VARIABLES_SHEET_NAME,
    ):
        self._source = source
        self._spreadsheet_id = spreadsheet_id
        self._sheet_name = sheet_name
        self._write_lock = asyncio.Lock()

    async def _read_rows(self) -> list[list]:
        try:
            rows = await self._source.read_rows(self._spreadsheet_id, self._sheet_name)
        except GoogleSheetsError as e:
            raise ConfigSourceError(f"Failed to open '{self._sheet_name}' sheet: {e}") from e

        if rows is None:
            raise ConfigSourceError(
                f"'{self._sheet_name}' sheet not found in Automation Info Sheet"
            )
        return rows

    async def read_all(self) -> dict[str, str]:
        """
        Load every key/value pair below the header, except backup rows.

        Raises:
            ConfigSourceError: tab missing, unreadable, or holding no variables
        """
        rows = await self._read_rows()

        raw: dict[str, str] = {}
        for index, row in enumerate(rows[1:], start=2):
            key = cell_text(cell_at(row, 0))
            value = cell_text(cell_at(row, 1))
            if not key or not value:
                logger.debug("Skipping blank key or value", row=index)
                continue
            if key in BACKUP_ROW_KEYS:
                continue
            raw[key] = value

        values = normalize_values(raw)
        if not values:
            raise ConfigSourceError(
                f"No variables loaded from '{self._sheet_name}' sheet. Check tab name & key names."
            )

        logger.info("Variables loaded from sheet", variable_count=len(values))
        return values

    async def get_raw(self, key: str) -> str | None:
        """Value of the first row for key (backup rows included), or None."""
        rows = await self._read_rows()
        for row in rows[1:]:
            if cell_text(cell_at(row, 0)) == key:
                return cell_text(cell_at(row, 1)) or None
        return None

    async def upsert(self, key: str, value: str, note: str | None = None) -> bool:
        """
        Overwrite the row for key, or append one if absent.

        Returns:
            True when an existing row was updated, False when a row was appended
        """
        async with self._write_lock:
            rows = await self._read_rows()

            for index, row in enumerate(rows[1:], start=2):
                if cell_text(cell_at(row, 0)) != key:
                    continue

                await self._write(index, 2, value)
                if note is not None:
                    await self._write(index, 3, note)
                logger.info("Variables row updated", key=key, row=index)
                return True

            new_row = [key, value] if note is None else [key, value, note]
            try:
                await self._source.append_row(
                    self._spreadsheet_id, self._sheet_name, new_row, user_entered=False
                )
            except GoogleSheetsError as e:
                raise ConfigSourceError(f"Failed to append {key}: {e}", operation="upsert") from e

            logger.info("Variables row appended", key=key)
            return False

    async def _write(self, row: int, column: int, value: str) -> None:
        try:
            await self._source.write_cell(
                self._spreadsheet_id, self._sheet_name, row, column, value, user_entered=False
            )
        except GoogleSheetsError as e:
            raise ConfigSourceError(
                f"Failed to write row {row} of '{self._sheet_name}': {e}", operation="upsert"
            ) from e
