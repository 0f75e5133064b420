"""
Contact Sheet Discovery.

Finds the case-tracker tabs whose header row has a "Seen By" column. The
result is resolved through cache -> durable -> the contactSheets backup row of
the Variables tab -> a fresh scan; a fresh scan writes all three.
"""

import json

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.models.domain.casework_domain import ContactSheetInfo, cell_text
from casework_notifier.models.domain.config_domain import CONTACT_SHEETS_KEY
from casework_notifier.services.config_store.tiers import ConfigTier
from casework_notifier.services.config_store.variables_sheet import (
    AUTOFILL_NOTE,
    ConfigSourceError,
    VariablesSheetStore,
)
from casework_notifier.services.google_sheets_service import GoogleSheetsError
from casework_notifier.services.interfaces import TabularSource

logger = get_logger(__name__)

SEEN_BY_HEADER = "seen by"


class ContactSheetDiscoveryError(Exception):
    def __init__(self, message: str, operation: str = "discover"):
        super().__init__(message)
        self.operation = operation


def serialize_sheets(sheets: list[ContactSheetInfo]) -> str:
    return json.dumps([sheet.to_dict() for sheet in sheets])


def deserialize_sheets(payload: str | None) -> list[ContactSheetInfo] | None:
    """None for empty or unreadable payloads so the caller falls through."""
    if not payload:
        return None
    try:
        data = json.loads(payload)
        return [ContactSheetInfo.from_dict(item) for item in data]
    except (ValueError, TypeError, KeyError) as e:
        logger.warning("Discarding unreadable contact sheet payload", error=str(e))
        return None


def find_seen_by_column(header_row: list) -> int | None:
    """1-based index of the 'Seen By' header, matched trimmed and case-insensitively."""
    for index, header in enumerate(header_row, start=1):
        if cell_text(header).lower() == SEEN_BY_HEADER:
            return index
    return None


class ContactSheetService:
    def __init__(
        self,
        source: TabularSource,
        variables: VariablesSheetStore,
        cache: ConfigTier,
        durable: ConfigTier,
    ):
        self._source = source
        self._variables = variables
        self._cache = cache
        self._durable = durable

    async def get_contact_sheets(
        self, tracker_id: str, force_refresh: bool = False
    ) -> list[ContactSheetInfo]:
        """
        Resolve contact sheets for the case tracker.

        Raises:
            ContactSheetDiscoveryError: a fresh scan could not read the tracker
        """
        if not force_refresh:
            cached = deserialize_sheets(await self._cache.get(CONTACT_SHEETS_KEY))
            if cached is not None:
                logger.debug("Contact sheets loaded from cache", count=len(cached))
                return cached

            durable = deserialize_sheets(await self._durable.get(CONTACT_SHEETS_KEY))
            if durable is not None:
                await self._cache.put(CONTACT_SHEETS_KEY, serialize_sheets(durable))
                logger.info("Contact sheets loaded from durable store", count=len(durable))
                return durable

            backup = await self._load_backup_row()
            if backup is not None:
                await self._cache.put(CONTACT_SHEETS_KEY, serialize_sheets(backup))
                logger.info("Contact sheets loaded from backup row", count=len(backup))
                return backup

        sheets = await self.scan(tracker_id)
        await self._write_through(sheets)
        return sheets

    async def scan(self, tracker_id: str) -> list[ContactSheetInfo]:
        try:
            sheet_names = await self._source.list_sheet_names(tracker_id)
            sheets = []
            for name in sheet_names:
                rows = await self._source.read_rows(tracker_id, name, max_rows=1)
                if not rows:
                    continue
                column = find_seen_by_column(rows[0])
                if column is not None:
                    sheets.append(ContactSheetInfo(name=name, seen_by_col=column))
        except GoogleSheetsError as e:
            raise ContactSheetDiscoveryError(f"Failed to scan case tracker: {e}") from e

        logger.info(
            "Freshly discovered contact sheets",
            count=len(sheets),
            sheets=[sheet.name for sheet in sheets],
        )
        return sheets

    async def _load_backup_row(self) -> list[ContactSheetInfo] | None:
        try:
            payload = await self._variables.get_raw(CONTACT_SHEETS_KEY)
        except ConfigSourceError as e:
            logger.error("Error retrieving contactSheets backup", error=str(e))
            return None
        return deserialize_sheets(payload)

    async def _write_through(self, sheets: list[ContactSheetInfo]) -> None:
        payload = serialize_sheets(sheets)
        if not await self._cache.put(CONTACT_SHEETS_KEY, payload):
            logger.warning("Failed to cache contact sheets")
        if not await self._durable.put(CONTACT_SHEETS_KEY, payload):
            logger.warning("Failed to persist contact sheets")
        try:
            await self._variables.upsert(CONTACT_SHEETS_KEY, payload, note=AUTOFILL_NOTE)
        except ConfigSourceError as e:
            logger.error("Error updating contactSheets backup", error=str(e))
