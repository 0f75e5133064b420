"""
Directory Lookup: resolves a worker's display name to a WorkerRecord by
scanning the roster tabs of the Automation Info sheet in priority order.

The first table holding the name wins. The same name appearing in two rosters
with different emails is not reconciled; the higher-priority roster is used.
"""

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.models.domain.casework_domain import WorkerRecord, cell_at, cell_text
from casework_notifier.services.google_sheets_service import GoogleSheetsError
from casework_notifier.services.interfaces import TabularSource

logger = get_logger(__name__)

ROSTER_SHEETS = ("CPSEmployeeInfo", "Additional Workers Info")

NAME_HEADER = "workerName"
EMAIL_HEADER = "workerEmail"
SUPERVISOR_NAME_HEADER = "supervisorName"
SUPERVISOR_EMAIL_HEADER = "supervisorEmail"
REGION_HEADER = "workerCounty"


def _parse_roster(rows: list[list]) -> list[WorkerRecord]:
    if not rows:
        return []

    headers = [cell_text(header) for header in rows[0]]
    if NAME_HEADER not in headers:
        return []

    def column(header: str) -> int | None:
        return headers.index(header) if header in headers else None

    name_idx = column(NAME_HEADER)
    email_idx = column(EMAIL_HEADER)
    sup_name_idx = column(SUPERVISOR_NAME_HEADER)
    sup_email_idx = column(SUPERVISOR_EMAIL_HEADER)
    region_idx = column(REGION_HEADER)

    def text(row: list, index: int | None) -> str:
        return cell_text(cell_at(row, index)) if index is not None else ""

    records = []
    for row in rows[1:]:
        name = text(row, name_idx)
        if not name:
            continue
        records.append(
            WorkerRecord(
                display_name=name,
                email=text(row, email_idx),
                supervisor_name=text(row, sup_name_idx),
                supervisor_email=text(row, sup_email_idx),
                region=text(row, region_idx) or None,
            )
        )
    return records


class DirectoryService:
    """
    Roster lookup for one run. Each roster tab is read at most once per
    instance; build a new instance per run to pick up roster edits.
    """

    def __init__(
        self,
        source: TabularSource,
        spreadsheet_id: str,
        roster_sheets: tuple[str, ...] = ROSTER_SHEETS,
    ):
        self._source = source
        self._spreadsheet_id = spreadsheet_id
        self._roster_sheets = roster_sheets
        self._rosters: dict[str, list[WorkerRecord]] = {}

    async def _load_roster(self, sheet_name: str) -> list[WorkerRecord]:
        if sheet_name in self._rosters:
            return self._rosters[sheet_name]

        try:
            rows = await self._source.read_rows(self._spreadsheet_id, sheet_name)
        except GoogleSheetsError as e:
            logger.error("Failed to read roster", sheet=sheet_name, error=str(e))
            rows = None

        if rows is None:
            logger.debug("Roster sheet unavailable", sheet=sheet_name)
            records = []
        else:
            records = _parse_roster(rows)

        self._rosters[sheet_name] = records
        return records

    async def find_by_name(self, name: str) -> WorkerRecord | None:
        """Exact, trimmed, case-sensitive match; first roster in priority order wins."""
        wanted = (name or "").strip()
        if not wanted:
            return None

        for sheet_name in self._roster_sheets:
            for record in await self._load_roster(sheet_name):
                if record.display_name == wanted:
                    return record

        logger.warning("Worker not found in rosters", worker=wanted)
        return None
