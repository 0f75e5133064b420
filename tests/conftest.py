import pytest

from casework_notifier.models.domain.config_domain import ConfigContext
from casework_notifier.services.google_sheets_service import GoogleSheetsError

AUTOMATION_ID = "automation-sheet"
TRACKER_ID = "tracker-sheet"

BASE_VARIABLES = {
    "MAIN_WORKER_NAME": "Ellie Brewer",
    "MAIN_WORKER_EMAIL": "ellie@example.org",
    "MAIN_SUPERVISOR_NAME": "Sam Supervisor",
    "MAIN_SUPERVISOR_EMAIL": "sam@example.org",
    "SSM_NAME": "Morgan Manager",
    "SSM_EMAIL": "morgan@example.org",
    "caseTrackerUrl": f"https://docs.google.com/spreadsheets/d/{TRACKER_ID}/edit#gid=0",
    "GLOBAL_TIMEZONE": "America/New_York",
    "CONTACT_COMPLETE_MONTHS": "None",
}


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def ping(self) -> bool:
        return True


class FakeTabularSource:
    """In-memory spreadsheets: {spreadsheet_id: {sheet_name: rows}}."""

    def __init__(self, spreadsheets: dict[str, dict[str, list[list]]] | None = None):
        self.spreadsheets = spreadsheets or {}
        self.writes: list[tuple] = []
        self.appends: list[tuple] = []
        self.read_counts: dict[tuple[str, str], int] = {}
        self.failing_sheets: set[str] = set()

    def sheet(self, spreadsheet_id: str, sheet_name: str) -> list[list]:
        return self.spreadsheets[spreadsheet_id][sheet_name]

    async def list_sheet_names(self, spreadsheet_id: str) -> list[str]:
        return list(self.spreadsheets.get(spreadsheet_id, {}))

    async def read_rows(self, spreadsheet_id, sheet_name, max_rows=None):
        key = (spreadsheet_id, sheet_name)
        self.read_counts[key] = self.read_counts.get(key, 0) + 1
        if sheet_name in self.failing_sheets:
            raise GoogleSheetsError(f"Sheets API error reading {sheet_name}", status_code=500)

        rows = self.spreadsheets.get(spreadsheet_id, {}).get(sheet_name)
        if rows is None:
            return None
        rows = [list(row) for row in rows]
        return rows[:max_rows] if max_rows else rows

    async def write_cell(self, spreadsheet_id, sheet_name, row, column, value, user_entered=True):
        self.writes.append((spreadsheet_id, sheet_name, row, column, value))
        rows = self.spreadsheets[spreadsheet_id][sheet_name]
        while len(rows) < row:
            rows.append([])
        target = rows[row - 1]
        while len(target) < column:
            target.append(None)
        target[column - 1] = value

    async def append_row(self, spreadsheet_id, sheet_name, values, user_entered=True):
        self.appends.append((spreadsheet_id, sheet_name, list(values)))
        self.spreadsheets[spreadsheet_id][sheet_name].append(list(values))


class RecordingTransport:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail_when = None

    async def send_mail(self, to, subject, html_body, bcc=None) -> dict:
        if self.fail_when is not None and self.fail_when(to, subject):
            raise RuntimeError("SMTP relay rejected message")
        message = {"to": list(to), "bcc": list(bcc or []), "subject": subject, "html": html_body}
        self.sent.append(message)
        return {"id": f"msg-{len(self.sent)}"}


def variables_rows(values: dict[str, str]) -> list[list]:
    return [["Key", "Value", "Note"]] + [[key, value] for key, value in values.items()]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_config():
    def _make(**overrides) -> ConfigContext:
        values = {**BASE_VARIABLES, **overrides}
        return ConfigContext({k: v for k, v in values.items() if v is not None}, source="test")

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def fake_source():
    return FakeTabularSource()


@pytest.fixture
def variables_table():
    return variables_rows


@pytest.fixture
def base_variables():
    return dict(BASE_VARIABLES)
