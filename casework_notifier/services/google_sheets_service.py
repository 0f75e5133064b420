"""
Google Sheets API client for the case tracker and the Automation Info sheet.
Handles HTTP requests, retry logic and error mapping; callers receive plain
row lists and parse them into domain records themselves.
"""

import json
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.services.google_credentials_service import (
    GoogleCredentialsError,
    GoogleCredentialsService,
)

logger = get_logger(__name__)

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2


class GoogleSheetsError(Exception):
    """Custom exception for Google Sheets API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


def column_letter(column: int) -> str:
    """Convert a 1-based column index to A1 letters (1 -> A, 27 -> AA)."""
    if column < 1:
        raise ValueError(f"Column index must be >= 1, got {column}")
    letters = ""
    while column:
        column, remainder = divmod(column - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _input_option(user_entered: bool) -> str:
    return "USER_ENTERED" if user_entered else "RAW"


def quote_sheet_name(sheet_name: str) -> str:
    """Quote a tab name for A1 notation ('It''s' escapes the apostrophe)."""
    return "'" + sheet_name.replace("'", "''") + "'"


class GoogleSheetsService:
    """
    TabularSource backed by the Sheets v4 REST API.

    Dates are read as serial numbers so they parse independently of the
    sheet's display locale; writes use USER_ENTERED so dates stay dates.
    """

    def __init__(self, credentials: GoogleCredentialsService):
        self._credentials = credentials
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()

        retry_strategy = Retry(
            total=MAX_RETRIES,
            backoff_factor=BACKOFF_FACTOR,
            status_forcelist=[429, 500, 502, 503, 504],
            # appends are not idempotent, so POST is never retried
            allowed_methods=["GET", "PUT"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)

        return session

    async def _get_auth_headers(self) -> dict:
        try:
            access_token = await self._credentials.get_access_token()
        except GoogleCredentialsError as e:
            logger.error("Failed to obtain Sheets access token", error=str(e))
            raise GoogleSheetsError(f"Authentication failed: {e}", status_code=401) from e
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: requests.Response, operation: str) -> dict:
        if response.ok:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Sheets API {operation} response", error=str(e))
                raise GoogleSheetsError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Sheets API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleSheetsError(
                f"Sheets API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_message = error_data.get("error", {}).get("message", "Unknown Sheets API error")
        logger.error(
            f"Sheets API {operation} failed",
            status_code=response.status_code,
            error_message=error_message,
        )
        raise GoogleSheetsError(
            f"Sheets error: {error_message}",
            status_code=response.status_code,
            response_data=error_data,
        )

    async def list_sheet_names(self, spreadsheet_id: str) -> list[str]:
        url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}"
        headers = await self._get_auth_headers()
        try:
            response = self._session.get(
                url,
                headers=headers,
                params={"fields": "sheets.properties.title"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise GoogleSheetsError(f"Failed to list sheets: {e}") from e

        data = self._handle_api_response(response, "list_sheets")
        return [sheet["properties"]["title"] for sheet in data.get("sheets", [])]

    async def read_rows(
        self, spreadsheet_id: str, sheet_name: str, max_rows: int | None = None
    ) -> list[list[Any]] | None:
        a1_range = quote_sheet_name(sheet_name)
        if max_rows:
            a1_range += f"!1:{max_rows}"

        url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}/values/{quote(a1_range, safe='')}"
        headers = await self._get_auth_headers()
        params = {
            "valueRenderOption": "UNFORMATTED_VALUE",
            "dateTimeRenderOption": "SERIAL_NUMBER",
            "majorDimension": "ROWS",
        }
        try:
            response = self._session.get(
                url, headers=headers, params=params, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise GoogleSheetsError(f"Failed to read {sheet_name}: {e}") from e

        # An unknown tab name surfaces as an unparseable range
        if response.status_code == 400 and "Unable to parse range" in (response.text or ""):
            logger.debug("Sheet not found", sheet=sheet_name)
            return None

        data = self._handle_api_response(response, "read_rows")
        rows = data.get("values", [])
        logger.debug("Sheet rows read", sheet=sheet_name, row_count=len(rows))
        return rows

    async def write_cell(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        row: int,
        column: int,
        value: Any,
        user_entered: bool = True,
    ) -> None:
        a1_range = f"{quote_sheet_name(sheet_name)}!{column_letter(column)}{row}"
        url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}/values/{quote(a1_range, safe='')}"
        headers = await self._get_auth_headers()
        try:
            response = self._session.put(
                url,
                headers=headers,
                params={"valueInputOption": _input_option(user_entered)},
                data=json.dumps({"range": a1_range, "values": [[value]]}),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise GoogleSheetsError(f"Failed to write {a1_range}: {e}") from e

        self._handle_api_response(response, "write_cell")
        logger.debug("Cell written", range=a1_range)

    async def append_row(
        self, spreadsheet_id: str, sheet_name: str, values: list[Any], user_entered: bool = True
    ) -> None:
        a1_range = quote_sheet_name(sheet_name)
        url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}/values/{quote(a1_range, safe='')}:append"
        headers = await self._get_auth_headers()
        try:
            response = self._session.post(
                url,
                headers=headers,
                params={
                    "valueInputOption": _input_option(user_entered),
                    "insertDataOption": "INSERT_ROWS",
                },
                data=json.dumps({"values": [values]}),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise GoogleSheetsError(f"Failed to append to {sheet_name}: {e}") from e

        self._handle_api_response(response, "append_row")
        logger.debug("Row appended", sheet=sheet_name, cell_count=len(values))
