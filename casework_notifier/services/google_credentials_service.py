"""
Google OAuth access tokens for the Sheets and Gmail clients.
Exchanges the configured refresh token for short-lived access tokens and
keeps the current one in memory until shortly before it expires.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

REQUIRED_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/gmail.send",
]

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2  # 2, 4, 8 seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
EXPIRY_BUFFER_SECONDS = 120


class GoogleCredentialsError(Exception):
    """Custom exception for Google token errors."""

    def __init__(
        self, message: str, error_code: str | None = None, response_data: dict | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}


class GoogleCredentialsService:
    """Refresh-token grant with retry/backoff and an in-memory token cache."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
    ):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.refresh_token = refresh_token or settings.GOOGLE_REFRESH_TOKEN
        self._access_token: str | None = None
        self._expires_at: datetime | None = None
        self._lock = asyncio.Lock()
        self._validate_config()

    def _validate_config(self) -> None:
        if not self.client_id:
            raise GoogleCredentialsError("GOOGLE_CLIENT_ID not configured")
        if not self.client_secret:
            raise GoogleCredentialsError("GOOGLE_CLIENT_SECRET not configured")
        if not self.refresh_token:
            raise GoogleCredentialsError("GOOGLE_REFRESH_TOKEN not configured")

    def _token_is_fresh(self) -> bool:
        if not self._access_token or not self._expires_at:
            return False
        return datetime.now(UTC) < self._expires_at - timedelta(seconds=EXPIRY_BUFFER_SECONDS)

    async def get_access_token(self) -> str:
        """Return a valid access token, refreshing it when close to expiry."""
        async with self._lock:
            if self._token_is_fresh():
                return self._access_token

            data = await self._refresh()
            self._access_token = data["access_token"]
            expires_in = int(data.get("expires_in") or 3600)
            self._expires_at = datetime.now(UTC) + timedelta(seconds=expires_in)

            logger.info("Google access token refreshed", expires_in=expires_in)
            return self._access_token

    async def _refresh(self) -> dict:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, payload)
        except httpx.RequestError as e:
            logger.error(
                "Network error during token refresh", error=str(e), error_type=type(e).__name__
            )
            raise GoogleCredentialsError(f"Network error during token refresh: {e}") from e

        return self._handle_token_response(response)

    async def _post_with_retry(self, url: str, data: dict) -> httpx.Response:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)
                except httpx.RequestError as exc:
                    if attempt == MAX_RETRIES:
                        raise
                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Google token request error, retrying",
                        attempt=attempt,
                        wait_time=wait_time,
                        error=str(exc),
                    )
                    await asyncio.sleep(wait_time)
                    continue

                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Google token endpoint transient status",
                        status_code=response.status_code,
                        attempt=attempt,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue

                return response

        raise GoogleCredentialsError("Token refresh failed: retries exhausted")

    def _handle_token_response(self, response: httpx.Response) -> dict:
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                logger.error(
                    "Token refresh failed with non-JSON response",
                    status_code=response.status_code,
                    response_text=response.text[:200],
                )
                raise GoogleCredentialsError(
                    f"Google OAuth service error (HTTP {response.status_code})"
                ) from None

            error_code = error_data.get("error", "unknown_error")
            logger.error(
                "Token refresh failed",
                status_code=response.status_code,
                error_code=error_code,
                error_description=error_data.get("error_description"),
            )
            raise GoogleCredentialsError(
                f"Token refresh failed ({error_code})",
                error_code=error_code,
                response_data=error_data,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GoogleCredentialsError(f"Failed to parse Google response: {e}") from e

        if not data.get("access_token"):
            raise GoogleCredentialsError("Invalid token response from Google")
        return data
