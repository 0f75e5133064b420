"""
Google Gmail API client used as the reminder mail transport.
Builds the MIME message (empty plain-text part, HTML part) and posts it to
users.messages.send for the authorized team mailbox.
"""

import base64
import json
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.services.google_credentials_service import GoogleCredentialsService

logger = get_logger(__name__)

# Google Gmail API configuration
GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GMAIL_USER_ID = "me"

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2


class GoogleGmailError(Exception):
    """Custom exception for Google Gmail API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


def build_mime_message(
    to: list[str], subject: str, html_body: str, bcc: list[str] | None = None
) -> MIMEMultipart:
    """Multipart/alternative message with an empty text part and the HTML body."""
    msg = MIMEMultipart("alternative")
    msg["To"] = ", ".join(to)
    msg["Subject"] = subject
    if bcc:
        # Gmail strips Bcc from delivered copies but routes to every listed address
        msg["Bcc"] = ", ".join(bcc)

    msg.attach(MIMEText("", "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


class GoogleGmailService:
    """MailTransport that sends through the Gmail REST API."""

    def __init__(self, credentials: GoogleCredentialsService):
        self._credentials = credentials
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()

        # Sending is not idempotent: only retry when Gmail refused the request
        retry_strategy = Retry(
            total=MAX_RETRIES,
            backoff_factor=BACKOFF_FACTOR,
            status_forcelist=[429, 503],
            allowed_methods=["POST"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)

        return session

    def _handle_api_response(self, response: requests.Response, operation: str) -> dict:
        if response.ok:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Gmail API {operation} response", error=str(e))
                raise GoogleGmailError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Gmail API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleGmailError(
                f"Gmail API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {})
        error_code = str(error_info.get("code", "unknown"))
        error_message = error_info.get("message", "Unknown Gmail API error")

        logger.error(
            f"Gmail API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleGmailError(
            self._map_gmail_error(error_code, error_message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_gmail_error(self, error_code: str, error_message: str) -> str:
        error_mappings = {
            "400": "Invalid Gmail request format.",
            "401": "Gmail authorization expired. Refresh token must be renewed.",
            "403": "Gmail access denied. Please check permissions.",
            "429": "Too many Gmail requests. Please try again later.",
            "500": "Gmail service temporarily unavailable.",
        }

        return error_mappings.get(error_code, f"Gmail error: {error_message}")

    async def send_mail(
        self, to: list[str], subject: str, html_body: str, bcc: list[str] | None = None
    ) -> dict:
        """
        Send an HTML email.

        Returns:
            dict: Sent message information (id, threadId)

        Raises:
            GoogleGmailError: If sending fails
        """
        try:
            msg = build_mime_message(to, subject, html_body, bcc)
            raw_message = base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")

            access_token = await self._credentials.get_access_token()
            headers = {
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            url = f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/messages/send"

            logger.info(
                "Sending Gmail message",
                to_count=len(to),
                bcc_count=len(bcc or []),
                subject=subject,
            )

            response = self._session.post(
                url, headers=headers, data=json.dumps({"raw": raw_message}), timeout=REQUEST_TIMEOUT
            )
            data = self._handle_api_response(response, "send_message")

            logger.info("Message sent successfully", message_id=data.get("id"))
            return data

        except GoogleGmailError:
            raise
        except Exception as e:
            logger.error("Unexpected error sending message", error=str(e))
            raise GoogleGmailError(f"Failed to send message: {e}") from e
