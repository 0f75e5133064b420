"""
Notification Dispatcher.
Normalizes recipient lists and hands messages to the mail transport.
"""

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.services.interfaces import MailTransport

logger = get_logger(__name__)


class DeliveryError(Exception):
    """A reminder could not be delivered. Callers count the row as not sent."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


def clean_addresses(addresses: list[str] | None, exclude: set[str] | None = None) -> list[str]:
    """Drop blank and duplicate addresses (case-insensitive), keeping order."""
    seen = {address.lower() for address in (exclude or set())}
    cleaned = []
    for address in addresses or []:
        address = (address or "").strip()
        if not address or address.lower() in seen:
            continue
        seen.add(address.lower())
        cleaned.append(address)
    return cleaned


class NotificationDispatcher:
    def __init__(self, transport: MailTransport):
        self._transport = transport

    async def send(
        self, to: list[str], bcc: list[str] | None, subject: str, html_body: str
    ) -> dict:
        """
        Deliver one reminder. Not retried here.

        Raises:
            DeliveryError: no usable recipient, or the transport failed
        """
        recipients = clean_addresses(to)
        if not recipients:
            raise DeliveryError("No recipient address after filtering blanks")

        # An address already in To does not need a blind copy
        blind = clean_addresses(bcc, exclude=set(recipients))

        try:
            result = await self._transport.send_mail(recipients, subject, html_body, blind or None)
        except Exception as e:
            logger.error(
                "Reminder delivery failed",
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeliveryError(f"Failed to send '{subject}': {e}") from e

        logger.debug(
            "Reminder dispatched", subject=subject, to_count=len(recipients), bcc_count=len(blind)
        )
        return result
