"""
Process-wide wiring of the reminder services.

Redis and Postgres back the cache and durable tiers when configured; without
them both tiers fall back to process memory so a single worker still runs.
"""

import asyncio
from dataclasses import dataclass, field

from casework_notifier.config import settings
from casework_notifier.db.pool import db_pool
from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.services.config_store import (
    ConfigTier,
    ConfigurationResolver,
    InMemoryTier,
    PostgresDurableTier,
    RedisCacheTier,
    VariablesSheetStore,
)
from casework_notifier.services.contact_reminder_service import ContactReminderService
from casework_notifier.services.contact_sheet_service import ContactSheetService
from casework_notifier.services.directory_service import DirectoryService
from casework_notifier.services.google_credentials_service import GoogleCredentialsService
from casework_notifier.services.google_gmail_service import GoogleGmailService
from casework_notifier.services.google_sheets_service import GoogleSheetsService
from casework_notifier.services.infrastructure.redis_client import fast_redis
from casework_notifier.services.interfaces import MailTransport, TabularSource
from casework_notifier.services.notification_service import NotificationDispatcher
from casework_notifier.services.summary_reminder_service import SummaryReminderService

logger = get_logger(__name__)


class RuntimeConfigError(Exception):
    """Process settings are insufficient to build the runtime."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


@dataclass
class AutomationRuntime:
    """Long-lived collaborators shared by every run of the process."""

    source: TabularSource
    mail: MailTransport
    automation_sheet_id: str
    cache: ConfigTier
    durable: ConfigTier
    started_services: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.variables = VariablesSheetStore(self.source, self.automation_sheet_id)
        self.resolver = ConfigurationResolver(self.variables, self.cache, self.durable)
        self.contact_sheets = ContactSheetService(
            self.source, self.variables, self.cache, self.durable
        )
        self.dispatcher = NotificationDispatcher(self.mail)

    def contact_service(self) -> ContactReminderService:
        """Fresh engine per run so rosters are re-read."""
        return ContactReminderService(
            self.source,
            self.dispatcher,
            DirectoryService(self.source, self.automation_sheet_id),
            self.resolver,
            self.contact_sheets,
        )

    def summary_service(self) -> SummaryReminderService:
        return SummaryReminderService(self.source, self.dispatcher)


_runtime: AutomationRuntime | None = None
_runtime_lock = asyncio.Lock()


async def _build_tiers(started: list[str]) -> tuple[ConfigTier, ConfigTier]:
    if settings.REDIS_URL:
        await fast_redis.initialize()
        started.append("redis")
        cache: ConfigTier = RedisCacheTier(fast_redis, settings.CONFIG_CACHE_TTL_SECONDS)
    else:
        logger.warning("REDIS_URL not set, using in-memory cache tier")
        cache = InMemoryTier("cache", ttl_s=settings.CONFIG_CACHE_TTL_SECONDS)

    if settings.DATABASE_URL:
        await db_pool.initialize()
        started.append("database_pool")
        durable: ConfigTier = PostgresDurableTier()
    else:
        logger.warning("DATABASE_URL not set, using in-memory durable tier")
        durable = InMemoryTier("durable")

    return cache, durable


async def build_runtime() -> AutomationRuntime:
    """
    Initialize infrastructure and Google clients from settings.

    Raises:
        RuntimeConfigError: Google credentials or the automation sheet id are missing
    """
    missing = []
    if not settings.has_google_credentials():
        missing.extend(["GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN"])
    if not settings.AUTOMATION_INFO_SHEET_ID:
        missing.append("AUTOMATION_INFO_SHEET_ID")
    if missing:
        raise RuntimeConfigError(f"Missing settings: {', '.join(missing)}", missing=missing)

    started: list[str] = []
    try:
        cache, durable = await _build_tiers(started)
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=started)
        await _close_services(started)
        raise

    credentials = GoogleCredentialsService()
    runtime = AutomationRuntime(
        source=GoogleSheetsService(credentials),
        mail=GoogleGmailService(credentials),
        automation_sheet_id=settings.AUTOMATION_INFO_SHEET_ID,
        cache=cache,
        durable=durable,
        started_services=started,
    )
    logger.info("Automation runtime ready", services=started)
    return runtime


async def get_runtime() -> AutomationRuntime:
    global _runtime
    async with _runtime_lock:
        if _runtime is None:
            _runtime = await build_runtime()
        return _runtime


def set_runtime(runtime: AutomationRuntime | None) -> None:
    """Install a prebuilt runtime (tests, embedding)."""
    global _runtime
    _runtime = runtime


async def _close_services(started: list[str]) -> None:
    # Reverse order of startup
    if "redis" in started:
        try:
            await fast_redis.close()
        except Exception as e:
            logger.error("Error closing Redis", error=str(e))

    if "database_pool" in started:
        try:
            await db_pool.close()
        except Exception as e:
            logger.error("Error closing database pool", error=str(e))


async def shutdown_runtime() -> None:
    global _runtime
    if _runtime is None:
        return
    await _close_services(_runtime.started_services)
    _runtime = None
    logger.info("Automation runtime closed")
