from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Cache tier (Redis). Unset means the cache tier is in-memory only.
    REDIS_URL: str | None = None

    # Durable tier (Postgres). Unset means the durable tier is in-memory only.
    DATABASE_URL: str | None = None

    # Google OAuth settings (installed-app refresh token for the team mailbox)
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REFRESH_TOKEN: str | None = None

    # Spreadsheet holding the Variables tab and the worker rosters
    AUTOMATION_INFO_SHEET_ID: str | None = None

    # Shared secret for the admin routes
    ADMIN_API_TOKEN: str | None = None

    # =================================================================
    # REMINDER SCHEDULING
    # =================================================================
    CONFIG_CACHE_TTL_SECONDS: int = 18000  # 5 hours
    CONFIG_REFRESH_INTERVAL_HOURS: float = 5.0
    REMINDER_INTERVAL_HOURS: float = 24.0
    CATCH_UP_WEEKDAY: int = 0  # datetime.weekday(): Monday
    REPRIMAND_WINDOW_DAYS: int = 7
    SEVERE_OVERDUE_DAYS: int = 7
    SUMMARY_SHEET_NAME: str | None = None  # first tab of the tracker when unset

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 4
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        The worker holds one connection per run, so development stays minimal.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 2, "timeout": 15.0})

        return config

    def has_google_credentials(self) -> bool:
        return bool(
            self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET and self.GOOGLE_REFRESH_TOKEN
        )


settings = Settings()
