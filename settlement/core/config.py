"""
Application configuration module.

Loads settings from environment variables (or a .env file) using
pydantic-settings.  Secrets (database password, gateway keys) only ever come
from the environment.

Admin-editable platform toggles (payouts enabled, withdrawals enabled, ...)
are NOT here: they live in the ``platform_settings`` table and reach the
workflows as an explicit :class:`~settlement.services.platform_config.PlatformConfig`
snapshot.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Fund Settlement API."""

    PROJECT_NAME: str = "Fund Settlement API"
    API_V1_STR: str = "/api/v1"

    # ── SQLite mode (local runs and tests) ──
    USE_SQLITE: bool = False
    SQLITE_PATH: str = ""  # empty → in-memory database

    # ── PostgreSQL connection parameters ──
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    @model_validator(mode="after")
    def _require_pg_credentials_unless_sqlite(self) -> "Settings":
        """Refuse to start in PostgreSQL mode with missing credentials."""
        if not self.USE_SQLITE:
            missing = [
                name
                for name in (
                    "POSTGRES_USER",
                    "POSTGRES_PASSWORD",
                    "POSTGRES_SERVER",
                    "POSTGRES_DB",
                )
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    "PostgreSQL mode requires these environment variables: "
                    f"{', '.join(missing)}. Set them in the environment or a .env "
                    "file, or run with USE_SQLITE=true."
                )
        return self

    # ── Connection pool tuning ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # ── Logging ──
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    # ── Circuit breakers ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0

    # ── Profit distribution ──
    # Upper bound on allocations settled at the same time during a manual run.
    DISTRIBUTION_CONCURRENCY: int = 4

    # ── Platform settings snapshot ──
    PLATFORM_CONFIG_TTL: float = 60.0

    # ── Notification outbox ──
    NOTIFICATION_WEBHOOK_URL: str = ""
    NOTIFICATION_MAX_ATTEMPTS: int = 5

    # ── Payment gateways ──
    GATEWAY_TIMEOUT: float = 15.0
    RAZORPAY_BASE_URL: str = "https://api.razorpay.com"
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_ACCOUNT_NUMBER: str = ""
    STRIPE_BASE_URL: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: str = ""
    CASHFREE_BASE_URL: str = "https://payout-api.cashfree.com"
    CASHFREE_CLIENT_ID: str = ""
    CASHFREE_CLIENT_SECRET: str = ""

    # ── Maintenance ──
    ALLOW_TEST_DATA_RESET: bool = False

    # ── CORS ──
    CORS_ORIGINS: str = "*"

    @property
    def DATABASE_URL(self) -> str:
        """Async database DSN for the configured backend."""
        if self.USE_SQLITE:
            if self.SQLITE_PATH:
                return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"
            return "sqlite+aiosqlite://"
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
