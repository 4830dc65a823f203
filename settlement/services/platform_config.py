"""
Platform configuration snapshot.

Admins edit ``fund_*`` toggles in the ``platform_settings`` table.  Workflows
never read that table (or any module-level state) themselves: the caller
obtains an immutable :class:`PlatformConfig` from a
:class:`PlatformConfigProvider` and passes it into each workflow call.

The provider keeps the last snapshot for ``PLATFORM_CONFIG_TTL`` seconds and
reloads it on the next ``get`` after that, or right away after
:meth:`PlatformConfigProvider.invalidate`.
"""

import logging
import time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from settlement.core.config import Settings, settings
from settlement.core.exceptions import BusinessRuleViolation
from settlement.models.setting import PlatformSetting
from settlement.repositories.setting_repo import PlatformSettingRepository

logger = logging.getLogger(__name__)

SETTING_PREFIX = "fund_"

# Editable keys and the type their string value parses to.
KNOWN_SETTINGS: Dict[str, type] = {
    "fund_withdrawals_enabled": bool,
    "fund_payouts_enabled": bool,
    "fund_min_notice_period_days": int,
}


class PlatformConfig(BaseModel):
    """Immutable view of the platform toggles and gateway credentials."""

    model_config = ConfigDict(frozen=True)

    withdrawals_enabled: bool = True
    payouts_enabled: bool = True
    min_notice_period_days: int = 0

    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_account_number: str = ""
    stripe_secret_key: str = ""
    cashfree_client_id: str = ""
    cashfree_client_secret: str = ""

    loaded_at: float = 0.0

    @classmethod
    def from_rows(
        cls,
        rows: List[PlatformSetting],
        app_settings: Settings = settings,
        loaded_at: Optional[float] = None,
    ) -> "PlatformConfig":
        """Build a snapshot from stored rows; unknown or unparsable keys are ignored."""
        values: Dict[str, object] = {}
        for row in rows:
            kind = KNOWN_SETTINGS.get(row.setting_key)
            if kind is None:
                continue
            try:
                values[row.setting_key[len(SETTING_PREFIX):]] = parse_setting_value(
                    row.setting_value, kind
                )
            except ValueError:
                logger.warning(
                    "Ignoring unparsable platform setting %s=%r",
                    row.setting_key,
                    row.setting_value,
                )
        return cls(
            **values,
            razorpay_key_id=app_settings.RAZORPAY_KEY_ID,
            razorpay_key_secret=app_settings.RAZORPAY_KEY_SECRET,
            razorpay_account_number=app_settings.RAZORPAY_ACCOUNT_NUMBER,
            stripe_secret_key=app_settings.STRIPE_SECRET_KEY,
            cashfree_client_id=app_settings.CASHFREE_CLIENT_ID,
            cashfree_client_secret=app_settings.CASHFREE_CLIENT_SECRET,
            loaded_at=time.monotonic() if loaded_at is None else loaded_at,
        )

    def age(self) -> float:
        return time.monotonic() - self.loaded_at


def parse_setting_value(raw: str, kind: type) -> object:
    """Parse a stored string into ``kind``; raises ``ValueError`` when it cannot."""
    text = raw.strip()
    if kind is bool:
        lowered = text.lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if kind is int:
        return int(text)
    return text


class PlatformConfigProvider:
    """Caches the latest :class:`PlatformConfig` for ``ttl`` seconds."""

    def __init__(self, ttl: float = settings.PLATFORM_CONFIG_TTL, app_settings: Settings = settings):
        self.ttl = ttl
        self._settings = app_settings
        self._snapshot: Optional[PlatformConfig] = None

    @property
    def snapshot(self) -> Optional[PlatformConfig]:
        return self._snapshot

    async def get(self, repo: PlatformSettingRepository) -> PlatformConfig:
        if self._snapshot is not None and self._snapshot.age() < self.ttl:
            return self._snapshot
        rows = await repo.filter()
        self._snapshot = PlatformConfig.from_rows(rows, self._settings)
        logger.debug("Platform config reloaded (%d stored settings)", len(rows))
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None


config_provider = PlatformConfigProvider()


class PlatformSettingService:
    """List and upsert the admin-editable ``fund_*`` settings."""

    def __init__(
        self,
        repo: PlatformSettingRepository,
        provider: PlatformConfigProvider = config_provider,
    ):
        self._repo = repo
        self._provider = provider

    async def list_settings(self) -> List[PlatformSetting]:
        return await self._repo.filter()

    async def upsert_setting(
        self, key: str, value: str, description: Optional[str] = None
    ) -> PlatformSetting:
        """
        Create or overwrite one setting.

        Only known keys are accepted, and the value must parse to the key's
        type, so a typo cannot silently leave a toggle at its default.
        The cached snapshot is dropped so the next workflow call sees the change.
        """
        kind = KNOWN_SETTINGS.get(key)
        if kind is None:
            raise BusinessRuleViolation(
                f"Unknown platform setting '{key}'. "
                f"Allowed keys: {', '.join(sorted(KNOWN_SETTINGS))}"
            )
        try:
            parse_setting_value(value, kind)
        except ValueError as exc:
            raise BusinessRuleViolation(f"Invalid value for '{key}': {exc}")

        existing = await self._repo.get_by_key(key)
        if existing is None:
            saved = await self._repo.create(
                PlatformSetting(setting_key=key, setting_value=value, description=description)
            )
        else:
            existing.setting_value = value
            if description is not None:
                existing.description = description
            saved = await self._repo.update(existing)

        self._provider.invalidate()
        logger.info("Platform setting %s set to %r", key, value)
        return saved
