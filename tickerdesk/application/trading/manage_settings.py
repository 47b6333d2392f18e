"""
Use case: Read and update per-user global settings.
"""

import logging
from dataclasses import replace
from typing import Optional

from tickerdesk.application.trading.dtos import UpdateSettingsCommand
from tickerdesk.domain.trading.entities import Settings
from tickerdesk.domain.trading.errors import ValidationError
from tickerdesk.domain.trading.ports import SettingsRepository

logger = logging.getLogger(__name__)

MIN_CHECK_FREQUENCY_SECONDS = 10

_SECRET_FIELDS = (
    "trade_platform_api_key",
    "trade_platform_api_secret",
    "finnhub_api_key",
    "kraken_api_key",
    "kraken_api_sign",
    "kraken_websocket_url",
)
_FLAG_FIELDS = (
    "enable_auto_stock_trading",
    "enable_auto_crypto_trading",
    "enable_manual_crypto_trading",
)


class ManageSettingsUseCase:
    def __init__(self, settings_repo: SettingsRepository) -> None:
        self._settings_repo = settings_repo

    def get(self, user_id: str) -> Settings:
        """Return the user's settings, creating the defaults on first access."""
        settings = self._settings_repo.get(user_id)
        if settings is None:
            settings = self._settings_repo.save(Settings(user_id=user_id))
            logger.info("Created default settings for user=%s", user_id)
        return settings

    def update(self, command: UpdateSettingsCommand) -> Settings:
        if command.sell_threshold_percent < 0 or command.buy_threshold_percent < 0:
            raise ValidationError("Thresholds must be non-negative")
        if command.check_frequency_seconds < MIN_CHECK_FREQUENCY_SECONDS:
            raise ValidationError(
                f"Check frequency must be at least {MIN_CHECK_FREQUENCY_SECONDS} seconds"
            )

        current = self.get(command.user_id)
        changes = {
            "sell_threshold_percent": command.sell_threshold_percent,
            "buy_threshold_percent": command.buy_threshold_percent,
            "check_frequency_seconds": command.check_frequency_seconds,
        }
        for name in _SECRET_FIELDS:
            value: Optional[str] = getattr(command, name)
            if value is not None:
                changes[name] = value.strip() or None
        for name in _FLAG_FIELDS:
            value = getattr(command, name)
            if value is not None:
                changes[name] = value

        saved = self._settings_repo.save(replace(current, **changes))
        logger.info(
            "Updated settings for user=%s (auto crypto=%s, manual crypto=%s)",
            command.user_id,
            saved.enable_auto_crypto_trading,
            saved.enable_manual_crypto_trading,
        )
        return saved
