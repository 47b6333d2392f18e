"""
Use case: Append prices to the history used by technical analysis.

Two entry points: bulk import of client-supplied samples, and sampling
of live feed ticks (at most one stored point per symbol per interval).
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from tickerdesk.application.trading.dtos import ImportPriceHistoryCommand
from tickerdesk.domain.trading.entities import AssetClass, PricePoint, PriceTick
from tickerdesk.domain.trading.errors import ValidationError
from tickerdesk.domain.trading.ports import PriceHistoryRepository

logger = logging.getLogger(__name__)


class RecordPriceHistoryUseCase:
    def __init__(
        self, price_history_repo: PriceHistoryRepository, sample_seconds: int = 60
    ) -> None:
        self._price_history_repo = price_history_repo
        self._sample_seconds = sample_seconds
        self._last_sampled: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def import_samples(self, command: ImportPriceHistoryCommand) -> int:
        symbol = command.symbol.strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required")
        try:
            asset_class = AssetClass(command.asset_class.lower())
        except ValueError:
            raise ValidationError("asset_class must be 'stock' or 'crypto'") from None
        if any(sample.price <= 0 for sample in command.samples):
            raise ValidationError("Prices must be positive")

        points = [
            PricePoint(
                symbol=symbol,
                price=sample.price,
                timestamp=sample.timestamp,
                asset_class=asset_class,
                volume=sample.volume,
            )
            for sample in sorted(command.samples, key=lambda s: s.timestamp)
        ]
        stored = self._price_history_repo.add_batch(points)
        logger.info("Imported %d %s price points for %s", stored, asset_class.value, symbol)
        return stored

    def record_ticks(self, ticks: list[PriceTick], asset_class: AssetClass) -> int:
        """Store the ticks that fall outside each symbol's sampling interval."""
        points: list[PricePoint] = []
        with self._lock:
            for tick in ticks:
                symbol = tick.symbol.upper()
                last: Optional[datetime] = self._last_sampled.get(symbol)
                if last is not None and (tick.timestamp - last).total_seconds() < self._sample_seconds:
                    continue
                self._last_sampled[symbol] = tick.timestamp
                points.append(
                    PricePoint(
                        symbol=symbol,
                        price=tick.price,
                        timestamp=tick.timestamp,
                        asset_class=asset_class,
                        volume=tick.volume,
                    )
                )
        if not points:
            return 0
        return self._price_history_repo.add_batch(points)
