"""
Use case: Drawdown and drawup analysis for one symbol.

Input: TrendAnalysisCommand
Output: TrendAnalysisResult
Side effects: none.
Failure cases:
    InsufficientPriceDataError when no prices are sent or stored.
"""

import logging

from tickerdesk.application.trading.dtos import TrendAnalysisCommand, TrendAnalysisResult
from tickerdesk.domain.trading import indicators
from tickerdesk.domain.trading.errors import InsufficientPriceDataError, ValidationError
from tickerdesk.domain.trading.ports import PriceHistoryRepository

logger = logging.getLogger(__name__)


class AnalyzeTrendUseCase:
    def __init__(self, price_history_repo: PriceHistoryRepository, window: int = 500) -> None:
        self._price_history_repo = price_history_repo
        self._window = window

    def execute(self, command: TrendAnalysisCommand) -> TrendAnalysisResult:
        symbol = command.symbol.strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required")

        prices = list(command.prices) or [
            point.price for point in self._price_history_repo.recent(symbol, self._window)
        ]
        if not prices:
            raise InsufficientPriceDataError(symbol)

        analysis = indicators.calculate_drawdown_drawup(prices)
        logger.info(
            "Trend analysis for %s over %d prices: max drawdown %.2f%%, max drawup %.2f%%",
            symbol,
            len(prices),
            analysis.max_drawdown,
            analysis.max_drawup,
        )
        return TrendAnalysisResult(symbol=symbol, price_count=len(prices), analysis=analysis)
