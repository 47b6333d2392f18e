"""
Domain-specific errors for the trading bounded context.

All errors raised from the domain and application layers are defined here.
These are mapped to HTTP responses at the interface layer.
No framework imports allowed.
"""

from typing import Any, Optional


class TradingDomainError(Exception):
    """Base error for all trading domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class UnauthorizedError(TradingDomainError):
    """Raised when a request carries no valid user session."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(reason)


class ValidationError(TradingDomainError):
    """Raised when a business input rule is violated."""


class StockNotFoundError(TradingDomainError):
    def __init__(self, stock_id: str) -> None:
        super().__init__(f"Stock not found: {stock_id}")
        self.stock_id = stock_id


class CryptoNotFoundError(TradingDomainError):
    """Raised when a crypto does not exist or belongs to another user."""

    def __init__(self, crypto_id: str) -> None:
        super().__init__(f"Crypto not found: {crypto_id}")
        self.crypto_id = crypto_id


class DuplicateHoldingError(TradingDomainError):
    """Raised when a user already tracks the given ticker or symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Already tracking {symbol}")
        self.symbol = symbol


class AnalysisNotFoundError(TradingDomainError):
    def __init__(self, symbol: str) -> None:
        super().__init__(f"No analysis data for {symbol}")
        self.symbol = symbol


class InsufficientPriceDataError(TradingDomainError):
    """Raised when no prices are available to compute indicators."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No price data available for {symbol}")
        self.symbol = symbol


class OrderFailedError(TradingDomainError):
    """Base for order failures that were written to the transaction log.

    transaction is the recorded error row, serialized for the client.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        transaction: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.transaction = transaction


class MissingCredentialsError(OrderFailedError):
    """Raised when the user has not configured exchange API keys."""

    def __init__(self, transaction: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            "Kraken API credentials not configured",
            error_type="missing_credentials",
            transaction=transaction,
        )


class InsufficientSharesError(TradingDomainError):
    def __init__(self, symbol: str, requested: float, available: float) -> None:
        super().__init__(
            f"Insufficient shares of {symbol}: requested {requested}, available {available}"
        )
        self.symbol = symbol
        self.requested = requested
        self.available = available


class TradingDisabledError(TradingDomainError):
    """Raised when the user has switched the relevant trading mode off."""


class ExchangeOrderError(OrderFailedError):
    """Raised when the exchange rejects an order.

    Carries the classified error type and the redacted request/raw
    response so they can be recorded.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        api_request: Optional[dict[str, Any]] = None,
        api_response: Optional[dict[str, Any]] = None,
        transaction: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_type=error_type, transaction=transaction)
        self.api_request = api_request
        self.api_response = api_response


class ExchangeUnavailableError(OrderFailedError):
    """Raised when the exchange cannot be reached or answers non-2xx."""

    def __init__(
        self,
        reason: str,
        api_request: Optional[dict[str, Any]] = None,
        transaction: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"Exchange unavailable: {reason}",
            error_type="exchange_unavailable",
            transaction=transaction,
        )
        self.reason = reason
        self.api_request = api_request


class SignalNotFoundError(TradingDomainError):
    """Raised when a trading signal does not exist or belongs to another user."""

    def __init__(self, signal_id: str) -> None:
        super().__init__(f"Signal not found: {signal_id}")
        self.signal_id = signal_id
