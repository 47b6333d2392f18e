"""
Centralized error handlers for FastAPI.

Maps domain-specific errors to HTTP responses.
No stack traces or internal details are exposed to clients.
Every error body has an "error" key; failed orders also carry the
classified error type and the recorded error transaction.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tickerdesk.domain.trading.errors import (
    AnalysisNotFoundError,
    CryptoNotFoundError,
    DuplicateHoldingError,
    ExchangeUnavailableError,
    InsufficientPriceDataError,
    InsufficientSharesError,
    OrderFailedError,
    SignalNotFoundError,
    StockNotFoundError,
    TradingDisabledError,
    TradingDomainError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_401 = 401
HTTP_403 = 403
HTTP_404 = 404
HTTP_422 = 422
HTTP_500 = 500
HTTP_502 = 502


def _error_response(
    status_code: int,
    error: str,
    detail: Optional[str] = None,
    **extra: Any,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, Any] = {"error": error}
    if detail:
        body["detail"] = detail
    body.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register all domain error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Schema violations use the same 400 body as domain validation errors."""
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        logger.info("Invalid request: %s", detail)
        return _error_response(HTTP_400, "Invalid request", detail)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(_request: Request, exc: UnauthorizedError) -> JSONResponse:
        logger.info("Rejected request: %s", exc.message)
        return _error_response(HTTP_401, "Unauthorized")

    @app.exception_handler(StockNotFoundError)
    async def handle_stock_not_found(_request: Request, exc: StockNotFoundError) -> JSONResponse:
        logger.warning("Stock not found: %s", exc.stock_id)
        return _error_response(HTTP_404, "Stock not found")

    @app.exception_handler(CryptoNotFoundError)
    async def handle_crypto_not_found(_request: Request, exc: CryptoNotFoundError) -> JSONResponse:
        logger.warning("Crypto not found: %s", exc.crypto_id)
        return _error_response(HTTP_404, "Crypto not found")

    @app.exception_handler(SignalNotFoundError)
    async def handle_signal_not_found(_request: Request, exc: SignalNotFoundError) -> JSONResponse:
        logger.warning("Signal not found: %s", exc.signal_id)
        return _error_response(HTTP_404, "Signal not found")

    @app.exception_handler(AnalysisNotFoundError)
    async def handle_analysis_not_found(
        _request: Request, exc: AnalysisNotFoundError
    ) -> JSONResponse:
        logger.warning("No analysis data: %s", exc.symbol)
        return _error_response(HTTP_404, exc.message)

    @app.exception_handler(ValidationError)
    async def handle_validation(_request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("Validation failed: %s", exc.message)
        return _error_response(HTTP_400, exc.message)

    @app.exception_handler(DuplicateHoldingError)
    async def handle_duplicate(_request: Request, exc: DuplicateHoldingError) -> JSONResponse:
        logger.warning("Duplicate holding: %s", exc.symbol)
        return _error_response(HTTP_400, exc.message)

    @app.exception_handler(InsufficientSharesError)
    async def handle_insufficient_shares(
        _request: Request, exc: InsufficientSharesError
    ) -> JSONResponse:
        logger.warning("Insufficient shares: %s", exc.symbol)
        return _error_response(HTTP_400, "Insufficient shares", exc.message)

    @app.exception_handler(TradingDisabledError)
    async def handle_trading_disabled(
        _request: Request, exc: TradingDisabledError
    ) -> JSONResponse:
        logger.info("Trading disabled: %s", exc.message)
        return _error_response(HTTP_403, exc.message)

    @app.exception_handler(InsufficientPriceDataError)
    async def handle_insufficient_data(
        _request: Request, exc: InsufficientPriceDataError
    ) -> JSONResponse:
        logger.warning("Insufficient price data: %s", exc.symbol)
        return _error_response(HTTP_422, exc.message)

    @app.exception_handler(ExchangeUnavailableError)
    async def handle_exchange_unavailable(
        _request: Request, exc: ExchangeUnavailableError
    ) -> JSONResponse:
        logger.error("Exchange unavailable: %s", exc.reason)
        return _error_response(
            HTTP_502,
            "Exchange unavailable",
            exc.reason,
            error_type=exc.error_type,
            transaction=exc.transaction,
        )

    @app.exception_handler(OrderFailedError)
    async def handle_order_failed(_request: Request, exc: OrderFailedError) -> JSONResponse:
        """Exchange rejections and missing credentials."""
        logger.warning("Order failed (%s): %s", exc.error_type, exc.message)
        return _error_response(
            HTTP_400,
            exc.message,
            error_type=exc.error_type,
            transaction=exc.transaction,
        )

    @app.exception_handler(TradingDomainError)
    async def handle_trading_domain(_request: Request, exc: TradingDomainError) -> JSONResponse:
        """Catch-all for unhandled trading domain errors."""
        logger.error("Unhandled trading domain error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")
