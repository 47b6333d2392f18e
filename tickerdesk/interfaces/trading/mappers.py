"""
Entity-to-schema conversion for trading responses.
"""

from dataclasses import asdict
from typing import Optional

from tickerdesk.application.trading.dtos import (
    AutoTradeResult,
    HoldingView,
    SymbolSignals,
    TrendAnalysisResult,
)
from tickerdesk.domain.trading.entities import (
    AutoTradeSettings,
    Crypto,
    CryptoTransaction,
    Settings,
    Stock,
    StockTransaction,
    TechnicalAnalysis,
    TradingSignal,
)
from tickerdesk.interfaces.trading.schemas import (
    AutoTradeResultItem,
    AutoTradeSettingsResponse,
    CryptoResponse,
    CryptoTransactionResponse,
    SettingsResponse,
    StockResponse,
    StockTransactionResponse,
    SymbolSignalsResponse,
    TechnicalAnalysisResponse,
    TradingSignalResponse,
    TrendAnalysisResponse,
)


def stock_response(stock: Stock, view: Optional[HoldingView[Stock]] = None) -> StockResponse:
    return StockResponse(
        id=stock.id,
        ticker=stock.ticker,
        purchase_price=stock.purchase_price,
        shares=stock.shares,
        priority=stock.priority,
        auto_sell=stock.auto_sell,
        auto_buy=stock.auto_buy,
        current_price=view.current_price if view else None,
        change_percent=view.change_percent if view else None,
        should_sell=view.should_sell if view else False,
        should_buy=view.should_buy if view else False,
        created_at=stock.created_at,
        updated_at=stock.updated_at,
    )


def auto_trade_settings_response(settings: AutoTradeSettings) -> AutoTradeSettingsResponse:
    return AutoTradeSettingsResponse(
        **{**asdict(settings), "next_action": settings.next_action.value}
    )


def crypto_response(crypto: Crypto, view: Optional[HoldingView[Crypto]] = None) -> CryptoResponse:
    auto = crypto.auto_trade_settings
    return CryptoResponse(
        id=crypto.id,
        symbol=crypto.symbol,
        purchase_price=crypto.purchase_price,
        shares=crypto.shares,
        priority=crypto.priority,
        auto_sell=crypto.auto_sell,
        auto_buy=crypto.auto_buy,
        current_price=view.current_price if view else None,
        change_percent=view.change_percent if view else None,
        should_sell=view.should_sell if view else False,
        should_buy=view.should_buy if view else False,
        auto_trade_settings=auto_trade_settings_response(auto) if auto else None,
        created_at=crypto.created_at,
        updated_at=crypto.updated_at,
    )


def crypto_transaction_response(tx: CryptoTransaction) -> CryptoTransactionResponse:
    return CryptoTransactionResponse(
        id=tx.id,
        crypto_id=tx.crypto_id,
        symbol=tx.symbol,
        action=tx.action.value,
        shares=tx.shares,
        price=tx.price,
        total_amount=tx.total_amount,
        api_request=tx.api_request,
        api_response=tx.api_response,
        log_info=tx.log_info,
        created_at=tx.created_at,
    )


def stock_transaction_response(tx: StockTransaction) -> StockTransactionResponse:
    return StockTransactionResponse(
        id=tx.id,
        stock_id=tx.stock_id,
        ticker=tx.ticker,
        action=tx.action.value,
        shares=tx.shares,
        price=tx.price,
        total_amount=tx.total_amount,
        created_at=tx.created_at,
    )


def settings_response(settings: Settings) -> SettingsResponse:
    return SettingsResponse(
        sell_threshold_percent=settings.sell_threshold_percent,
        buy_threshold_percent=settings.buy_threshold_percent,
        check_frequency_seconds=settings.check_frequency_seconds,
        kraken_websocket_url=settings.kraken_websocket_url,
        enable_auto_stock_trading=settings.enable_auto_stock_trading,
        enable_auto_crypto_trading=settings.enable_auto_crypto_trading,
        enable_manual_crypto_trading=settings.enable_manual_crypto_trading,
        trade_platform_api_key_set=bool(settings.trade_platform_api_key),
        trade_platform_api_secret_set=bool(settings.trade_platform_api_secret),
        finnhub_api_key_set=bool(settings.finnhub_api_key),
        kraken_api_key_set=bool(settings.kraken_api_key),
        kraken_api_sign_set=bool(settings.kraken_api_sign),
    )


def auto_trade_result_item(result: AutoTradeResult) -> AutoTradeResultItem:
    return AutoTradeResultItem(**asdict(result))


def technical_analysis_response(analysis: TechnicalAnalysis) -> TechnicalAnalysisResponse:
    return TechnicalAnalysisResponse(
        **{
            **asdict(analysis),
            "breakout_type": analysis.breakout_type.value,
            "recommendation": analysis.recommendation.value,
        }
    )


def trend_analysis_response(result: TrendAnalysisResult) -> TrendAnalysisResponse:
    return TrendAnalysisResponse(
        symbol=result.symbol,
        price_count=result.price_count,
        analysis=asdict(result.analysis),
    )


def trading_signal_response(signal: TradingSignal) -> TradingSignalResponse:
    return TradingSignalResponse(
        **{
            **asdict(signal),
            "signal_type": signal.signal_type.value,
            "direction": signal.direction.value if signal.direction else None,
            "status": signal.status.value,
        }
    )


def symbol_signals_response(result: SymbolSignals) -> SymbolSignalsResponse:
    return SymbolSignalsResponse(
        symbol=result.symbol,
        signals=[trading_signal_response(signal) for signal in result.signals],
    )
