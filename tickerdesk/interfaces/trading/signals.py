"""
FastAPI router for persisted trading signals.

Generation reads the latest stored technical analysis and the live
price book; listing and status updates are scoped to the caller.
"""

from fastapi import APIRouter, Depends, Query, Request

from tickerdesk.application.trading.dtos import (
    GenerateSignalsCommand,
    SignalQuery,
    UpdateSignalStatusCommand,
)
from tickerdesk.application.trading.trading_signals import TradingSignalsUseCase
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.interfaces.trading.dependencies import (
    get_current_user,
    get_trading_signals_use_case,
)
from tickerdesk.interfaces.trading.mappers import (
    symbol_signals_response,
    trading_signal_response,
)
from tickerdesk.interfaces.trading.schemas import (
    ErrorResponse,
    GenerateSignalsRequest,
    SymbolSignalsResponse,
    TradingSignalPageResponse,
    TradingSignalResponse,
    UpdateSignalStatusRequest,
)
from tickerdesk.shared.security.rate_limiting import HEAVY_RATE_LIMIT, limiter

router = APIRouter(tags=["signals"], responses={401: {"model": ErrorResponse}})


@router.post(
    "/trading-signals/generate",
    response_model=list[SymbolSignalsResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Generate entry and exit signals",
)
@limiter.limit(HEAVY_RATE_LIMIT)
def generate_signals(
    request: Request,
    payload: GenerateSignalsRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: TradingSignalsUseCase = Depends(get_trading_signals_use_case),
) -> list[SymbolSignalsResponse]:
    results = use_case.generate(
        GenerateSignalsCommand(
            user_id=user.id,
            symbol=payload.symbol,
            timeframe=payload.timeframe,
            generate_for_all=payload.generate_for_all,
        )
    )
    return [symbol_signals_response(result) for result in results]


@router.get(
    "/trading-signals",
    response_model=TradingSignalPageResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List trading signals",
)
def list_signals(
    symbol: str | None = Query(default=None),
    timeframe: str | None = Query(default=None),
    signal_type: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: UserAccount = Depends(get_current_user),
    use_case: TradingSignalsUseCase = Depends(get_trading_signals_use_case),
) -> TradingSignalPageResponse:
    page = use_case.list_signals(
        SignalQuery(
            user_id=user.id,
            symbol=symbol,
            timeframe=timeframe,
            signal_type=signal_type,
            status=status,
            limit=limit,
            offset=offset,
        )
    )
    return TradingSignalPageResponse(
        signals=[trading_signal_response(signal) for signal in page.signals],
        total_count=page.total_count,
        limit=page.limit,
        offset=page.offset,
    )


@router.post(
    "/trading-signals/update-status",
    response_model=TradingSignalResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update a signal's status",
)
def update_signal_status(
    payload: UpdateSignalStatusRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: TradingSignalsUseCase = Depends(get_trading_signals_use_case),
) -> TradingSignalResponse:
    signal = use_case.update_status(
        UpdateSignalStatusCommand(
            user_id=user.id,
            signal_id=payload.signal_id,
            status=payload.status,
            executed_at=payload.executed_at,
        )
    )
    return trading_signal_response(signal)
