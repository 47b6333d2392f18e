"""
FastAPI router for crypto positions, auto-trading and order execution.

All routes delegate to use cases. No business logic here.
Order placement and auto-trade runs carry the heavy rate limit.
"""

from fastapi import APIRouter, Depends, Query, Request, status

from tickerdesk.application.trading.dtos import (
    CreateHoldingCommand,
    ExecuteOrderCommand,
    ReorderCommand,
    SaveAutoTradeSettingsCommand,
    UpdateHoldingCommand,
)
from tickerdesk.application.trading.execute_order import ExecuteOrderUseCase
from tickerdesk.application.trading.manage_cryptos import ManageCryptosUseCase
from tickerdesk.application.trading.process_auto_trades import ProcessAutoTradesUseCase
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.interfaces.trading.dependencies import (
    get_current_user,
    get_execute_order_use_case,
    get_manage_cryptos_use_case,
    get_process_auto_trades_use_case,
)
from tickerdesk.interfaces.trading.mappers import (
    auto_trade_result_item,
    auto_trade_settings_response,
    crypto_response,
    crypto_transaction_response,
)
from tickerdesk.interfaces.trading.schemas import (
    AutoTradeCheckRequest,
    AutoTradeResultItem,
    AutoTradeSettingsRequest,
    AutoTradeSettingsResponse,
    CryptoCreateRequest,
    CryptoResponse,
    CryptoTransactionResponse,
    CryptoUpdateRequest,
    ErrorResponse,
    ExecuteOrderRequest,
    ExecuteOrderResponse,
    ProcessAutoTradesRequest,
    ProcessAutoTradesResponse,
    ReorderRequest,
    UsdBalanceRequest,
    UsdBalanceResponse,
)
from tickerdesk.shared.security.rate_limiting import HEAVY_RATE_LIMIT, limiter

router = APIRouter(tags=["cryptos"], responses={401: {"model": ErrorResponse}})


# ------------------------------------------------------------------
# Positions
# ------------------------------------------------------------------


@router.get("/cryptos", response_model=list[CryptoResponse], summary="List cryptos")
def list_cryptos(
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> list[CryptoResponse]:
    return [crypto_response(view.holding, view) for view in use_case.list_holdings(user.id)]


@router.post(
    "/cryptos",
    response_model=CryptoResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Track a crypto",
)
def create_crypto(
    request: CryptoCreateRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> CryptoResponse:
    crypto = use_case.create(
        CreateHoldingCommand(
            user_id=user.id,
            symbol=request.symbol,
            purchase_price=request.purchase_price,
            shares=request.shares,
            auto_sell=request.auto_sell,
            auto_buy=request.auto_buy,
        )
    )
    return crypto_response(crypto)


@router.put("/cryptos", response_model=list[CryptoResponse], summary="Reorder cryptos")
def reorder_cryptos(
    request: ReorderRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> list[CryptoResponse]:
    views = use_case.reorder(ReorderCommand(user_id=user.id, ordered_ids=tuple(request.ordered_ids)))
    return [crypto_response(view.holding, view) for view in views]


# ------------------------------------------------------------------
# Auto-trade settings & balance
# ------------------------------------------------------------------


@router.get(
    "/cryptos/auto-trade-settings",
    response_model=AutoTradeSettingsResponse | None,
    responses={404: {"model": ErrorResponse}},
    summary="Get auto-trade settings for a crypto",
)
def get_auto_trade_settings(
    crypto_id: str = Query(...),
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> AutoTradeSettingsResponse | None:
    settings = use_case.get_auto_trade_settings(user.id, crypto_id)
    return auto_trade_settings_response(settings) if settings else None


@router.post(
    "/cryptos/auto-trade-settings",
    response_model=AutoTradeSettingsResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Save auto-trade settings for a crypto",
    description="Upserts the settings and derives the crypto's auto_buy/auto_sell flags.",
)
def save_auto_trade_settings(
    request: AutoTradeSettingsRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> AutoTradeSettingsResponse:
    saved = use_case.save_auto_trade_settings(
        SaveAutoTradeSettingsCommand(user_id=user.id, **request.model_dump())
    )
    return auto_trade_settings_response(saved)


@router.get("/cryptos/usd-balance", response_model=UsdBalanceResponse)
def get_usd_balance(
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> UsdBalanceResponse:
    return UsdBalanceResponse(usd_balance=use_case.get_balance(user.id).usd_balance)


@router.put(
    "/cryptos/usd-balance",
    response_model=UsdBalanceResponse,
    responses={400: {"model": ErrorResponse}},
)
def set_usd_balance(
    request: UsdBalanceRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> UsdBalanceResponse:
    account = use_case.set_balance(user.id, request.usd_balance)
    return UsdBalanceResponse(usd_balance=account.usd_balance)


# ------------------------------------------------------------------
# Orders & auto-trading
# ------------------------------------------------------------------


@router.post(
    "/cryptos/execute-order",
    response_model=ExecuteOrderResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Place a crypto order",
    description=(
        "Submits a buy or sell order to Kraken. Every attempt is written to "
        "the transaction log; failures return the recorded error row."
    ),
)
@limiter.limit(HEAVY_RATE_LIMIT)
def execute_order(
    request: Request,
    payload: ExecuteOrderRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ExecuteOrderUseCase = Depends(get_execute_order_use_case),
) -> ExecuteOrderResponse:
    result = use_case.execute(ExecuteOrderCommand(user_id=user.id, **payload.model_dump()))
    return ExecuteOrderResponse(
        message=result.message,
        order_id=result.order_id,
        transaction=crypto_transaction_response(result.transaction),
    )


@router.post(
    "/cryptos/process-auto-trades",
    response_model=ProcessAutoTradesResponse,
    summary="Run auto-trading against a price map",
)
@limiter.limit(HEAVY_RATE_LIMIT)
def process_auto_trades(
    request: Request,
    payload: ProcessAutoTradesRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ProcessAutoTradesUseCase = Depends(get_process_auto_trades_use_case),
) -> ProcessAutoTradesResponse:
    results = use_case.process_prices(user.id, payload.prices)
    return ProcessAutoTradesResponse(results=[auto_trade_result_item(r) for r in results])


@router.post(
    "/cryptos/auto-trade",
    response_model=AutoTradeResultItem,
    responses={404: {"model": ErrorResponse}},
    summary="Check one crypto for an auto trade",
)
@limiter.limit(HEAVY_RATE_LIMIT)
def check_auto_trade(
    request: Request,
    payload: AutoTradeCheckRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ProcessAutoTradesUseCase = Depends(get_process_auto_trades_use_case),
) -> AutoTradeResultItem:
    return auto_trade_result_item(use_case.check_crypto(user.id, payload.crypto_id, payload.price))


# ------------------------------------------------------------------
# Single crypto & history
# ------------------------------------------------------------------


@router.get("/cryptos/{crypto_id}", response_model=CryptoResponse, responses={404: {"model": ErrorResponse}})
def get_crypto(
    crypto_id: str,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> CryptoResponse:
    return crypto_response(use_case.get(user.id, crypto_id))


@router.put(
    "/cryptos/{crypto_id}",
    response_model=CryptoResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_crypto(
    crypto_id: str,
    request: CryptoUpdateRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> CryptoResponse:
    crypto = use_case.update(
        UpdateHoldingCommand(
            user_id=user.id,
            holding_id=crypto_id,
            symbol=request.symbol,
            purchase_price=request.purchase_price,
            shares=request.shares,
            auto_sell=request.auto_sell,
            auto_buy=request.auto_buy,
        )
    )
    return crypto_response(crypto)


@router.delete(
    "/cryptos/{crypto_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
def delete_crypto(
    crypto_id: str,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> None:
    use_case.delete(user.id, crypto_id)


@router.get("/crypto-transactions", response_model=list[CryptoTransactionResponse])
def list_crypto_transactions(
    limit: int = Query(default=100, ge=1, le=500),
    crypto_id: str | None = Query(default=None),
    user: UserAccount = Depends(get_current_user),
    use_case: ManageCryptosUseCase = Depends(get_manage_cryptos_use_case),
) -> list[CryptoTransactionResponse]:
    transactions = use_case.list_transactions(user.id, limit, crypto_id)
    return [crypto_transaction_response(tx) for tx in transactions]
