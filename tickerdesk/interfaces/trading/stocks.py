"""
FastAPI router for stock positions.

All routes delegate to ManageStocksUseCase. No business logic here.
"""

from fastapi import APIRouter, Depends, Query, status

from tickerdesk.application.trading.dtos import (
    CreateHoldingCommand,
    ReorderCommand,
    StockTradeCommand,
    UpdateHoldingCommand,
)
from tickerdesk.application.trading.manage_stocks import ManageStocksUseCase
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.interfaces.trading.dependencies import (
    get_current_user,
    get_manage_stocks_use_case,
)
from tickerdesk.interfaces.trading.mappers import stock_response, stock_transaction_response
from tickerdesk.interfaces.trading.schemas import (
    ErrorResponse,
    ReorderRequest,
    StockCreateRequest,
    StockResponse,
    StockTradeRequest,
    StockTransactionResponse,
    StockUpdateRequest,
)

router = APIRouter(tags=["stocks"], responses={401: {"model": ErrorResponse}})


@router.get(
    "/stocks",
    response_model=list[StockResponse],
    summary="List stocks",
    description="Tracked stocks by priority, with live price and threshold verdicts.",
)
def list_stocks(
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> list[StockResponse]:
    return [stock_response(view.holding, view) for view in use_case.list_holdings(user.id)]


@router.post(
    "/stocks",
    response_model=StockResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Track a stock",
)
def create_stock(
    request: StockCreateRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> StockResponse:
    stock = use_case.create(
        CreateHoldingCommand(
            user_id=user.id,
            symbol=request.ticker,
            purchase_price=request.purchase_price,
            shares=request.shares,
            auto_sell=request.auto_sell,
            auto_buy=request.auto_buy,
        )
    )
    return stock_response(stock)


@router.put(
    "/stocks",
    response_model=list[StockResponse],
    summary="Reorder stocks",
    description="Assign priorities following the given id order.",
)
def reorder_stocks(
    request: ReorderRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> list[StockResponse]:
    views = use_case.reorder(ReorderCommand(user_id=user.id, ordered_ids=tuple(request.ordered_ids)))
    return [stock_response(view.holding, view) for view in views]


@router.post(
    "/stocks/trade",
    response_model=StockTransactionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Record a stock trade",
    description="Simulated trade: records a transaction and adjusts the position.",
)
def trade_stock(
    request: StockTradeRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> StockTransactionResponse:
    transaction = use_case.trade(
        StockTradeCommand(
            user_id=user.id,
            stock_id=request.stock_id,
            action=request.action,
            shares=request.shares,
            price=request.price,
        )
    )
    return stock_transaction_response(transaction)


@router.get("/stocks/{stock_id}", response_model=StockResponse, responses={404: {"model": ErrorResponse}})
def get_stock(
    stock_id: str,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> StockResponse:
    return stock_response(use_case.get(user.id, stock_id))


@router.put(
    "/stocks/{stock_id}",
    response_model=StockResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_stock(
    stock_id: str,
    request: StockUpdateRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> StockResponse:
    stock = use_case.update(
        UpdateHoldingCommand(
            user_id=user.id,
            holding_id=stock_id,
            symbol=request.ticker,
            purchase_price=request.purchase_price,
            shares=request.shares,
            auto_sell=request.auto_sell,
            auto_buy=request.auto_buy,
        )
    )
    return stock_response(stock)


@router.delete(
    "/stocks/{stock_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
def delete_stock(
    stock_id: str,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> None:
    use_case.delete(user.id, stock_id)


@router.get("/transactions", response_model=list[StockTransactionResponse])
def list_stock_transactions(
    limit: int = Query(default=100, ge=1, le=500),
    user: UserAccount = Depends(get_current_user),
    use_case: ManageStocksUseCase = Depends(get_manage_stocks_use_case),
) -> list[StockTransactionResponse]:
    return [stock_transaction_response(tx) for tx in use_case.list_transactions(user.id, limit)]
