"""
FastAPI router for live prices and price history import.
"""

from fastapi import APIRouter, Depends

from tickerdesk.application.trading.dtos import ImportPriceHistoryCommand, PriceSample
from tickerdesk.application.trading.record_price_history import RecordPriceHistoryUseCase
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.infrastructure.trading.price_book import InMemoryPriceBook
from tickerdesk.interfaces.trading.dependencies import (
    get_current_user,
    get_price_book,
    get_record_price_history_use_case,
)
from tickerdesk.interfaces.trading.schemas import (
    ErrorResponse,
    PriceHistoryImportRequest,
    PriceHistoryImportResponse,
    PricesResponse,
)

router = APIRouter(tags=["prices"], responses={401: {"model": ErrorResponse}})


@router.get(
    "/prices",
    response_model=PricesResponse,
    summary="Latest prices",
    description="Latest price per symbol as last seen on the live feeds.",
)
def get_prices(
    user: UserAccount = Depends(get_current_user),
    price_book: InMemoryPriceBook = Depends(get_price_book),
) -> PricesResponse:
    return PricesResponse(prices=price_book.snapshot())


@router.post(
    "/price-history/{symbol}",
    response_model=PriceHistoryImportResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Import price history",
)
def import_price_history(
    symbol: str,
    request: PriceHistoryImportRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: RecordPriceHistoryUseCase = Depends(get_record_price_history_use_case),
) -> PriceHistoryImportResponse:
    stored = use_case.import_samples(
        ImportPriceHistoryCommand(
            symbol=symbol,
            asset_class=request.asset_class,
            samples=tuple(
                PriceSample(price=s.price, timestamp=s.timestamp, volume=s.volume)
                for s in request.samples
            ),
        )
    )
    return PriceHistoryImportResponse(symbol=symbol.strip().upper(), stored=stored)
