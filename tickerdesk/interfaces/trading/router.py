"""
FastAPI router for the trading bounded context.

Aggregates the per-resource routers. All routes delegate to use cases.
Input validation is handled by Pydantic schemas.
Error mapping is handled by centralized error handlers.
"""

from fastapi import APIRouter

from tickerdesk.interfaces.trading.analysis import router as analysis_router
from tickerdesk.interfaces.trading.cryptos import router as cryptos_router
from tickerdesk.interfaces.trading.prices import router as prices_router
from tickerdesk.interfaces.trading.settings import router as settings_router
from tickerdesk.interfaces.trading.signals import router as signals_router
from tickerdesk.interfaces.trading.stocks import router as stocks_router

router = APIRouter()
router.include_router(stocks_router)
router.include_router(cryptos_router)
router.include_router(settings_router)
router.include_router(analysis_router)
router.include_router(prices_router)
router.include_router(signals_router)
