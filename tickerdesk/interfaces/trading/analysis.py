"""
FastAPI router for technical analysis and decision data.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request

from tickerdesk.application.trading.analyze_trend import AnalyzeTrendUseCase
from tickerdesk.application.trading.dtos import RunTechnicalAnalysisCommand, TrendAnalysisCommand
from tickerdesk.application.trading.get_ai_decision_data import GetAIDecisionDataUseCase
from tickerdesk.application.trading.run_technical_analysis import RunTechnicalAnalysisUseCase
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.interfaces.trading.dependencies import (
    get_ai_decision_data_use_case,
    get_analyze_trend_use_case,
    get_current_user,
    get_run_technical_analysis_use_case,
)
from tickerdesk.interfaces.trading.mappers import (
    technical_analysis_response,
    trend_analysis_response,
)
from tickerdesk.interfaces.trading.schemas import (
    ErrorResponse,
    TechnicalAnalysisRequest,
    TechnicalAnalysisResponse,
    TrendAnalysisRequest,
    TrendAnalysisResponse,
)
from tickerdesk.shared.security.rate_limiting import HEAVY_RATE_LIMIT, limiter

router = APIRouter(tags=["analysis"], responses={401: {"model": ErrorResponse}})


@router.post(
    "/technical-analysis/{symbol}",
    response_model=TechnicalAnalysisResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Run technical analysis",
    description=(
        "Computes indicators from the given prices, or from stored price "
        "history when none are sent, and persists the result."
    ),
)
@limiter.limit(HEAVY_RATE_LIMIT)
def run_technical_analysis(
    request: Request,
    symbol: str,
    payload: TechnicalAnalysisRequest | None = None,
    user: UserAccount = Depends(get_current_user),
    use_case: RunTechnicalAnalysisUseCase = Depends(get_run_technical_analysis_use_case),
) -> TechnicalAnalysisResponse:
    payload = payload or TechnicalAnalysisRequest()
    analysis = use_case.execute(
        RunTechnicalAnalysisCommand(
            symbol=symbol,
            instrument=payload.instrument,
            prices=tuple(payload.prices),
        )
    )
    return technical_analysis_response(analysis)


@router.get(
    "/technical-analysis/{symbol}",
    response_model=TechnicalAnalysisResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Latest technical analysis",
)
def get_technical_analysis(
    symbol: str,
    user: UserAccount = Depends(get_current_user),
    use_case: RunTechnicalAnalysisUseCase = Depends(get_run_technical_analysis_use_case),
) -> TechnicalAnalysisResponse:
    return technical_analysis_response(use_case.get_latest(symbol))


@router.get(
    "/ai-decision-data/{symbol}",
    responses={404: {"model": ErrorResponse}},
    summary="Consolidated decision data",
    description="Price data, indicators and trading signals for one asset.",
)
def get_ai_decision_data(
    symbol: str,
    user: UserAccount = Depends(get_current_user),
    use_case: GetAIDecisionDataUseCase = Depends(get_ai_decision_data_use_case),
) -> dict[str, Any]:
    return use_case.execute(symbol)


@router.post(
    "/cryptos/trend-analysis",
    response_model=TrendAnalysisResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Drawdown and drawup analysis",
    description=(
        "Swing statistics over the given prices, or over stored price "
        "history when none are sent."
    ),
)
@limiter.limit(HEAVY_RATE_LIMIT)
def run_trend_analysis(
    request: Request,
    payload: TrendAnalysisRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: AnalyzeTrendUseCase = Depends(get_analyze_trend_use_case),
) -> TrendAnalysisResponse:
    result = use_case.execute(
        TrendAnalysisCommand(symbol=payload.symbol, prices=tuple(payload.prices))
    )
    return trend_analysis_response(result)
