"""
FastAPI router for per-user settings.
"""

from fastapi import APIRouter, Depends

from tickerdesk.application.trading.dtos import UpdateSettingsCommand
from tickerdesk.application.trading.manage_settings import ManageSettingsUseCase
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.interfaces.trading.dependencies import (
    get_current_user,
    get_manage_settings_use_case,
)
from tickerdesk.interfaces.trading.mappers import settings_response
from tickerdesk.interfaces.trading.schemas import (
    ErrorResponse,
    SettingsResponse,
    SettingsUpdateRequest,
)

router = APIRouter(tags=["settings"], responses={401: {"model": ErrorResponse}})


@router.get(
    "/settings",
    response_model=SettingsResponse,
    summary="Get settings",
    description="Returns the user's settings, creating defaults on first access.",
)
def get_settings(
    user: UserAccount = Depends(get_current_user),
    use_case: ManageSettingsUseCase = Depends(get_manage_settings_use_case),
) -> SettingsResponse:
    return settings_response(use_case.get(user.id))


@router.put(
    "/settings",
    response_model=SettingsResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Update settings",
)
def update_settings(
    request: SettingsUpdateRequest,
    user: UserAccount = Depends(get_current_user),
    use_case: ManageSettingsUseCase = Depends(get_manage_settings_use_case),
) -> SettingsResponse:
    saved = use_case.update(UpdateSettingsCommand(user_id=user.id, **request.model_dump()))
    return settings_response(saved)
