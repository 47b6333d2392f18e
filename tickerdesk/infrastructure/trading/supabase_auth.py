"""
Adapter: Supabase session validation.

Implements AuthPort by asking the hosted auth service who owns a
bearer token (`GET /auth/v1/user`).
"""

import logging
from typing import Optional

import httpx

from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.domain.trading.errors import UnauthorizedError
from tickerdesk.domain.trading.ports import AuthPort

logger = logging.getLogger(__name__)


class SupabaseAuthAdapter(AuthPort):
    def __init__(
        self,
        base_url: str,
        anon_key: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout
        self._transport = transport

    def get_user(self, access_token: str) -> UserAccount:
        if not access_token:
            raise UnauthorizedError()

        headers = {"Authorization": f"Bearer {access_token}"}
        if self._anon_key:
            headers["apikey"] = self._anon_key
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(f"{self._base_url}/auth/v1/user", headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Auth service unreachable: %s", type(exc).__name__)
            raise UnauthorizedError() from exc

        if response.status_code != 200:
            logger.info("Auth service rejected token (HTTP %d)", response.status_code)
            raise UnauthorizedError()

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Auth service returned a non-JSON body")
            raise UnauthorizedError() from exc
        if not isinstance(payload, dict):
            logger.warning("Auth service returned an unexpected %s body", type(payload).__name__)
            raise UnauthorizedError()

        user_id = payload.get("id")
        if not user_id or not isinstance(user_id, str):
            raise UnauthorizedError()
        email = payload.get("email")
        return UserAccount(id=user_id, email=email if isinstance(email, str) else None)
