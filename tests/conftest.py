"""
Shared fixtures.

Every test gets its own in-memory SQLite database. The exchange and
auth provider are replaced with in-process fakes so no network is used.
"""

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from tickerdesk.core.config import Settings as AppSettings
from tickerdesk.domain.trading.entities import (
    ExchangeCredentials,
    OrderReceipt,
    OrderRequest,
    UserAccount,
)
from tickerdesk.domain.trading.errors import UnauthorizedError
from tickerdesk.domain.trading.ports import AuthPort, ExchangeOrderPort
from tickerdesk.infrastructure.db.session import (
    build_engine,
    build_session_factory,
    create_schema,
)
from tickerdesk.interfaces.trading.dependencies import TradingContainer
from tickerdesk.shared.security.rate_limiting import limiter

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
TOKEN = "token-1"
OTHER_TOKEN = "token-2"


class FakeExchange(ExchangeOrderPort):
    """Accepts every order unless `error` is set, in which case it raises it."""

    def __init__(self) -> None:
        self.orders: list[OrderRequest] = []
        self.error: Optional[Exception] = None

    def add_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> OrderReceipt:
        self.orders.append(order)
        if self.error is not None:
            raise self.error
        order_id = f"O-{len(self.orders)}"
        return OrderReceipt(
            order_id=order_id,
            api_request={"pair": order.symbol, "volume": order.volume},
            api_response={"error": [], "result": {"txid": [order_id]}},
        )


class FakeAuth(AuthPort):
    def __init__(self, users: dict[str, UserAccount]) -> None:
        self._users = users

    def get_user(self, access_token: str) -> UserAccount:
        try:
            return self._users[access_token]
        except KeyError:
            raise UnauthorizedError() from None


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    create_schema(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def app_config() -> AppSettings:
    return AppSettings(
        database_url="sqlite://",
        enable_price_feeds=False,
        db_retry_base_delay=0.01,
        price_history_sample_seconds=60,
    )


@pytest.fixture
def exchange() -> FakeExchange:
    return FakeExchange()


@pytest.fixture
def container(session_factory, exchange, app_config) -> TradingContainer:
    auth = FakeAuth(
        {
            TOKEN: UserAccount(id=USER_ID, email="one@example.com"),
            OTHER_TOKEN: UserAccount(id=OTHER_USER_ID, email="two@example.com"),
        }
    )
    return TradingContainer(session_factory, exchange, auth, config=app_config)


@pytest.fixture
def client(container):
    from tickerdesk.main import create_app

    limiter.enabled = False
    app = create_app(container)
    with TestClient(app) as test_client:
        yield test_client
    limiter.enabled = True


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OTHER_TOKEN}"}
