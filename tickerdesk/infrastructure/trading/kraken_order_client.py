"""
Adapter: Kraken REST order submission.

Implements ExchangeOrderPort against the private AddOrder endpoint.
Requests are signed with the user's API secret:

    API-Sign = base64(HMAC-SHA512(base64decode(secret), path + SHA256(nonce + body)))

Exchange-side rejections are classified into a small set of error
types with messages a dashboard user can act on.
"""

import base64
import hashlib
import hmac
import logging
import time
import uuid
from decimal import ROUND_DOWN, Decimal
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import httpx

from tickerdesk.domain.trading.entities import (
    ExchangeCredentials,
    OrderReceipt,
    OrderRequest,
)
from tickerdesk.domain.trading.errors import (
    ExchangeOrderError,
    ExchangeUnavailableError,
)
from tickerdesk.domain.trading.ports import ExchangeOrderPort
from tickerdesk.infrastructure.trading.kraken_feed import kraken_trading_pair

logger = logging.getLogger(__name__)

ADD_ORDER_PATH = "/0/private/AddOrder"
REDACTED = "[REDACTED]"
ORDER_DECIMALS = 8

# (substring in Kraken's error list, error type, user-facing message)
ERROR_CLASSIFICATION = (
    (
        "Invalid API key",
        "invalid_api_key",
        "Your Kraken API key appears to be invalid. Please check your settings "
        "and update your API credentials.",
    ),
    (
        "Invalid signature",
        "invalid_signature",
        "Your Kraken API signature is invalid. Please check your settings "
        "and update your API credentials.",
    ),
    (
        "Permission denied",
        "permission_denied",
        "Your Kraken API key does not have permission to perform this action. "
        "Please ensure your API key has trading permissions.",
    ),
    (
        "Insufficient funds",
        "insufficient_funds",
        "You have insufficient funds in your Kraken account to complete this trade.",
    ),
    (
        "Rate limit exceeded",
        "rate_limit",
        "Rate limit exceeded for Kraken API. Please try again in a few minutes.",
    ),
)


def sign_request(path: str, nonce: str, body: str, secret: str) -> str:
    """Compute the API-Sign header value for a private Kraken call."""
    sha256_digest = hashlib.sha256((nonce + body).encode()).digest()
    mac = hmac.new(base64.b64decode(secret), path.encode() + sha256_digest, hashlib.sha512)
    return base64.b64encode(mac.digest()).decode()


def classify_error(errors: list[str], default_message: str) -> tuple[str, str]:
    """Map Kraken's error strings to (error_type, user message)."""
    joined = ", ".join(errors)
    for needle, error_type, message in ERROR_CLASSIFICATION:
        if needle in joined:
            return error_type, message
    return "unknown", default_message


def format_decimal(value: float, places: int = ORDER_DECIMALS) -> str:
    """Plain decimal text for Kraken, truncated to `places` digits.

    Kraken rejects exponent notation, which str(float) produces below 1e-4.
    """
    step = Decimal(1).scaleb(-places)
    quantized = Decimal(repr(float(value))).quantize(step, rounding=ROUND_DOWN)
    text = format(quantized, "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def _default_nonce() -> str:
    return str(int(time.time() * 1000))


class KrakenOrderClient(ExchangeOrderPort):
    """Submits orders to Kraken over HTTPS.

    Args:
        base_url: Kraken REST root, e.g. https://api.kraken.com.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, used by tests.
        nonce_factory: Returns a strictly increasing nonce string.
    """

    def __init__(
        self,
        base_url: str = "https://api.kraken.com",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
        nonce_factory: Callable[[], str] = _default_nonce,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._nonce_factory = nonce_factory

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}{ADD_ORDER_PATH}"

    def add_order(
        self, credentials: ExchangeCredentials, order: OrderRequest
    ) -> OrderReceipt:
        nonce = self._nonce_factory()
        form = {
            "nonce": nonce,
            "ordertype": order.order_type or "market",
            "type": order.action.value,
            "volume": format_decimal(order.volume),
            "pair": kraken_trading_pair(order.symbol),
            "price": format_decimal(order.price),
            "cl_ord_id": str(uuid.uuid4()),
        }
        body = urlencode(form)
        headers = {
            "API-Key": credentials.api_key,
            "API-Sign": sign_request(ADD_ORDER_PATH, nonce, body, credentials.api_secret),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        api_request: dict[str, Any] = {
            "endpoint": self.endpoint,
            "method": "POST",
            "headers": {
                "API-Key": REDACTED,
                "Content-Type": headers["Content-Type"],
            },
            "body": body,
            "pair": form["pair"],
            "client_order_id": form["cl_ord_id"],
        }

        logger.info(
            "Submitting %s %s order: pair=%s volume=%s",
            order.order_type,
            order.action.value,
            form["pair"],
            form["volume"],
        )
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self.endpoint, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Kraken request failed: %s", type(exc).__name__)
            raise ExchangeUnavailableError(str(exc), api_request=api_request) from exc

        if response.status_code >= 400:
            logger.error("Kraken HTTP error: %d", response.status_code)
            raise ExchangeUnavailableError(
                f"HTTP {response.status_code}", api_request=api_request
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExchangeUnavailableError(
                "invalid response format", api_request=api_request
            ) from exc

        errors = payload.get("error") or []
        if errors:
            error_type, message = classify_error(
                errors,
                f"Failed to execute {order.action.value} order for {order.volume} "
                f"shares of {order.symbol} at ${order.price}",
            )
            logger.warning("Kraken rejected order (%s): %s", error_type, ", ".join(errors))
            raise ExchangeOrderError(
                message,
                error_type=error_type,
                api_request=api_request,
                api_response=payload,
            )

        txids = (payload.get("result") or {}).get("txid") or []
        order_id = txids[0] if txids else form["cl_ord_id"]
        return OrderReceipt(order_id=order_id, api_request=api_request, api_response=payload)
