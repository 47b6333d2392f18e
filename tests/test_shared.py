"""
Tests for cross-cutting helpers: log redaction, rate limit keys, retry policy.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError
from starlette.requests import Request

from tickerdesk.shared.logging import REDACTED, SecretRedactingFilter, redact
from tickerdesk.shared.retry import db_retrying
from tickerdesk.shared.security.rate_limiting import rate_limit_key


def _request(headers: dict[str, str]) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/api/cryptos",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": ("10.0.0.7", 5000),
        }
    )


class TestRedaction:
    @pytest.mark.parametrize(
        "text, secret",
        [
            ("Authorization: Bearer eyJhbGciOi.abc", "eyJhbGciOi.abc"),
            ('{"API-Key": "kraken-key-1", "pair": "XBTUSD"}', "kraken-key-1"),
            ("api_sign=c2VjcmV0 nonce=1", "c2VjcmV0"),
            ("wss://ws.finnhub.io?token=fh123", "fh123"),
        ],
    )
    def test_secrets_masked(self, text, secret) -> None:
        masked = redact(text)
        assert secret not in masked
        assert REDACTED in masked

    def test_plain_text_untouched(self) -> None:
        assert redact("Executing buy order for 1.5 shares of BTC") == (
            "Executing buy order for 1.5 shares of BTC"
        )

    def test_filter_rewrites_formatted_record(self) -> None:
        record = logging.LogRecord(
            "tickerdesk.test", logging.INFO, __file__, 1,
            "Connecting to %s", ("wss://ws.finnhub.io?token=fh123",), None,
        )
        assert SecretRedactingFilter().filter(record) is True
        assert record.getMessage() == f"Connecting to wss://ws.finnhub.io?token={REDACTED}"

    def test_filter_keeps_args_when_clean(self) -> None:
        record = logging.LogRecord(
            "tickerdesk.test", logging.INFO, __file__, 1, "Stored %d points", (3,), None
        )
        SecretRedactingFilter().filter(record)
        assert record.args == (3,)


class TestRateLimitKey:
    def test_bearer_token_is_hashed(self) -> None:
        key = rate_limit_key(_request({"Authorization": "Bearer token-1"}))
        assert key.startswith("token:")
        assert "token-1" not in key

    def test_same_token_same_bucket(self) -> None:
        a = rate_limit_key(_request({"Authorization": "Bearer token-1"}))
        b = rate_limit_key(_request({"Authorization": "bearer token-1"}))
        assert a == b

    def test_anonymous_uses_address(self) -> None:
        assert rate_limit_key(_request({})) == "ip:10.0.0.7"


class TestDbRetrying:
    def test_retries_database_errors(self) -> None:
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("INSERT", {}, Exception("connection reset"))
            return "saved"

        result = None
        for attempt in db_retrying(attempts=3, base_delay=0.001):
            with attempt:
                result = flaky()
        assert result == "saved"
        assert len(calls) == 3

    def test_other_errors_propagate_immediately(self) -> None:
        calls = []
        with pytest.raises(ValueError):
            for attempt in db_retrying(attempts=3, base_delay=0.001):
                with attempt:
                    calls.append(1)
                    raise ValueError("bad row")
        assert len(calls) == 1

    def test_last_error_reraised(self) -> None:
        with pytest.raises(OperationalError):
            for attempt in db_retrying(attempts=2, base_delay=0.001):
                with attempt:
                    raise OperationalError("INSERT", {}, Exception("down"))
