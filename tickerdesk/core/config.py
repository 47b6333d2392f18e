"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here, including exchange endpoints,
feed toggles and the auto-trade tuning knobs.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        rate_limit_default: Default rate limit for all endpoints.
        rate_limit_heavy: Rate limit for order execution and analysis runs.
        database_url: Full SQLAlchemy URL. Overrides the postgres_* parts.
        db_retry_attempts: Attempts for retried database writes.
        db_retry_base_delay: First back-off delay in seconds (doubles per retry).
        supabase_url: Base URL of the hosted auth provider.
        supabase_anon_key: Public API key sent alongside user tokens.
        enable_price_feeds: Start the Finnhub/Kraken feeds on startup.
        auto_trade_check_seconds: Minimum gap between auto-trade passes per symbol.
        auto_trade_lock_expiry_seconds: Age after which a lock row is stale.
        default_auto_buy_value: USD spent by an auto buy with no sizing settings.
        trend_analysis_window: Stored prices read by a drawdown/drawup run.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    project_name: str = "TickerDesk"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_default: str = "60/minute"
    rate_limit_heavy: str = "10/minute"
    rate_limit_enabled: bool = True

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "tickerdesk"
    db_echo: bool = False
    db_retry_attempts: int = 3
    db_retry_base_delay: float = 1.0

    # Auth provider
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: Optional[str] = None
    auth_timeout_seconds: float = 5.0

    # Market data
    enable_price_feeds: bool = False
    finnhub_websocket_url: str = "wss://ws.finnhub.io"
    finnhub_api_key: Optional[str] = None
    kraken_websocket_url: str = "wss://ws.kraken.com/v2"
    feed_reconnect_delay_seconds: float = 5.0
    feed_max_reconnect_delay_seconds: float = 60.0
    price_history_sample_seconds: float = 60.0
    symbol_refresh_seconds: float = 60.0

    # Exchange
    kraken_api_url: str = "https://api.kraken.com"
    order_timeout_seconds: float = 10.0

    # Auto-trading
    auto_trade_lock_expiry_seconds: int = 300
    default_auto_buy_value: float = 100.0
    auto_trade_check_seconds: float = 10.0
    technical_analysis_window: int = 200
    trend_analysis_window: int = 500

    def get_database_url(self) -> str:
        """Return the effective SQLAlchemy database URL.

        Priority:
        1. Explicit `DATABASE_URL`
        2. Build a psycopg2 URL from the postgres_* values
        """
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
