"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Symbols shown on the dashboard
    symbols: list[str] = ["HASH", "BTC", "ETH", "SOL", "XRP", "FIGR"]

    # Providers (first entry in precedence is the primary source)
    enabled_providers: list[str] = ["figure_markets", "coingecko", "yfinance"]
    provider_precedence: list[str] = ["figure_markets", "twelve_data", "coingecko", "yfinance"]

    # Provider endpoints and API keys
    figure_markets_base_url: str = "https://www.figuremarkets.com/service-hft-exchange/api/v1"
    twelve_data_base_url: str = "https://api.twelvedata.com"
    twelve_data_api_key: str = ""
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: str = ""
    exchange_rate_base_url: str = "https://api.frankfurter.app"

    # Fetch cycle policy
    fetch_deadline_seconds: float = 5.0
    request_timeout_seconds: float = 4.0
    max_retries: int = 2
    retry_backoff_multiplier: float = 1.0
    retry_backoff_max_seconds: float = 8.0
    refresh_interval_seconds: float = 30.0

    # Display defaults
    default_period: str = "24H"
    default_currency: str = "USD"
    supported_currencies: list[str] = ["USD", "EUR", "GBP", "JPY", "CAD", "CHF", "AUD"]

    # Holdings key-value store
    database_url: str = "sqlite:///./marketpulse.db"

    # Application
    log_level: str = "INFO"
    debug: bool = False

    # CORS
    allowed_origins: list[str] = ["http://localhost:8000", "http://localhost:5173"]

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


settings = Settings()
