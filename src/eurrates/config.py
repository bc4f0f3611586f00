"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from eurrates.models import RetryPolicy


class ExchangeSettings(BaseSettings):
    """Binance public REST API connection settings."""

    model_config = SettingsConfigDict(env_prefix="BINANCE_")

    base_url: str = "https://api.binance.com"
    request_timeout: float = 10.0  # price fetch
    probe_timeout: float = 5.0  # ping and exchangeInfo
    user_agent: str = "CryptoRatesAPI/1.0"


class RetrySettings(BaseSettings):
    """Backoff policy applied around the remote price fetch."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_attempts: int = 3
    base_delay: float = 1.0  # seconds, doubled per attempt

    def policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, base_delay=self.base_delay)


class StorageSettings(BaseSettings):
    """SQLite storage location and retention window."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/rates.db"
    retention_days: int = 30


class SchedulerSettings(BaseSettings):
    """Periodic update trigger configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    enabled: bool = True
    update_interval: int = 300  # seconds between update cycles
    run_on_start: bool = True


class ApiSettings(BaseSettings):
    """Query API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # or "json"
    exchange: ExchangeSettings = ExchangeSettings()
    retry: RetrySettings = RetrySettings()
    storage: StorageSettings = StorageSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    api: ApiSettings = ApiSettings()
