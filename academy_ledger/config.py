from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Academy Ledger API"
    app_version: str = "0.1.0"
    frontend_url: str = "http://localhost:3000"
    database_url: str = "sqlite:///./local.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout_seconds: float = 2.0
    log_level: str = "INFO"
    log_json: bool = False
    generation_lock_ttl_seconds: int = 60
    notification_webhook_url: str | None = None
    notification_timeout_seconds: int = 15
    reminder_batch_size: int = 5
    reminder_batch_delay_seconds: float = 0.5
    default_hub_daily_rate: Decimal = Decimal("100.00")
    organization_name: str = "Academy"
    public_invoice_base_url: str = "http://localhost:3000/invoice"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
