"""Application settings for the HostLedger marketplace backend."""
from __future__ import annotations

import secrets
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="HOSTLEDGER_", case_sensitive=False)

    app_name: str = "HostLedger"
    environment: Literal["development", "staging", "production"] = "development"
    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(48))
    log_level: str = "INFO"

    # Database
    data_dir: Path = Field(default_factory=lambda: Path.cwd() / "instance")
    database_url: str | None = None

    # Security
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 14

    # Marketplace
    currency: str = "PHP"
    default_plan: str = "starter"
    default_service_fee: Decimal = Decimal("0.10")
    refund_admin_deduction: Decimal = Decimal("0.10")
    payout_due_days: int = 7

    # PayPal payouts
    paypal_client_id: str | None = None
    paypal_client_secret: str | None = None
    paypal_environment: Literal["sandbox", "live"] = "sandbox"
    paypal_api_base: str | None = None
    paypal_simulate: bool = True
    paypal_payout_currency: str = "USD"
    paypal_usd_to_php: Decimal = Decimal("56.50")
    paypal_timeout_seconds: float | None = None

    # Task queue
    task_queue_backend: Literal["inline", "celery"] = "inline"
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    # Notifications
    smtp_host: str | None = None
    smtp_port: int = 25
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_from: str = "noreply@hostledger.app"

    # Rate limiting / monitoring
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60
    rate_limit_wallet_requests: int = 20
    rate_limit_storage_url: str | None = None
    redis_url: str | None = None
    sentry_dsn: str | None = None
    enable_prometheus: bool = True
    metrics_namespace: str = "hostledger"

    @property
    def resolved_database_url(self) -> str:
        """Return the configured database URL defaulting to a local SQLite file."""
        if self.database_url:
            return self.database_url

        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{(self.data_dir / 'hostledger.db').as_posix()}"

    @property
    def resolved_rate_limit_storage(self) -> str:
        if self.rate_limit_storage_url:
            return self.rate_limit_storage_url
        if self.redis_url:
            return f"redis://{self.redis_url.split('://')[-1]}"
        return "memory://"

    @property
    def resolved_paypal_api_base(self) -> str:
        if self.paypal_api_base:
            return self.paypal_api_base.rstrip("/")
        if self.paypal_environment == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
