from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Project Billing Engine"
    debug: bool = False

    # API
    frontend_url: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite+aiosqlite:///./billing.db"
    redis_url: str = "redis://localhost:6379"

    # Per-project serialization
    lock_backend: Literal["memory", "redis"] = "memory"  # env: LOCK_BACKEND
    lock_timeout_seconds: float = 10.0  # max wait to acquire a project lock
    lock_ttl_seconds: int = 30  # redis lock expiry, guards against crashed holders

    # Invoicing
    auto_settle_invoices: bool = True  # env: AUTO_SETTLE_INVOICES
    invoice_number_prefix: str = "INV"
    invoice_due_days: int = 7
    wallet_timeout_seconds: float = 5.0  # bound on a single ledger credit call


@lru_cache
def get_settings() -> Settings:
    return Settings()
