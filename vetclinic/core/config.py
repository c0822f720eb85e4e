from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "postgresql+psycopg://postgres:postgres@db:5432/vetclinic"
    database_echo: bool = False
    app_env: str = "dev"
    app_cors_origins: str = "*"
    auth_secret: str = "change-me"
    auth_cookie_name: str = "vetclinic_session"
    auth_session_hours: float = 12
    currency: str = "MAD"
    # StockMovement.reason that marks an "in" movement as a supplier purchase
    stock_purchase_reason: str = "Achat fournisseur"
    # Realtime resubscribe backoff, seconds
    realtime_backoff_base: float = 1.0
    realtime_backoff_max: float = 30.0


settings = Settings()
