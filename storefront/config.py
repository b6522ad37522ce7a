import os
import tempfile
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # pricing
    TAX_RATE: float = 0.18
    FREE_SHIPPING_THRESHOLD_CENTS: int = 50000
    SHIPPING_FEE_CENTS: int = 5000
    MAX_LINE_QUANTITY: int = 99

    # carts untouched for this long are purged
    CART_STALE_DAYS: int = 30
    CART_CLEANUP_INTERVAL_SECONDS: int = 3600

    PAYMENT_MOCK_DELAY_MS: int = 200

    LOCKS_DIR: str = os.path.join(tempfile.gettempdir(), "storefront_locks")
    LOCK_TIMEOUT_SECONDS: float = 10.0

    # client-side sync
    API_BASE_URL: str = "http://127.0.0.1:8000"
    SYNC_MAX_RETRIES: int = 3
    SYNC_BASE_DELAY_MS: int = 1000
    SYNC_MAX_DELAY_MS: int = 30000


settings = Settings()
