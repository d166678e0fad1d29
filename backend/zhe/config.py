from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./zhe.db"

    # Cloudflare KV (edge redirect cache). Missing values disable the cache.
    CLOUDFLARE_ACCOUNT_ID: Optional[str] = None
    CLOUDFLARE_KV_NAMESPACE_ID: Optional[str] = None
    CLOUDFLARE_API_TOKEN: Optional[str] = None
    KV_API_BASE: str = "https://api.cloudflare.com/client/v4"
    KV_TIMEOUT_SECONDS: float = 3.0
    KV_BULK_BATCH_SIZE: int = 10_000

    # Sync
    SYNC_HISTORY_SIZE: int = 50
    SYNC_ON_STARTUP: bool = True
    WORKER_SECRET: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
