from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Dict


DEFAULT_TIER_PRICES: Dict[str, str] = {
    "megajob": "Free",
    "premium": "Free",
    "prime": "Free",
    "latest": "Free",
    "newspaper": "Free",
}


class Settings(BaseSettings):
    # Key-value storage for client-scoped state (conversations, unread counts)
    redis_url: str = "redis://localhost:6379"

    # Upstream marketplace REST API
    marketplace_api_url: str = "http://localhost:5000/api"
    marketplace_timeout_seconds: float = 15.0

    # Enum fallbacks for unrecognized input
    tier_fallback: str = "latest"
    job_status_fallback: str = "active"
    application_status_fallback: str = "pending"
    warn_on_unmapped_enums: bool = True

    # Formatted price per tier, e.g. "Free" or "Rs. 5,000"
    tier_prices: Dict[str, str] = dict(DEFAULT_TIER_PRICES)

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
