"""
Configuration and application state management.
"""

import os
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .fetcher import Fetcher

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    USER_AGENT: str = os.getenv("USER_AGENT", "newsletter-export/1.0 (+desktop)")
    FETCH_TIMEOUT: int = int(os.getenv("FETCH_TIMEOUT", "30"))

    # Post and cover downloads retry this many times (attempts = retries + 1)
    RETRIES_PER_REQUEST: int = int(os.getenv("RETRIES_PER_REQUEST", "3"))
    FEED_RETRIES: int = int(os.getenv("FEED_RETRIES", "2"))
    RETRY_BASE_DELAY: float = float(os.getenv("RETRY_BASE_DELAY", "0.35"))  # seconds

    # Resolve hostnames when validating outbound URLs
    RESOLVE_DNS: bool = _parse_bool(os.getenv("RESOLVE_DNS"), default=True)

    PORT: int = int(os.getenv("PORT", "5010"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


config = Config()


class AppState:
    """Shared application state."""
    fetcher: "Fetcher | None" = None


state = AppState()


def get_fetcher() -> "Fetcher":
    """Dependency to get the shared fetcher instance."""
    if not state.fetcher:
        raise HTTPException(status_code=500, detail="Fetcher not initialized")
    return state.fetcher
