# delivery_stats/config/settings.py
import os
import logging
from datetime import timedelta
from dotenv import load_dotenv
from typing import Dict, List, Optional

from ..domain.exceptions import ConfigurationError
from ..domain.models import KeyClass

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def _positive_number(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'.") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}.")
    return value


def _positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'.") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}.")
    return value


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        # SQLite store holding the orders and users tables
        self.DATABASE_PATH: str = os.getenv("DATABASE_PATH", "delivery.db")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.HTTP_HOST: str = os.getenv("HTTP_HOST", "0.0.0.0")
        self.HTTP_PORT: int = _positive_int("HTTP_PORT", "8000")

        self.ORDER_STATS_TTL_SECONDS: float = _positive_number("ORDER_STATS_TTL_SECONDS", "60")
        self.USER_STATS_TTL_SECONDS: float = _positive_number("USER_STATS_TTL_SECONDS", "60")
        self.DRIVER_ROSTER_TTL_SECONDS: float = _positive_number("DRIVER_ROSTER_TTL_SECONDS", "60")
        self.DRIVER_ROSTER_LIMIT: int = _positive_int("DRIVER_ROSTER_LIMIT", "1000")
        self.QUERY_TIMEOUT_SECONDS: float = _positive_number("QUERY_TIMEOUT_SECONDS", "5")
        self.CACHE_WARMUP_ENABLED: bool = _flag("CACHE_WARMUP_ENABLED", "true")

        # Telegram surface is optional and only starts when a token is set
        self.DASHBOARD_BOT_TOKEN: Optional[str] = os.getenv("DASHBOARD_BOT_TOKEN") or None
        self.ADMIN_USER_IDS: List[int] = []
        admin_user_ids_str = os.getenv("ADMIN_USER_IDS")
        if admin_user_ids_str:
            try:
                self.ADMIN_USER_IDS = [int(id_str.strip()) for id_str in admin_user_ids_str.split(',') if id_str.strip()]
            except ValueError:
                logger.error("Invalid ADMIN_USER_IDS format. Should be comma-separated integers.")

        self.DASHBOARD_API_URL: str = os.getenv("DASHBOARD_API_URL", f"http://localhost:{self.HTTP_PORT}")

        if self.DASHBOARD_BOT_TOKEN and not self.ADMIN_USER_IDS:
            logger.warning("ADMIN_USER_IDS is not set or is invalid. The Telegram dashboard will refuse every user.")

        logger.info("Settings loaded.")
        logger.info(f"Database Path: {self.DATABASE_PATH}")
        logger.info(f"Log Level: {self.LOG_LEVEL}")

    def ttl_for(self, key_class: KeyClass) -> timedelta:
        seconds = {
            KeyClass.ORDER_STATS: self.ORDER_STATS_TTL_SECONDS,
            KeyClass.USER_STATS: self.USER_STATS_TTL_SECONDS,
            KeyClass.DRIVER_ROSTER: self.DRIVER_ROSTER_TTL_SECONDS,
        }[key_class]
        return timedelta(seconds=seconds)

    @property
    def ttls(self) -> Dict[KeyClass, timedelta]:
        return {key: self.ttl_for(key) for key in KeyClass}


# Single instance of settings to be imported by other modules
settings = Settings()
