import os
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

from prompt_enhancer.models.enhancement import Tier

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Configuration for the enhancement subsystem.
    Built once at startup and passed to the services that need it.
    """
    api_key: Optional[str] = None
    model_name: str = "gemini-2.5-flash-lite"
    max_output_tokens: int = 1024
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    free_limit: int = 10
    premium_limit: int = 100
    window_minutes: int = 60
    max_content_length: int = 10000
    storage_backend: str = "database"
    database_url: Optional[str] = None

    def __post_init__(self):
        if self.free_limit < 0 or self.premium_limit < 0:
            raise ValueError("rate limits must be >= 0")
        if self.window_minutes <= 0:
            raise ValueError("window_minutes must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_content_length <= 0:
            raise ValueError("max_content_length must be > 0")
        if self.storage_backend not in ("database", "memory"):
            raise ValueError("storage_backend must be 'database' or 'memory'")

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.window_minutes)

    def limit_for(self, tier: Tier) -> int:
        """Quota ceiling for a subscription tier."""
        if tier == Tier.PREMIUM:
            return self.premium_limit
        return self.free_limit

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from environment variables (and a .env file if present)."""
        if load_env_file:
            load_dotenv()

        api_key = os.getenv("GEMINI_API_KEY") or None
        if not api_key:
            logger.warning("GEMINI_API_KEY not found. Enhancement calls will be rejected until it is set.")

        return cls(
            api_key=api_key,
            model_name=os.getenv("ENHANCEMENT_MODEL", cls.model_name),
            max_output_tokens=_env_int("ENHANCEMENT_MAX_OUTPUT_TOKENS", cls.max_output_tokens),
            temperature=_env_float("ENHANCEMENT_TEMPERATURE", cls.temperature),
            timeout_seconds=_env_float("ENHANCEMENT_TIMEOUT_SECONDS", cls.timeout_seconds),
            free_limit=_env_int("ENHANCEMENT_RATE_LIMIT_FREE", cls.free_limit),
            premium_limit=_env_int("ENHANCEMENT_RATE_LIMIT_PREMIUM", cls.premium_limit),
            window_minutes=_env_int("RATE_LIMIT_WINDOW_MINUTES", cls.window_minutes),
            max_content_length=_env_int("MAX_CONTENT_LENGTH", cls.max_content_length),
            storage_backend=os.getenv("STORAGE_BACKEND", cls.storage_backend).lower(),
            database_url=os.getenv("DATABASE_URL") or None,
        )
