from datetime import timedelta

import pytest

from prompt_enhancer.config import Settings
from prompt_enhancer.models.enhancement import Tier

ENV_VARS = [
    "GEMINI_API_KEY",
    "ENHANCEMENT_MODEL",
    "ENHANCEMENT_MAX_OUTPUT_TOKENS",
    "ENHANCEMENT_TEMPERATURE",
    "ENHANCEMENT_TIMEOUT_SECONDS",
    "ENHANCEMENT_RATE_LIMIT_FREE",
    "ENHANCEMENT_RATE_LIMIT_PREMIUM",
    "RATE_LIMIT_WINDOW_MINUTES",
    "MAX_CONTENT_LENGTH",
    "STORAGE_BACKEND",
    "DATABASE_URL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestSettings:

    def test_defaults(self, clean_env):
        settings = Settings.from_env(load_env_file=False)

        assert settings.api_key is None
        assert settings.free_limit == 10
        assert settings.premium_limit == 100
        assert settings.window == timedelta(hours=1)
        assert settings.model_name == "gemini-2.5-flash-lite"
        assert settings.max_output_tokens == 1024
        assert settings.temperature == 0.7
        assert settings.storage_backend == "database"

    def test_from_environment(self, clean_env):
        clean_env.setenv("GEMINI_API_KEY", "key-123")
        clean_env.setenv("ENHANCEMENT_RATE_LIMIT_FREE", "5")
        clean_env.setenv("ENHANCEMENT_RATE_LIMIT_PREMIUM", "50")
        clean_env.setenv("RATE_LIMIT_WINDOW_MINUTES", "30")
        clean_env.setenv("STORAGE_BACKEND", "MEMORY")
        clean_env.setenv("DATABASE_URL", "sqlite+aiosqlite:///enhancer.db")

        settings = Settings.from_env(load_env_file=False)

        assert settings.api_key == "key-123"
        assert settings.limit_for(Tier.FREE) == 5
        assert settings.limit_for(Tier.PREMIUM) == 50
        assert settings.window == timedelta(minutes=30)
        assert settings.storage_backend == "memory"
        assert settings.database_url == "sqlite+aiosqlite:///enhancer.db"

    def test_invalid_integer(self, clean_env):
        clean_env.setenv("ENHANCEMENT_RATE_LIMIT_FREE", "ten")
        with pytest.raises(ValueError, match="ENHANCEMENT_RATE_LIMIT_FREE"):
            Settings.from_env(load_env_file=False)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            Settings(window_minutes=0)

    def test_negative_limit(self):
        with pytest.raises(ValueError):
            Settings(free_limit=-1)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            Settings(storage_backend="redis")
