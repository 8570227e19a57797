from datetime import datetime, timezone

import pytest
import pytest_asyncio

from prompt_enhancer.config import Settings
from prompt_enhancer.services.database import DatabaseService
from prompt_enhancer.services.enhancement_orchestrator import EnhancementOrchestrator
from prompt_enhancer.services.quota_tracker import QuotaTracker
from prompt_enhancer.services.rate_limit_store import InMemoryRateLimitStore
from prompt_enhancer.services.session_store import InMemorySessionStore
from fakes import FakeClock, FakeCompletionClient


@pytest.fixture
def settings():
    return Settings(api_key="test-key", free_limit=10, premium_limit=100, storage_backend="memory")


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def rate_limit_store():
    return InMemoryRateLimitStore()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def completion_client():
    return FakeCompletionClient()


@pytest.fixture
def quota_tracker(rate_limit_store, clock, settings):
    return QuotaTracker(rate_limit_store, window=settings.window, clock=clock)


@pytest.fixture
def orchestrator(settings, quota_tracker, session_store, completion_client):
    return EnhancementOrchestrator(
        settings=settings,
        quota_tracker=quota_tracker,
        session_store=session_store,
        completion_client=completion_client,
    )


@pytest_asyncio.fixture
async def database(tmp_path):
    service = DatabaseService(f"sqlite+aiosqlite:///{tmp_path / 'enhancer.db'}")
    await service.initialize()
    yield service
    await service.close()
