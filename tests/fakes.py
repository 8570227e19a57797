import asyncio
from datetime import datetime, timedelta

from prompt_enhancer.services.completion_client import Completion, CompletionClient


class FakeClock:
    """Settable clock for window tests"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeCompletionClient(CompletionClient):
    """Completion client returning a canned answer or raising a canned error"""

    def __init__(self, text="Enhanced prompt", error=None, configured=True, delay=0.0, response_time_ms=400):
        self.text = text
        self.error = error
        self.configured = configured
        self.delay = delay
        self.response_time_ms = response_time_ms
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, system_instructions: str, user_content: str) -> Completion:
        self.calls.append((system_instructions, user_content))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return Completion(text=self.text, response_time_ms=self.response_time_ms)

