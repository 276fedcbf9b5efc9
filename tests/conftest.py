"""
Shared fixtures: an in-memory store with a deterministic clock and a
scripted stand-in for the OpenAI-compatible completion client.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from backend.agent.llm_provider import IntentCompletion
from backend.config import LLMSettings
from backend.state import AppStore

BASE_TIME = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns a strictly increasing instant on every call."""

    def __init__(self, start=BASE_TIME, step=timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self):
        value = self.current
        self.current = self.current + self.step
        return value


class ScriptedCompletions:
    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self.outputs:
            raise AssertionError("no scripted completion left")
        item = self.outputs.pop(0)
        if isinstance(item, Exception):
            raise item
        # None scripts a choice that carries no message at all
        message = SimpleNamespace(content=item) if item is not None else None
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


class ScriptedClient:
    def __init__(self, outputs):
        self.completions = ScriptedCompletions(outputs)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def store():
    return AppStore(data_file=None, clock=SteppingClock())


@pytest.fixture
def llm_settings():
    return LLMSettings(api_key="test-key", model="test-model")


@pytest.fixture
def make_completion(llm_settings):
    def factory(*outputs):
        client = ScriptedClient(outputs)
        return IntentCompletion(llm_settings, client=client), client
    return factory
