import asyncio
import os

# Must be set before greyrock.settings is imported
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest

from greyrock.providers.base import build_analysis
from greyrock.registry import Dispatcher, ProviderRegistry
from greyrock.schemas import AdapterKind, ModelDescriptor

SCENARIO_TEXT = "You never listen to me!"
SCENARIO_COMPLETION = (
    '\n```json\n'
    '{"emotions":{"summary":["anger"],"highlights":[{"text":"never","reason":"absolute language",'
    '"start":4,"end":9}]},"greyRock":{"text":"Noted.","explanation":"Removed accusation."},'
    '"yellowRock":{"text":"Understood, thank you.","explanation":"Added courtesy marker."}}'
    '\n```\n'
)


class FakeAdapter:
    """
    Stands in for a backend. `outcomes` maps a concrete model name to either a
    raw completion string or an exception to raise; `delays` slows a model down.
    """

    def __init__(self, provider_name, outcomes=None, delays=None, default=SCENARIO_COMPLETION):
        self.provider_name = provider_name
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.default = default
        self.calls = []

    async def analyze(self, text, model):
        self.calls.append((text, model))
        delay = self.delays.get(model)
        if delay:
            await asyncio.sleep(delay)
        outcome = self.outcomes.get(model, self.default)
        if isinstance(outcome, BaseException):
            raise outcome
        return build_analysis(outcome, text, self.provider_name, model)


TEST_CATALOG = [
    ModelDescriptor(id="model-a", provider=AdapterKind.CLAUDE, model="claude-a", display_name="Model A"),
    ModelDescriptor(id="model-b", provider=AdapterKind.OPENAI, model="gpt-b", display_name="Model B"),
    ModelDescriptor(id="model-c", provider=AdapterKind.GEMINI, model="gemini-c", display_name="Model C"),
]


@pytest.fixture
def registry():
    return ProviderRegistry(TEST_CATALOG)


@pytest.fixture
def adapters():
    return {
        AdapterKind.CLAUDE: FakeAdapter("claude"),
        AdapterKind.OPENAI: FakeAdapter("openai"),
        AdapterKind.GEMINI: FakeAdapter("gemini"),
    }


@pytest.fixture
def dispatcher(registry, adapters):
    return Dispatcher(registry, adapters, default_model_id="model-a")
