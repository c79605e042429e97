import asyncio

import pytest

from greyrock.errors import ModelNotFoundError, ProviderRateLimitError
from greyrock.providers.base import build_analysis
from greyrock.registry import Dispatcher, ProviderRegistry
from greyrock.schemas import AdapterKind, ModelDescriptor, ModelFailure, ModelSuccess
from greyrock.settings import Settings

from conftest import SCENARIO_COMPLETION, SCENARIO_TEXT, TEST_CATALOG, FakeAdapter


def test_registry_lookup_and_order(registry):
    assert [d.id for d in registry] == ["model-a", "model-b", "model-c"]
    assert registry.get("model-b").model == "gpt-b"
    assert "model-c" in registry
    assert "model-z" not in registry
    assert len(registry) == 3


def test_registry_unknown_id_raises(registry):
    with pytest.raises(ModelNotFoundError):
        registry.get("model-z")


def test_registry_rejects_duplicate_ids():
    with pytest.raises(ValueError):
        ProviderRegistry(TEST_CATALOG + [TEST_CATALOG[0]])


def test_default_catalog_loads():
    registry = ProviderRegistry.from_catalog(Settings().model_catalog)
    assert "claude-sonnet-4" in registry
    assert registry.get("gpt-5").provider == AdapterKind.OPENAI
    assert registry.get("gemini-2.5-flash").label() == "Gemini 2.5 Flash"


def test_label_falls_back_to_provider_and_model():
    descriptor = ModelDescriptor(id="x", provider=AdapterKind.OPENAI, model="gpt-x")
    assert descriptor.label() == "openai - gpt-x"


def test_list_available_models(dispatcher):
    assert [m.id for m in dispatcher.list_available_models()] == ["model-a", "model-b", "model-c"]


def test_no_ids_uses_default(dispatcher, adapters):
    for model_ids in (None, []):
        results = asyncio.run(dispatcher.analyze_many(model_ids, SCENARIO_TEXT))
        assert len(results) == 1
        assert results[0].model_id == "model-a"
        assert isinstance(results[0], ModelSuccess)
    assert adapters[AdapterKind.OPENAI].calls == []


def test_success_carries_identity(dispatcher):
    result = asyncio.run(dispatcher.analyze_one("model-b", SCENARIO_TEXT))
    assert isinstance(result, ModelSuccess)
    assert result.model_id == "model-b"
    assert result.display_name == "Model B"
    assert result.provider == "openai"
    assert result.model == "gpt-b"


def test_unknown_id_becomes_failure(dispatcher):
    results = asyncio.run(dispatcher.analyze_many(["model-a", "nope", "model-c"], SCENARIO_TEXT))
    assert [r.model_id for r in results] == ["model-a", "nope", "model-c"]
    failures = [r for r in results if isinstance(r, ModelFailure)]
    assert len(failures) == 1
    assert failures[0].model_id == "nope"
    assert failures[0].error == "Model nope not found"


def test_order_follows_request_not_completion(registry):
    adapters = {
        AdapterKind.CLAUDE: FakeAdapter("claude", delays={"claude-a": 0.2}),
        AdapterKind.OPENAI: FakeAdapter("openai"),
        AdapterKind.GEMINI: FakeAdapter("gemini", delays={"gemini-c": 0.05}),
    }
    dispatcher = Dispatcher(registry, adapters, default_model_id="model-a")
    results = asyncio.run(dispatcher.analyze_many(["model-a", "model-c", "model-b"], SCENARIO_TEXT))
    assert [r.model_id for r in results] == ["model-a", "model-c", "model-b"]


class GatedAdapter:
    """Each call waits until `expected` calls are in flight at the same time."""

    def __init__(self, provider_name, gate):
        self.provider_name = provider_name
        self.gate = gate

    async def analyze(self, text, model):
        self.gate["in_flight"] += 1
        if self.gate["in_flight"] == self.gate["expected"]:
            self.gate["all_started"].set()
        # Sequential dispatch would never reach `expected` and time out here
        await asyncio.wait_for(self.gate["all_started"].wait(), timeout=5)
        return build_analysis(SCENARIO_COMPLETION, text, self.provider_name, model)


def test_calls_run_concurrently(registry):
    async def run():
        gate = {"in_flight": 0, "expected": 3, "all_started": asyncio.Event()}
        adapters = {
            AdapterKind.CLAUDE: GatedAdapter("claude", gate),
            AdapterKind.OPENAI: GatedAdapter("openai", gate),
            AdapterKind.GEMINI: GatedAdapter("gemini", gate),
        }
        dispatcher = Dispatcher(registry, adapters, default_model_id="model-a")
        return await dispatcher.analyze_many(["model-a", "model-b", "model-c"], SCENARIO_TEXT), gate

    results, gate = asyncio.run(run())
    assert gate["in_flight"] == 3
    assert all(isinstance(r, ModelSuccess) for r in results)


def test_default_model_id_is_required(registry, adapters):
    with pytest.raises(TypeError):
        Dispatcher(registry, adapters)


def test_partial_failure_keeps_other_results(registry):
    adapters = {
        AdapterKind.CLAUDE: FakeAdapter("claude", outcomes={
            "claude-a": ProviderRateLimitError("claude rate limit", provider="claude", model="claude-a"),
        }),
        AdapterKind.OPENAI: FakeAdapter("openai", delays={"gpt-b": 0.05}),
        AdapterKind.GEMINI: FakeAdapter("gemini", outcomes={"gemini-c": RuntimeError("boom")}),
    }
    dispatcher = Dispatcher(registry, adapters, default_model_id="model-a")
    results = asyncio.run(dispatcher.analyze_many(["model-a", "model-b", "model-c"], SCENARIO_TEXT))

    first, second, third = results
    assert isinstance(first, ModelFailure)
    assert first.error == "claude rate limit"
    assert first.retryable is True
    assert first.display_name == "Model A"
    assert (first.provider, first.model) == ("claude", "claude-a")
    assert isinstance(second, ModelSuccess)
    assert isinstance(third, ModelFailure)
    assert third.error == "boom"
    assert third.retryable is False


def test_unparseable_completion_is_failure(registry):
    adapters = {AdapterKind.CLAUDE: FakeAdapter("claude", default="no json here")}
    dispatcher = Dispatcher(registry, adapters, default_model_id="model-a")
    result = asyncio.run(dispatcher.analyze_one("model-a", SCENARIO_TEXT))
    assert isinstance(result, ModelFailure)
    assert "No JSON found" in result.error


def test_missing_adapter_is_failure(registry):
    dispatcher = Dispatcher(registry, {AdapterKind.CLAUDE: FakeAdapter("claude")}, default_model_id="model-a")
    result = asyncio.run(dispatcher.analyze_one("model-c", SCENARIO_TEXT))
    assert isinstance(result, ModelFailure)
    assert "No adapter configured" in result.error


def test_duplicate_ids_are_each_analyzed(dispatcher, adapters):
    results = asyncio.run(dispatcher.analyze_many(["model-a", "model-a"], SCENARIO_TEXT))
    assert len(results) == 2
    assert len(adapters[AdapterKind.CLAUDE].calls) == 2


def test_analyze_strict_propagates(registry):
    error = ProviderRateLimitError("limited", provider="claude", model="claude-a")
    dispatcher = Dispatcher(registry, {AdapterKind.CLAUDE: FakeAdapter("claude", outcomes={"claude-a": error})},
                            default_model_id="model-a")
    with pytest.raises(ProviderRateLimitError):
        asyncio.run(dispatcher.analyze_strict("model-a", SCENARIO_TEXT))
    with pytest.raises(ModelNotFoundError):
        asyncio.run(dispatcher.analyze_strict("nope", SCENARIO_TEXT))


def test_bad_highlight_offsets_do_not_discard_analysis(registry):
    completion = (
        '{"emotions":{"summary":["anger"],"highlights":['
        '{"text":"never","reason":"absolute language","start":4,"end":9},'
        '{"text":"listen","start":null,"end":null},'
        '{"text":"nowhere","reason":"x","start":2.5},'
        '"junk"]},'
        '"greyRock":{"text":"Noted.","explanation":"Removed accusation."},'
        '"yellowRock":{"text":"Understood, thank you.","explanation":"Added courtesy marker."}}'
    )
    dispatcher = Dispatcher(registry, {AdapterKind.CLAUDE: FakeAdapter("claude", default=completion)},
                            default_model_id="model-a")
    result = asyncio.run(dispatcher.analyze_one("model-a", SCENARIO_TEXT))

    assert isinstance(result, ModelSuccess)
    assert [(h.text, h.start, h.end) for h in result.emotions.highlights] == [
        ("never", 4, 9),
        ("listen", 10, 16),
    ]
    assert result.grey_rock.text == "Noted."
