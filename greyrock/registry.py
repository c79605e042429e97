"""Model catalog and the concurrent fan-out over it."""
import asyncio
import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from greyrock.errors import ModelNotFoundError, ProviderError
from greyrock.providers.base import Analyzer
from greyrock.schemas import AdapterKind, ModelDescriptor, ModelFailure, ModelResult, ModelSuccess

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Read-only mapping of model id to descriptor, in catalog order."""

    def __init__(self, descriptors: Iterable[ModelDescriptor]):
        models: Dict[str, ModelDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in models:
                raise ValueError(f"Duplicate model id in catalog: {descriptor.id}")
            models[descriptor.id] = descriptor
        self._models = MappingProxyType(models)

    @classmethod
    def from_catalog(cls, catalog: Iterable[Mapping]) -> "ProviderRegistry":
        return cls(ModelDescriptor.model_validate(entry) for entry in catalog)

    def get(self, model_id: str) -> ModelDescriptor:
        try:
            return self._models[model_id]
        except KeyError:
            raise ModelNotFoundError(model_id) from None

    def __contains__(self, model_id) -> bool:
        return model_id in self._models

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)


class Dispatcher:
    def __init__(
            self,
            registry: ProviderRegistry,
            adapters: Mapping[AdapterKind, Analyzer],
            default_model_id: str,
    ):
        self.registry = registry
        self.adapters = dict(adapters)
        self.default_model_id = default_model_id
        if default_model_id not in registry:
            logger.warning("Default model %s is not in the catalog", default_model_id)

    def list_available_models(self) -> List[ModelDescriptor]:
        return list(self.registry)

    def _adapter_for(self, descriptor: ModelDescriptor) -> Analyzer:
        adapter = self.adapters.get(descriptor.provider)
        if adapter is None:
            raise ProviderError(500, f"No adapter configured for {descriptor.provider.value}",
                                provider=descriptor.provider.value, model=descriptor.model, retryable=False)
        return adapter

    async def analyze_strict(self, model_id: str, text: str) -> ModelSuccess:
        """Analyze with one model and let any failure propagate."""
        descriptor = self.registry.get(model_id)
        adapter = self._adapter_for(descriptor)
        analysis = await adapter.analyze(text, descriptor.model)
        return ModelSuccess(
            **analysis.model_dump(),
            model_id=model_id,
            display_name=descriptor.label(),
        )

    async def analyze_one(self, model_id: str, text: str) -> ModelResult:
        """Analyze with one model. Never raises: failures become a ModelFailure."""
        try:
            descriptor = self.registry.get(model_id)
        except ModelNotFoundError as e:
            logger.warning("Requested unknown model %s", model_id)
            return ModelFailure(model_id=model_id, display_name=model_id, error=str(e))

        try:
            return await self.analyze_strict(model_id, text)
        except ProviderError as e:
            logger.warning("Model %s failed (%s/%s, status=%s, retryable=%s): %s",
                           model_id, descriptor.provider.value, descriptor.model,
                           e.status_code, e.retryable, e.detail)
            return self._failure(descriptor, str(e.detail) or "Analysis failed", e.retryable)
        except Exception as e:
            logger.error("Unexpected error analyzing with %s: %s", model_id, e, exc_info=True)
            return self._failure(descriptor, str(e) or "Analysis failed", False)

    @staticmethod
    def _failure(descriptor: ModelDescriptor, error: str, retryable: bool) -> ModelFailure:
        return ModelFailure(
            model_id=descriptor.id,
            display_name=descriptor.label(),
            error=error,
            provider=descriptor.provider.value,
            model=descriptor.model,
            retryable=retryable,
        )

    async def analyze_many(self, model_ids: Optional[Sequence[str]], text: str) -> List[ModelResult]:
        """
        Run every requested model concurrently and wait for all of them.
        Results come back in the order of `model_ids`, whatever the completion order.
        """
        if not model_ids:
            model_ids = [self.default_model_id]

        outcomes = await asyncio.gather(
            *(self.analyze_one(model_id, text) for model_id in model_ids),
            return_exceptions=True,
        )

        results: List[ModelResult] = []
        for model_id, outcome in zip(model_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Analysis task for %s escaped its boundary: %r", model_id, outcome)
                outcome = ModelFailure(model_id=model_id, display_name=model_id,
                                       error=str(outcome) or "Analysis failed")
            results.append(outcome)
        return results
