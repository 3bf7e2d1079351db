import asyncio

import pytest

from switchboard.adapters.base import AdapterOutput, BaseAdapter
from switchboard.errors import BackendUnavailableError
from switchboard.models.backend import BackendConfig, Capability, ModelSpec, ProviderKind
from switchboard.models.request import (
    OperationType,
    ProcessingOptions,
    ProcessingRequest,
    RequestInput,
    TokenUsage,
)
from switchboard.models.results import (
    ClassificationResult,
    EntityExtractionResult,
    GenerationResult,
    LanguageDetectionResult,
    ModerationResult,
    SentimentResult,
    SummarizationResult,
    TranslationResult,
)

SAMPLE_OUTPUTS = {
    OperationType.CLASSIFY_MESSAGE: ClassificationResult(
        category="billing", intent="refund_request", confidence=0.9
    ),
    OperationType.GENERATE_RESPONSE: GenerationResult(content="Happy to help with that."),
    OperationType.ANALYZE_SENTIMENT: SentimentResult(score=-0.4, label="negative", confidence=0.8),
    OperationType.EXTRACT_ENTITIES: EntityExtractionResult(),
    OperationType.DETECT_LANGUAGE: LanguageDetectionResult(language="en", confidence=0.99),
    OperationType.TRANSLATE_TEXT: TranslationResult(
        translated_text="Hola", source_language="en", target_language="es", confidence=0.9
    ),
    OperationType.SUMMARIZE_CONVERSATION: SummarizationResult(summary="Customer wants a refund."),
    OperationType.MODERATE_CONTENT: ModerationResult(flagged=False, confidence=0.95),
}


class FakeAdapter(BaseAdapter):
    """Scripted in-memory backend.

    ``fail_with`` is raised from every call; ``delay`` is slept before
    answering; ``init_failures`` makes that many initialize() calls fail.
    """

    def __init__(
        self,
        config: BackendConfig,
        *,
        fail_with: BaseException | None = None,
        delay: float = 0.0,
        healthy: bool = True,
        health_error: BaseException | None = None,
        init_failures: int = 0,
        tokens: TokenUsage | None = None,
    ) -> None:
        super().__init__(config)
        self.fail_with = fail_with
        self.delay = delay
        self.healthy = healthy
        self.health_error = health_error
        self.init_failures = init_failures
        self.tokens = tokens if tokens is not None else TokenUsage(input=100, output=50)
        self.calls: list[tuple[OperationType, str]] = []
        self.init_calls = 0
        self.closed = False

    async def initialize(self) -> None:
        self.init_calls += 1
        if self.init_failures > 0:
            self.init_failures -= 1
            raise BackendUnavailableError(self.backend_id, "scripted init failure")
        self._initialized = True

    async def health_check(self) -> bool:
        if self.health_error is not None:
            raise self.health_error
        return self.healthy

    async def close(self) -> None:
        self.closed = True
        await super().close()

    async def _call(self, operation, request, model):
        self.calls.append((operation, model.name))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return AdapterOutput(output=SAMPLE_OUTPUTS[operation], tokens=self.tokens)


class FakeAdapterFactory:
    """Builds FakeAdapters, applying per-backend behavior and keeping them for inspection."""

    def __init__(self) -> None:
        self.behaviors: dict[str, dict] = {}
        self.adapters: dict[str, FakeAdapter] = {}

    def __call__(self, config: BackendConfig) -> FakeAdapter:
        adapter = FakeAdapter(config, **self.behaviors.get(config.id, {}))
        self.adapters[config.id] = adapter
        return adapter

    def as_factories(self) -> dict:
        return {kind: self for kind in ProviderKind}


ALL_TEXT_CAPS = {
    Capability.TEXT_GENERATION,
    Capability.CLASSIFICATION,
    Capability.SENTIMENT_ANALYSIS,
    Capability.TRANSLATION,
    Capability.SUMMARIZATION,
}


def build_backend(
    backend_id: str,
    *,
    provider: ProviderKind = ProviderKind.OPENAI,
    priority: int = 100,
    capabilities: set[Capability] | None = None,
    cost_in: float = 0.001,
    cost_out: float = 0.002,
    latency_ms: float = 1000.0,
    quality: float = 85.0,
    model_name: str | None = None,
    is_active: bool = True,
) -> BackendConfig:
    caps = capabilities if capabilities is not None else set(ALL_TEXT_CAPS)
    return BackendConfig(
        id=backend_id,
        name=backend_id.upper(),
        provider=provider,
        priority=priority,
        capabilities=caps,
        is_active=is_active,
        models=[
            ModelSpec(
                name=model_name or f"{backend_id}-model",
                capabilities=caps,
                cost_per_1k_input=cost_in,
                cost_per_1k_output=cost_out,
                average_latency_ms=latency_ms,
                quality_score=quality,
            )
        ],
    )


def build_request(
    operation: OperationType = OperationType.CLASSIFY_MESSAGE,
    text: str = "I was charged twice for my order, please refund one of them.",
    **options,
) -> ProcessingRequest:
    return ProcessingRequest(
        operation=operation,
        input=RequestInput(text=text),
        options=ProcessingOptions(**options),
    )


@pytest.fixture
def make_backend():
    return build_backend


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def fake_factory():
    return FakeAdapterFactory()
