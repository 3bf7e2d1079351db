"""Static operation → capability → model mapping."""

from __future__ import annotations

from switchboard.models.backend import BackendConfig, Capability, ModelSpec
from switchboard.models.request import OperationType
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

OPERATION_CAPABILITY: dict[OperationType, Capability] = {
    OperationType.CLASSIFY_MESSAGE: Capability.CLASSIFICATION,
    OperationType.GENERATE_RESPONSE: Capability.TEXT_GENERATION,
    OperationType.ANALYZE_SENTIMENT: Capability.SENTIMENT_ANALYSIS,
    OperationType.EXTRACT_ENTITIES: Capability.ENTITY_EXTRACTION,
    OperationType.DETECT_LANGUAGE: Capability.LANGUAGE_DETECTION,
    OperationType.TRANSLATE_TEXT: Capability.TRANSLATION,
    OperationType.SUMMARIZE_CONVERSATION: Capability.SUMMARIZATION,
    OperationType.MODERATE_CONTENT: Capability.MODERATION,
}

# Adapter method serving each operation (the dispatch table)
OPERATION_METHODS: dict[OperationType, str] = {
    OperationType.CLASSIFY_MESSAGE: "classify",
    OperationType.GENERATE_RESPONSE: "generate",
    OperationType.ANALYZE_SENTIMENT: "analyze_sentiment",
    OperationType.EXTRACT_ENTITIES: "extract_entities",
    OperationType.DETECT_LANGUAGE: "detect_language",
    OperationType.TRANSLATE_TEXT: "translate",
    OperationType.SUMMARIZE_CONVERSATION: "summarize",
    OperationType.MODERATE_CONTENT: "moderate",
}

OPERATION_SCHEMAS: dict[OperationType, type] = {
    OperationType.CLASSIFY_MESSAGE: ClassificationResult,
    OperationType.GENERATE_RESPONSE: GenerationResult,
    OperationType.ANALYZE_SENTIMENT: SentimentResult,
    OperationType.EXTRACT_ENTITIES: EntityExtractionResult,
    OperationType.DETECT_LANGUAGE: LanguageDetectionResult,
    OperationType.TRANSLATE_TEXT: TranslationResult,
    OperationType.SUMMARIZE_CONVERSATION: SummarizationResult,
    OperationType.MODERATE_CONTENT: ModerationResult,
}

# Expected output tokens per operation, used for preflight cost estimates
_OUTPUT_TOKENS: dict[OperationType, int] = {
    OperationType.CLASSIFY_MESSAGE: 50,
    OperationType.GENERATE_RESPONSE: 500,
    OperationType.SUMMARIZE_CONVERSATION: 200,
}
_DEFAULT_OUTPUT_TOKENS = 100


def required_capability(operation: OperationType) -> Capability:
    return OPERATION_CAPABILITY[operation]


def estimate_input_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return -(-len(text) // 4)


def estimate_output_tokens(operation: OperationType, max_tokens: int | None = None) -> int:
    if operation == OperationType.GENERATE_RESPONSE and max_tokens:
        return max_tokens
    return _OUTPUT_TOKENS.get(operation, _DEFAULT_OUTPUT_TOKENS)


def eligible_models(
    backend: BackendConfig,
    operation: OperationType,
    preferred_model: str | None = None,
) -> list[ModelSpec]:
    """Active models of ``backend`` able to serve ``operation``, best first.

    A valid ``preferred_model`` leads the list; the rest are ordered by
    quality descending, then input cost ascending, then name.
    """
    capability = required_capability(operation)
    models = [m for m in backend.models if m.is_active and capability in m.capabilities]
    models.sort(key=lambda m: (-m.quality_score, m.cost_per_1k_input, m.name))

    if preferred_model:
        for i, m in enumerate(models):
            if m.name == preferred_model:
                models.insert(0, models.pop(i))
                break

    return models
