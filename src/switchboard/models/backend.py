from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class ProviderKind(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    AZURE_OPENAI = "azure_openai"
    COHERE = "cohere"
    HUGGING_FACE = "hugging_face"
    CUSTOM = "custom"


class Capability(StrEnum):
    TEXT_GENERATION = "text_generation"
    CLASSIFICATION = "classification"
    SENTIMENT_ANALYSIS = "sentiment_analysis"
    ENTITY_EXTRACTION = "entity_extraction"
    LANGUAGE_DETECTION = "language_detection"
    TRANSLATION = "translation"
    SUMMARIZATION = "summarization"
    MODERATION = "moderation"
    FUNCTION_CALLING = "function_calling"
    VISION = "vision"
    AUDIO = "audio"


class ModelSpec(BaseModel):
    """One invokable model variant offered by a backend."""

    name: str
    capabilities: set[Capability] = Field(default_factory=set)
    cost_per_1k_input: float = Field(default=0.0, ge=0.0)
    cost_per_1k_output: float = Field(default=0.0, ge=0.0)
    average_latency_ms: float = Field(default=1000.0, ge=0.0)
    quality_score: float = Field(default=80.0, ge=0.0, le=100.0)
    max_tokens: int = 4096
    is_active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class BackendConfig(BaseModel):
    """One configured connection to a third-party AI provider."""

    id: str
    name: str
    provider: ProviderKind
    priority: int = Field(default=100, ge=0)  # lower wins ties
    base_url: str | None = None
    credential_ref: str | None = Field(default=None, repr=False)  # e.g. env var name
    capabilities: set[Capability] = Field(min_length=1)
    models: list[ModelSpec] = Field(default_factory=list)
    is_active: bool = True
    metadata: dict = Field(default_factory=dict)
