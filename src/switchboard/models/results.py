"""Normalized output shapes, one per operation type."""

from typing import Literal

from pydantic import BaseModel, Field


class AlternativeCategory(BaseModel):
    category: str
    confidence: float = Field(ge=0.0, le=1.0)


class ClassificationResult(BaseModel):
    category: str
    subcategory: str | None = None
    intent: str
    confidence: float = Field(ge=0.0, le=1.0)
    urgency: Literal["low", "normal", "high", "urgent", "critical"] = "normal"
    topics: list[str] = Field(default_factory=list)
    reasoning: str | None = None
    alternative_categories: list[AlternativeCategory] = Field(default_factory=list)


class GenerationResult(BaseModel):
    content: str
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    reasoning: str | None = None
    suggested_actions: list[str] = Field(default_factory=list)
    requires_human_review: bool = False


class EmotionScore(BaseModel):
    emotion: str
    score: float


class SentimentResult(BaseModel):
    score: float = Field(ge=-1.0, le=1.0)
    label: Literal["positive", "negative", "neutral"]
    confidence: float = Field(ge=0.0, le=1.0)
    emotions: list[EmotionScore] = Field(default_factory=list)


class Entity(BaseModel):
    text: str
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    start: int = 0
    end: int = 0


class EntityExtractionResult(BaseModel):
    entities: list[Entity] = Field(default_factory=list)


class LanguageAlternative(BaseModel):
    language: str
    confidence: float = Field(ge=0.0, le=1.0)


class LanguageDetectionResult(BaseModel):
    language: str  # ISO 639-1 code
    confidence: float = Field(ge=0.0, le=1.0)
    alternatives: list[LanguageAlternative] = Field(default_factory=list)


class TranslationResult(BaseModel):
    translated_text: str
    source_language: str
    target_language: str
    confidence: float = Field(ge=0.0, le=1.0)


class SummarizationResult(BaseModel):
    summary: str
    key_points: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class ModerationCategory(BaseModel):
    category: str
    flagged: bool
    score: float = Field(ge=0.0, le=1.0)


class ModerationResult(BaseModel):
    flagged: bool
    categories: list[ModerationCategory] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


OperationOutput = (
    ClassificationResult
    | GenerationResult
    | SentimentResult
    | EntityExtractionResult
    | LanguageDetectionResult
    | TranslationResult
    | SummarizationResult
    | ModerationResult
)
