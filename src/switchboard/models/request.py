import uuid
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

from switchboard.models.backend import ProviderKind
from switchboard.models.results import OperationOutput


class OperationType(StrEnum):
    CLASSIFY_MESSAGE = "classify_message"
    GENERATE_RESPONSE = "generate_response"
    ANALYZE_SENTIMENT = "analyze_sentiment"
    EXTRACT_ENTITIES = "extract_entities"
    DETECT_LANGUAGE = "detect_language"
    TRANSLATE_TEXT = "translate_text"
    SUMMARIZE_CONVERSATION = "summarize_conversation"
    MODERATE_CONTENT = "moderate_content"


class RequestInput(BaseModel):
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationMessage(BaseModel):
    role: Literal["customer", "agent", "system"]
    content: str


class OrganizationInfo(BaseModel):
    id: str
    name: str
    industry: str | None = None
    brand_voice: str | None = None
    policies: dict[str, Any] = Field(default_factory=dict)
    knowledge_base: list[str] = Field(default_factory=list)


class RequestContext(BaseModel):
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    organization: OrganizationInfo | None = None
    custom: dict[str, Any] = Field(default_factory=dict)


class ProcessingOptions(BaseModel):
    preferred_backend_id: str | None = None
    preferred_provider: ProviderKind | None = None
    preferred_model: str | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    target_language: str = "en"
    fallback_enabled: bool = True


class ProcessingRequest(BaseModel):
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    operation: OperationType
    input: RequestInput
    context: RequestContext = Field(default_factory=RequestContext)
    options: ProcessingOptions = Field(default_factory=ProcessingOptions)
    organization_id: str | None = None
    user_id: str | None = None

    def full_text(self) -> str:
        """Request text plus any conversation history, as sent to a backend."""
        history = " ".join(m.content for m in self.context.conversation_history)
        if history:
            return f"{self.input.text} {history}"
        return self.input.text


class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output


class CostBreakdown(BaseModel):
    input_cost: float = 0.0
    output_cost: float = 0.0
    currency: str = "USD"

    @property
    def total_cost(self) -> float:
        return self.input_cost + self.output_cost


class ProcessingResult(BaseModel):
    request_id: str
    operation: OperationType
    output: OperationOutput
    cost: CostBreakdown = Field(default_factory=CostBreakdown)
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    latency_ms: float = 0.0
    backend_id: str
    provider: ProviderKind
    model: str
    fallback_used: bool = False
