"""Data contracts for backends, requests and results."""

from switchboard.models.backend import BackendConfig, Capability, ModelSpec, ProviderKind
from switchboard.models.request import (
    ConversationMessage,
    CostBreakdown,
    OperationType,
    OrganizationInfo,
    ProcessingOptions,
    ProcessingRequest,
    ProcessingResult,
    RequestContext,
    RequestInput,
    TokenUsage,
)

__all__ = [
    "BackendConfig",
    "Capability",
    "ConversationMessage",
    "CostBreakdown",
    "ModelSpec",
    "OperationType",
    "OrganizationInfo",
    "ProcessingOptions",
    "ProcessingRequest",
    "ProcessingResult",
    "ProviderKind",
    "RequestContext",
    "RequestInput",
    "TokenUsage",
]
