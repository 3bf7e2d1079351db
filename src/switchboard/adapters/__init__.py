"""Backend adapters, one per configured provider connection."""

from __future__ import annotations

from collections.abc import Callable

from switchboard.adapters.base import AdapterOutput, BackendAdapter, BaseAdapter
from switchboard.adapters.http_adapter import HTTPAdapter
from switchboard.adapters.litellm_adapter import LiteLLMAdapter
from switchboard.models.backend import BackendConfig, ProviderKind

AdapterFactory = Callable[[BackendConfig], BackendAdapter]

ADAPTER_FACTORIES: dict[ProviderKind, AdapterFactory] = {
    ProviderKind.OPENAI: LiteLLMAdapter,
    ProviderKind.ANTHROPIC: LiteLLMAdapter,
    ProviderKind.GOOGLE: LiteLLMAdapter,
    ProviderKind.AZURE_OPENAI: LiteLLMAdapter,
    ProviderKind.COHERE: LiteLLMAdapter,
    ProviderKind.HUGGING_FACE: LiteLLMAdapter,
    ProviderKind.CUSTOM: HTTPAdapter,
}

__all__ = [
    "ADAPTER_FACTORIES",
    "AdapterFactory",
    "AdapterOutput",
    "BackendAdapter",
    "BaseAdapter",
    "HTTPAdapter",
    "LiteLLMAdapter",
]
