"""Hosted LLM providers via litellm, with instructor for structured output."""

from __future__ import annotations

import logging
from typing import Any

import instructor
import litellm

from switchboard.adapters.base import AdapterOutput, BaseAdapter, resolve_credential
from switchboard.adapters.prompts import build_messages
from switchboard.errors import BackendUnavailableError
from switchboard.models.backend import BackendConfig, ModelSpec, ProviderKind
from switchboard.models.request import OperationType, ProcessingRequest, TokenUsage
from switchboard.runtime.capabilities import OPERATION_SCHEMAS

log = logging.getLogger(__name__)

# litellm model-string prefix per provider kind
_MODEL_PREFIX: dict[ProviderKind, str] = {
    ProviderKind.OPENAI: "",
    ProviderKind.ANTHROPIC: "anthropic/",
    ProviderKind.GOOGLE: "gemini/",
    ProviderKind.AZURE_OPENAI: "azure/",
    ProviderKind.COHERE: "cohere/",
    ProviderKind.HUGGING_FACE: "huggingface/",
}


class LiteLLMAdapter(BaseAdapter):
    def __init__(self, config: BackendConfig) -> None:
        super().__init__(config)
        self._api_key: str | None = None

    async def initialize(self) -> None:
        self._api_key = resolve_credential(self.config.credential_ref)
        if self.config.credential_ref and self._api_key is None:
            # Only the reference name is safe to report
            raise BackendUnavailableError(
                self.backend_id,
                f"credential {self.config.credential_ref!r} is not set",
            )
        if not await self.health_check():
            raise BackendUnavailableError(self.backend_id, "initial health check failed")
        self._initialized = True
        log.info(
            "adapter.initialized backend=%s provider=%s models=%d",
            self.backend_id,
            self.provider.value,
            len(self.config.models),
        )

    async def health_check(self) -> bool:
        model = next((m for m in self.config.models if m.is_active), None)
        if model is None:
            return False
        try:
            response = await litellm.acompletion(
                model=self.litellm_model(model),
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=1,
                **self._connection_kwargs(),
            )
        except Exception as exc:
            log.warning(
                "adapter.health_failed backend=%s error=%s",
                self.backend_id,
                type(exc).__name__,
            )
            return False
        return bool(getattr(response, "choices", None))

    def litellm_model(self, model: ModelSpec) -> str:
        if "/" in model.name:
            return model.name
        return _MODEL_PREFIX.get(self.provider, "") + model.name

    async def _call(
        self,
        operation: OperationType,
        request: ProcessingRequest,
        model: ModelSpec,
    ) -> AdapterOutput:
        kwargs: dict[str, Any] = self._connection_kwargs()
        options = request.options
        max_tokens = options.max_tokens or model.max_tokens
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature

        client = instructor.from_litellm(litellm.acompletion)
        output, completion = await client.chat.completions.create_with_completion(
            model=self.litellm_model(model),
            messages=build_messages(request, operation),
            response_model=OPERATION_SCHEMAS[operation],
            **kwargs,
        )

        tokens = None
        usage = getattr(completion, "usage", None)
        if usage is not None:
            tokens = TokenUsage(
                input=getattr(usage, "prompt_tokens", 0) or 0,
                output=getattr(usage, "completion_tokens", 0) or 0,
            )
        return AdapterOutput(output=output, tokens=tokens)

    def _connection_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self.config.base_url:
            kwargs["api_base"] = self.config.base_url
        return kwargs
