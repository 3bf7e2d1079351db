"""Backend adapter contract and the shared invocation wrapper."""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pydantic import BaseModel

from switchboard.errors import (
    BackendError,
    BackendRequestError,
    BackendUnavailableError,
    classify_backend_error,
)
from switchboard.models.backend import BackendConfig, ModelSpec, ProviderKind
from switchboard.models.request import (
    CostBreakdown,
    OperationType,
    ProcessingRequest,
    ProcessingResult,
    TokenUsage,
)
from switchboard.runtime.capabilities import estimate_input_tokens

log = logging.getLogger(__name__)


def resolve_credential(ref: str | None) -> str | None:
    """Resolve an opaque credential reference to its secret value.

    References name an environment variable, optionally prefixed ``env:``.
    """
    if not ref:
        return None
    name = ref.removeprefix("env:")
    return os.environ.get(name)


@dataclass
class AdapterOutput:
    output: BaseModel
    tokens: TokenUsage | None = None  # None → estimate from text length


class BackendAdapter(ABC):
    """Uniform capability interface every concrete backend implements."""

    def __init__(self, config: BackendConfig) -> None:
        self.config = config
        self._initialized = False

    @property
    def backend_id(self) -> str:
        return self.config.id

    @property
    def provider(self) -> ProviderKind:
        return self.config.provider

    @property
    def initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    async def initialize(self) -> None:
        """Open clients and verify the connection. Raises on failure."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check reachability. Never raises."""

    async def close(self) -> None:
        self._initialized = False

    @abstractmethod
    async def classify(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult: ...

    @abstractmethod
    async def generate(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult: ...

    @abstractmethod
    async def analyze_sentiment(
        self, request: ProcessingRequest, model: ModelSpec
    ) -> ProcessingResult: ...

    @abstractmethod
    async def extract_entities(
        self, request: ProcessingRequest, model: ModelSpec
    ) -> ProcessingResult: ...

    @abstractmethod
    async def detect_language(
        self, request: ProcessingRequest, model: ModelSpec
    ) -> ProcessingResult: ...

    @abstractmethod
    async def translate(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult: ...

    @abstractmethod
    async def summarize(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult: ...

    @abstractmethod
    async def moderate(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult: ...


class BaseAdapter(BackendAdapter):
    """Routes every operation through one timed, cost-accounted call.

    Subclasses implement ``_call`` for a single operation and inherit
    request validation, token/cost accounting, logging and error wrapping.
    """

    async def classify(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult:
        return await self._execute(OperationType.CLASSIFY_MESSAGE, request, model)

    async def generate(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult:
        return await self._execute(OperationType.GENERATE_RESPONSE, request, model)

    async def analyze_sentiment(
        self, request: ProcessingRequest, model: ModelSpec
    ) -> ProcessingResult:
        return await self._execute(OperationType.ANALYZE_SENTIMENT, request, model)

    async def extract_entities(
        self, request: ProcessingRequest, model: ModelSpec
    ) -> ProcessingResult:
        return await self._execute(OperationType.EXTRACT_ENTITIES, request, model)

    async def detect_language(
        self, request: ProcessingRequest, model: ModelSpec
    ) -> ProcessingResult:
        return await self._execute(OperationType.DETECT_LANGUAGE, request, model)

    async def translate(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult:
        return await self._execute(OperationType.TRANSLATE_TEXT, request, model)

    async def summarize(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult:
        return await self._execute(OperationType.SUMMARIZE_CONVERSATION, request, model)

    async def moderate(self, request: ProcessingRequest, model: ModelSpec) -> ProcessingResult:
        return await self._execute(OperationType.MODERATE_CONTENT, request, model)

    @abstractmethod
    async def _call(
        self,
        operation: OperationType,
        request: ProcessingRequest,
        model: ModelSpec,
    ) -> AdapterOutput:
        """Perform one operation against the provider."""

    async def _execute(
        self,
        operation: OperationType,
        request: ProcessingRequest,
        model: ModelSpec,
    ) -> ProcessingResult:
        if not self._initialized:
            raise BackendUnavailableError(self.backend_id, "adapter not initialized")
        if not request.input.text.strip():
            raise BackendRequestError(self.backend_id, "invalid request: text input is required")

        start = time.monotonic()
        try:
            out = await self._call(operation, request, model)
        except BackendError:
            raise
        except Exception as exc:
            elapsed_ms = (time.monotonic() - start) * 1000
            log.warning(
                "adapter.call_failed backend=%s model=%s op=%s latency_ms=%.1f error=%s",
                self.backend_id,
                model.name,
                operation.value,
                elapsed_ms,
                type(exc).__name__,
            )
            raise classify_backend_error(self.backend_id, exc) from exc
        latency_ms = (time.monotonic() - start) * 1000

        tokens = out.tokens or TokenUsage(
            input=estimate_input_tokens(request.full_text()),
            output=estimate_input_tokens(out.output.model_dump_json()),
        )
        cost = self._calculate_cost(tokens, model)

        log.debug(
            "adapter.call backend=%s model=%s op=%s latency_ms=%.1f tokens=%d cost=%.6f",
            self.backend_id,
            model.name,
            operation.value,
            latency_ms,
            tokens.total,
            cost.total_cost,
        )
        return ProcessingResult(
            request_id=request.request_id,
            operation=operation,
            output=out.output,
            cost=cost,
            tokens=tokens,
            latency_ms=latency_ms,
            backend_id=self.backend_id,
            provider=self.provider,
            model=model.name,
        )

    @staticmethod
    def _calculate_cost(tokens: TokenUsage, model: ModelSpec) -> CostBreakdown:
        return CostBreakdown(
            input_cost=tokens.input / 1000 * model.cost_per_1k_input,
            output_cost=tokens.output / 1000 * model.cost_per_1k_output,
        )
