"""Self-hosted backends exposing a small JSON-over-HTTP API.

Each operation is a ``POST {base_url}/v1/{operation}`` carrying the model
name, text, context and limits; the reply holds ``result`` (the operation's
output shape) and optional ``usage`` token counts.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from switchboard.adapters.base import AdapterOutput, BaseAdapter, resolve_credential
from switchboard.errors import BackendUnavailableError, ConfigurationError
from switchboard.models.backend import BackendConfig, ModelSpec
from switchboard.models.request import OperationType, ProcessingRequest, TokenUsage
from switchboard.runtime.capabilities import OPERATION_SCHEMAS

log = logging.getLogger(__name__)

_CLIENT_TIMEOUT = 30.0


class HTTPAdapter(BaseAdapter):
    def __init__(
        self,
        config: BackendConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        if not self.config.base_url:
            raise ConfigurationError(
                f"backend {self.backend_id} needs base_url",
                context={"backend_id": self.backend_id},
            )
        headers = {"Accept": "application/json"}
        token = resolve_credential(self.config.credential_ref)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        if self._client is not None:
            await self._client.aclose()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            headers=headers,
            timeout=_CLIENT_TIMEOUT,
            transport=self._transport,
        )
        if not await self.health_check():
            raise BackendUnavailableError(self.backend_id, "initial health check failed")
        self._initialized = True
        log.info("adapter.initialized backend=%s base_url=%s", self.backend_id, self.config.base_url)

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            resp = await self._client.get("/health")
        except httpx.HTTPError as exc:
            log.warning(
                "adapter.health_failed backend=%s error=%s",
                self.backend_id,
                type(exc).__name__,
            )
            return False
        return resp.status_code == 200

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def _call(
        self,
        operation: OperationType,
        request: ProcessingRequest,
        model: ModelSpec,
    ) -> AdapterOutput:
        if self._client is None:
            raise BackendUnavailableError(self.backend_id, "client is closed")
        payload: dict[str, Any] = {
            "model": model.name,
            "text": request.input.text,
            "context": request.context.model_dump(mode="json"),
            "max_tokens": request.options.max_tokens,
            "target_language": request.options.target_language,
        }
        resp = await self._client.post(f"/v1/{operation.value}", json=payload)
        resp.raise_for_status()
        data = resp.json()

        output = OPERATION_SCHEMAS[operation].model_validate(data["result"])
        usage = data.get("usage")
        tokens = None
        if usage:
            tokens = TokenUsage(
                input=int(usage.get("input_tokens", 0)),
                output=int(usage.get("output_tokens", 0)),
            )
        return AdapterOutput(output=output, tokens=tokens)
