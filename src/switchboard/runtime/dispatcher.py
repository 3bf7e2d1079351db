"""Primary attempt plus at most one fallback, with outcome recording.

State machine per request:

    START → SELECT_PRIMARY → INVOKE
        SUCCESS → DONE
        FAILURE → (fallback enabled? SELECT_FALLBACK : FAIL)
    SELECT_FALLBACK → INVOKE_FALLBACK
        SUCCESS → DONE
        FAILURE → FAIL (raise the primary error)

Every invocation records its outcome in the ledger before the machine
advances. Attempts are strictly sequential.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from enum import StrEnum

from switchboard.adapters.base import BackendAdapter
from switchboard.errors import (
    BackendError,
    BackendTimeoutError,
    NoProviderAvailableError,
    classify_backend_error,
)
from switchboard.models.request import ProcessingRequest, ProcessingResult
from switchboard.runtime.capabilities import OPERATION_METHODS
from switchboard.runtime.history import PerformanceHistory
from switchboard.runtime.ledger import PerformanceLedger
from switchboard.runtime.logging_config import ctx_backend_id, ctx_operation, ctx_request_id
from switchboard.runtime.selector import Candidate, Selector

log = logging.getLogger(__name__)


class DispatchState(StrEnum):
    START = "start"
    SELECT_PRIMARY = "select_primary"
    INVOKE = "invoke"
    SELECT_FALLBACK = "select_fallback"
    INVOKE_FALLBACK = "invoke_fallback"
    DONE = "done"
    FAIL = "fail"


class Dispatcher:
    def __init__(
        self,
        selector: Selector,
        ledger: PerformanceLedger,
        adapters: Callable[[], Mapping[str, BackendAdapter]],
        invoke_timeout: float = 30.0,
        history: PerformanceHistory | None = None,
    ) -> None:
        self._selector = selector
        self._ledger = ledger
        self._adapters = adapters
        self.invoke_timeout = invoke_timeout
        self._history = history

    async def process(self, request: ProcessingRequest) -> ProcessingResult:
        request_token = ctx_request_id.set(request.request_id)
        operation_token = ctx_operation.set(request.operation.value)
        try:
            return await self._dispatch(request)
        finally:
            ctx_operation.reset(operation_token)
            ctx_request_id.reset(request_token)

    async def _dispatch(self, request: ProcessingRequest) -> ProcessingResult:
        state = DispatchState.START

        state = self._advance(state, DispatchState.SELECT_PRIMARY, request)
        ranking = self._selector.rank(request)
        if not ranking:
            self._advance(state, DispatchState.FAIL, request)
            raise NoProviderAvailableError(
                f"no provider available for {request.operation.value}",
                context={
                    "operation": request.operation.value,
                    "preferred_backend_id": request.options.preferred_backend_id,
                    "preferred_model": request.options.preferred_model,
                },
            )
        primary = ranking[0]

        state = self._advance(state, DispatchState.INVOKE, request)
        try:
            result = await self._attempt(primary, request)
        except BackendError as primary_error:
            if not request.options.fallback_enabled:
                self._advance(state, DispatchState.FAIL, request)
                raise

            state = self._advance(state, DispatchState.SELECT_FALLBACK, request)
            fallback_ranking = self._selector.rank_fallback(
                request, exclude={primary.backend_id}
            )
            if not fallback_ranking:
                log.warning(
                    "dispatch.no_fallback backend=%s op=%s",
                    primary.backend_id,
                    request.operation.value,
                )
                self._advance(state, DispatchState.FAIL, request)
                raise

            fallback = fallback_ranking[0]
            state = self._advance(state, DispatchState.INVOKE_FALLBACK, request)
            try:
                result = await self._attempt(fallback, request)
            except BackendError as fallback_error:
                log.error(
                    "dispatch.exhausted primary=%s fallback=%s primary_error=%s "
                    "fallback_error=%s",
                    primary.backend_id,
                    fallback.backend_id,
                    primary_error.code,
                    fallback_error.code,
                )
                primary_error.context["fallback_backend_id"] = fallback.backend_id
                primary_error.context["fallback_error"] = fallback_error.code
                self._advance(state, DispatchState.FAIL, request)
                raise primary_error

            log.info(
                "dispatch.fallback_succeeded primary=%s fallback=%s op=%s",
                primary.backend_id,
                fallback.describe(),
                request.operation.value,
            )
            result.fallback_used = True

        self._advance(state, DispatchState.DONE, request)
        return result

    async def _attempt(self, candidate: Candidate, request: ProcessingRequest) -> ProcessingResult:
        """Invoke one candidate and record the outcome, whatever it is."""
        backend_id = candidate.backend_id
        backend_token = ctx_backend_id.set(backend_id)
        start = time.monotonic()
        try:
            adapter = self._adapters().get(backend_id)
            if adapter is None:
                raise BackendError(backend_id, "adapter no longer registered")
            method = getattr(adapter, OPERATION_METHODS[request.operation])
            result = await asyncio.wait_for(
                method(request, candidate.model),
                timeout=self.invoke_timeout,
            )
        except TimeoutError as exc:
            err = BackendTimeoutError(
                backend_id,
                f"no response within {self.invoke_timeout:.1f}s",
                cause=exc,
            )
            self._record(backend_id, succeeded=False)
            log.warning(
                "dispatch.attempt_failed backend=%s model=%s code=%s elapsed_ms=%.1f",
                backend_id,
                candidate.model.name,
                err.code,
                (time.monotonic() - start) * 1000,
            )
            raise err from exc
        except Exception as exc:
            err = classify_backend_error(backend_id, exc)
            self._record(backend_id, succeeded=False)
            log.warning(
                "dispatch.attempt_failed backend=%s model=%s code=%s error=%s",
                backend_id,
                candidate.model.name,
                err.code,
                err.message,
            )
            if err is exc:
                raise
            raise err from exc
        finally:
            ctx_backend_id.reset(backend_token)

        self._record(
            backend_id,
            succeeded=True,
            latency_ms=result.latency_ms,
            cost=result.cost.total_cost,
        )
        log.info(
            "dispatch.attempt_ok backend=%s model=%s latency_ms=%.1f cost=%.6f",
            backend_id,
            result.model,
            result.latency_ms,
            result.cost.total_cost,
        )
        return result

    def _record(
        self,
        backend_id: str,
        *,
        succeeded: bool,
        latency_ms: float | None = None,
        cost: float | None = None,
    ) -> None:
        if backend_id not in self._adapters():
            # Removed mid-flight; its sample is gone and must stay gone
            log.debug("dispatch.record_skipped backend=%s", backend_id)
            return
        self._ledger.record_outcome(backend_id, succeeded, latency_ms=latency_ms, cost=cost)
        if self._history is not None:
            self._history.enqueue(backend_id, succeeded, latency_ms, cost)

    @staticmethod
    def _advance(
        current: DispatchState,
        nxt: DispatchState,
        request: ProcessingRequest,
    ) -> DispatchState:
        log.debug(
            "dispatch.state request=%s %s -> %s",
            request.request_id,
            current.value,
            nxt.value,
        )
        return nxt
