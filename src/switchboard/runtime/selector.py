"""Candidate ranking: weighted cost / latency / confidence scoring."""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass

from switchboard.config import ScoringWeights
from switchboard.models.backend import BackendConfig, ModelSpec
from switchboard.models.request import ProcessingRequest
from switchboard.runtime.capabilities import (
    eligible_models,
    estimate_input_tokens,
    estimate_output_tokens,
    required_capability,
)
from switchboard.runtime.ledger import PerformanceLedger

log = logging.getLogger(__name__)

# Weight of observed reliability in the confidence estimate
_RELIABILITY_BONUS = 0.2


@dataclass
class Candidate:
    """A backend+model pair scored for one request. Never stored."""

    backend: BackendConfig
    model: ModelSpec
    estimated_cost: float
    estimated_latency_ms: float
    confidence: float
    success_rate: float
    composite_score: float = 0.0

    @property
    def backend_id(self) -> str:
        return self.backend.id

    def describe(self) -> str:
        return f"{self.backend.id}/{self.model.name}"


class Selector:
    def __init__(
        self,
        ledger: PerformanceLedger,
        backends: Callable[[], Iterable[BackendConfig]],
        weights: ScoringWeights | None = None,
    ) -> None:
        self._ledger = ledger
        self._backends = backends
        self.weights = weights or ScoringWeights()

    def rank(
        self,
        request: ProcessingRequest,
        exclude: Collection[str] = (),
    ) -> list[Candidate]:
        """Rank every capable backend for ``request``, best first.

        Returns an empty list when nothing can serve the request.
        """
        candidates = self._build_candidates(request, exclude, honor_preferences=True)
        self._score(candidates)
        candidates.sort(
            key=lambda c: (-c.composite_score, c.backend.priority, c.backend.id)
        )
        if candidates:
            log.debug(
                "selector.rank op=%s candidates=%s",
                request.operation.value,
                [(c.describe(), round(c.composite_score, 4)) for c in candidates],
            )
        return candidates

    def rank_fallback(
        self,
        request: ProcessingRequest,
        exclude: Collection[str],
    ) -> list[Candidate]:
        """Rank for recovery after a failure: most reliable backend first.

        Backend/provider preferences are not applied; the preferred backend
        is the one that just failed.
        """
        candidates = self._build_candidates(request, exclude, honor_preferences=False)
        self._score(candidates)
        candidates.sort(
            key=lambda c: (
                -c.success_rate,
                -c.composite_score,
                c.backend.priority,
                c.backend.id,
            )
        )
        return candidates

    # ── Internals ──────────────────────────────────────────────────────

    def _build_candidates(
        self,
        request: ProcessingRequest,
        exclude: Collection[str],
        *,
        honor_preferences: bool,
    ) -> list[Candidate]:
        capability = required_capability(request.operation)
        options = request.options

        input_tokens = estimate_input_tokens(request.full_text())
        output_tokens = estimate_output_tokens(request.operation, options.max_tokens)

        candidates: list[Candidate] = []
        for backend in self._backends():
            if not backend.is_active or backend.id in exclude:
                continue
            if capability not in backend.capabilities:
                continue
            if honor_preferences:
                if options.preferred_backend_id and backend.id != options.preferred_backend_id:
                    continue
                if options.preferred_provider and backend.provider != options.preferred_provider:
                    continue

            models = eligible_models(backend, request.operation, options.preferred_model)
            if not models:
                continue
            model = models[0]

            estimated_cost = (
                input_tokens / 1000 * model.cost_per_1k_input
                + output_tokens / 1000 * model.cost_per_1k_output
            )
            perf = self._ledger.estimate(
                backend.id,
                nominal_latency_ms=model.average_latency_ms,
                nominal_cost=estimated_cost,
            )
            confidence = min(
                max(model.quality_score / 100 + perf.success_rate * _RELIABILITY_BONUS, 0.0),
                1.0,
            )
            candidates.append(
                Candidate(
                    backend=backend,
                    model=model,
                    estimated_cost=estimated_cost,
                    estimated_latency_ms=perf.latency_ms,
                    confidence=confidence,
                    success_rate=perf.success_rate,
                )
            )
        return candidates

    def _score(self, candidates: list[Candidate]) -> None:
        """Fill composite scores, normalizing cost and latency across this round."""
        if not candidates:
            return
        max_cost = max(c.estimated_cost for c in candidates)
        max_latency = max(c.estimated_latency_ms for c in candidates)
        w = self.weights
        for c in candidates:
            cost_score = 1 - c.estimated_cost / max_cost if max_cost > 0 else 1.0
            latency_score = 1 - c.estimated_latency_ms / max_latency if max_latency > 0 else 1.0
            c.composite_score = (
                w.cost * cost_score + w.latency * latency_score + w.confidence * c.confidence
            )
