"""Performance ledger: live, smoothed per-backend statistics.

Every completed attempt (success or failure) feeds an exponential moving
average of latency, success rate and cost for the backend it hit. The
selector reads these estimates to rank candidates.

Each sample owns a lock, so concurrent updates to different backends never
contend and updates to the same backend apply one at a time.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

log = logging.getLogger(__name__)

DEFAULT_LEARNING_RATE = 0.1
DEFAULT_SUCCESS_RATE = 0.8


@dataclass(frozen=True)
class PerformanceEstimate:
    latency_ms: float
    success_rate: float
    avg_cost: float


@dataclass
class PerformanceSample:
    """Mutable smoothed statistics for one backend."""

    backend_id: str
    success_rate: float = DEFAULT_SUCCESS_RATE
    avg_latency_ms: float | None = None  # unknown until first measurement
    avg_cost: float | None = None
    sample_count: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "backend_id": self.backend_id,
            "success_rate": self.success_rate,
            "avg_latency_ms": self.avg_latency_ms,
            "avg_cost": self.avg_cost,
            "sample_count": self.sample_count,
            "last_updated": self.last_updated.isoformat(),
        }


def _smooth(current: float | None, observed: float, alpha: float) -> float:
    if current is None:
        return observed
    return current * (1 - alpha) + observed * alpha


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class PerformanceLedger:
    def __init__(
        self,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        default_success_rate: float = DEFAULT_SUCCESS_RATE,
    ) -> None:
        if not 0.0 < learning_rate <= 1.0:
            raise ValueError("learning_rate must be in (0, 1]")
        self.learning_rate = learning_rate
        self.default_success_rate = _clamp(default_success_rate, 0.0, 1.0)
        self._samples: dict[str, PerformanceSample] = {}
        self._table_lock = threading.Lock()  # guards creation/removal only

    # ── Reads ──────────────────────────────────────────────────────────

    def estimate(
        self,
        backend_id: str,
        nominal_latency_ms: float = 1000.0,
        nominal_cost: float = 0.0,
    ) -> PerformanceEstimate:
        """Smoothed estimate, or conservative defaults for unknown fields."""
        sample = self._samples.get(backend_id)
        if sample is None:
            return PerformanceEstimate(
                latency_ms=nominal_latency_ms,
                success_rate=self.default_success_rate,
                avg_cost=nominal_cost,
            )
        with sample._lock:
            return PerformanceEstimate(
                latency_ms=(
                    sample.avg_latency_ms
                    if sample.avg_latency_ms is not None
                    else nominal_latency_ms
                ),
                success_rate=sample.success_rate,
                avg_cost=sample.avg_cost if sample.avg_cost is not None else nominal_cost,
            )

    def snapshot(self, backend_id: str) -> dict[str, object] | None:
        sample = self._samples.get(backend_id)
        if sample is None:
            return None
        with sample._lock:
            return sample.to_dict()

    def snapshot_all(self) -> dict[str, dict[str, object]]:
        return {
            bid: snap
            for bid in list(self._samples)
            if (snap := self.snapshot(bid)) is not None
        }

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._samples

    def __len__(self) -> int:
        return len(self._samples)

    # ── Writes ─────────────────────────────────────────────────────────

    def record_outcome(
        self,
        backend_id: str,
        succeeded: bool,
        latency_ms: float | None = None,
        cost: float | None = None,
    ) -> PerformanceEstimate:
        """Fold one completed attempt into the backend's sample.

        Success rate is always updated; latency and cost only when measured.
        """
        alpha = self.learning_rate
        sample = self._get_or_create(backend_id)
        with sample._lock:
            if latency_ms is not None:
                sample.avg_latency_ms = max(0.0, _smooth(sample.avg_latency_ms, latency_ms, alpha))
            if cost is not None:
                sample.avg_cost = max(0.0, _smooth(sample.avg_cost, cost, alpha))
            observed = 1.0 if succeeded else 0.0
            sample.success_rate = _clamp(
                sample.success_rate * (1 - alpha) + observed * alpha, 0.0, 1.0
            )
            sample.sample_count += 1
            sample.last_updated = datetime.now(UTC)
            result = PerformanceEstimate(
                latency_ms=sample.avg_latency_ms if sample.avg_latency_ms is not None else 0.0,
                success_rate=sample.success_rate,
                avg_cost=sample.avg_cost if sample.avg_cost is not None else 0.0,
            )

        log.debug(
            "ledger.record backend=%s ok=%s latency_ms=%s cost=%s success_rate=%.3f",
            backend_id,
            succeeded,
            latency_ms,
            cost,
            result.success_rate,
        )
        return result

    def seed(
        self,
        backend_id: str,
        *,
        latency_ms: float | None = None,
        success_rate: float | None = None,
        avg_cost: float | None = None,
    ) -> None:
        """Install historical aggregates as the starting point for smoothing."""
        sample = self._get_or_create(backend_id)
        with sample._lock:
            if latency_ms is not None:
                sample.avg_latency_ms = max(0.0, latency_ms)
            if success_rate is not None:
                sample.success_rate = _clamp(success_rate, 0.0, 1.0)
            if avg_cost is not None:
                sample.avg_cost = max(0.0, avg_cost)
            sample.last_updated = datetime.now(UTC)

    def discard(self, backend_id: str) -> None:
        with self._table_lock:
            self._samples.pop(backend_id, None)

    def _get_or_create(self, backend_id: str) -> PerformanceSample:
        sample = self._samples.get(backend_id)
        if sample is not None:
            return sample
        with self._table_lock:
            sample = self._samples.get(backend_id)
            if sample is None:
                sample = PerformanceSample(
                    backend_id=backend_id,
                    success_rate=self.default_success_rate,
                )
                self._samples[backend_id] = sample
            return sample
