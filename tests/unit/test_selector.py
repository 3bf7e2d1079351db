"""Tests for candidate ranking."""

from __future__ import annotations

import pytest

from switchboard.config import ScoringWeights
from switchboard.models.backend import Capability, ProviderKind
from switchboard.models.request import OperationType
from switchboard.runtime.ledger import PerformanceLedger
from switchboard.runtime.selector import Selector


def _selector(backends, ledger=None, weights=None):
    if ledger is None:
        ledger = PerformanceLedger()
    return Selector(ledger, lambda: backends, weights)


@pytest.fixture
def cheap_and_pricey(make_backend):
    x = make_backend("x", cost_in=0.001, cost_out=0.002, latency_ms=500.0)
    y = make_backend("y", cost_in=0.01, cost_out=0.03, latency_ms=2000.0)
    return [x, y]


class TestRank:
    def test_cheaper_faster_backend_wins(self, cheap_and_pricey, make_request):
        ranking = _selector(cheap_and_pricey).rank(make_request())
        assert [c.backend_id for c in ranking] == ["x", "y"]
        assert ranking[0].composite_score > ranking[1].composite_score

    def test_cheaper_beats_slightly_better(self, make_backend, make_request):
        x = make_backend("x", cost_in=1.0, cost_out=1.0, quality=90.0)
        y = make_backend("y", cost_in=5.0, cost_out=5.0, quality=95.0)
        ranking = _selector([y, x]).rank(make_request())
        assert [c.backend_id for c in ranking] == ["x", "y"]

    def test_ranking_is_deterministic(self, cheap_and_pricey, make_request):
        selector = _selector(cheap_and_pricey)
        request = make_request()
        first = [(c.backend_id, c.composite_score) for c in selector.rank(request)]
        for _ in range(5):
            assert [(c.backend_id, c.composite_score) for c in selector.rank(request)] == first

    def test_estimated_cost(self, make_backend, make_request):
        backend = make_backend("x", cost_in=1.0, cost_out=2.0)
        # 8 chars → 2 input tokens; classification expects 50 output tokens
        [c] = _selector([backend]).rank(make_request(text="abcdefgh"))
        assert c.estimated_cost == pytest.approx(2 / 1000 * 1.0 + 50 / 1000 * 2.0)

    def test_confidence_blends_quality_and_reliability(self, make_backend, make_request):
        ledger = PerformanceLedger()
        ledger.seed("x", success_rate=0.5)
        [c] = _selector([make_backend("x", quality=70.0)], ledger).rank(make_request())
        assert c.confidence == pytest.approx(0.7 + 0.5 * 0.2)
        assert c.success_rate == pytest.approx(0.5)

    def test_confidence_is_capped(self, make_backend, make_request):
        [c] = _selector([make_backend("x", quality=100.0)]).rank(make_request())
        assert c.confidence == 1.0

    def test_learned_latency_replaces_nominal(self, make_backend, make_request):
        ledger = PerformanceLedger()
        ledger.seed("x", latency_ms=250.0)
        [c] = _selector([make_backend("x", latency_ms=900.0)], ledger).rank(make_request())
        assert c.estimated_latency_ms == 250.0

    def test_ties_broken_by_priority_then_id(self, make_backend, make_request):
        backends = [make_backend("b"), make_backend("a"), make_backend("c", priority=1)]
        ranking = _selector(backends).rank(make_request())
        assert [c.backend_id for c in ranking] == ["c", "a", "b"]

    def test_zero_cost_backends_score_full_cost_axis(self, make_backend, make_request):
        backends = [make_backend("a", cost_in=0.0, cost_out=0.0)]
        cost_only = ScoringWeights(cost=1.0, latency=0.0, confidence=0.0)
        [c] = _selector(backends, weights=cost_only).rank(make_request())
        assert c.composite_score == pytest.approx(1.0)

    def test_custom_weights_change_the_winner(self, make_backend, make_request):
        fast_bad = make_backend("fast", latency_ms=100.0, quality=20.0)
        slow_good = make_backend("slow", latency_ms=3000.0, quality=100.0)
        latency_only = ScoringWeights(cost=0.0, latency=1.0, confidence=0.0)
        confidence_only = ScoringWeights(cost=0.0, latency=0.0, confidence=1.0)
        by_latency = _selector([fast_bad, slow_good], weights=latency_only).rank(make_request())
        by_confidence = _selector([fast_bad, slow_good], weights=confidence_only).rank(
            make_request()
        )
        assert by_latency[0].backend_id == "fast"
        assert by_confidence[0].backend_id == "slow"


class TestFiltering:
    def test_missing_capability_excluded(self, make_backend, make_request):
        backends = [
            make_backend("x", capabilities={Capability.TEXT_GENERATION}),
            make_backend("y"),
        ]
        ranking = _selector(backends).rank(make_request(OperationType.CLASSIFY_MESSAGE))
        assert [c.backend_id for c in ranking] == ["y"]

    def test_inactive_backend_excluded(self, make_backend, make_request):
        backends = [make_backend("x", is_active=False), make_backend("y")]
        assert [c.backend_id for c in _selector(backends).rank(make_request())] == ["y"]

    def test_backend_without_capable_model_excluded(self, make_backend, make_request):
        x = make_backend("x")
        x.models[0].is_active = False
        assert _selector([x]).rank(make_request()) == []

    def test_exclude(self, cheap_and_pricey, make_request):
        ranking = _selector(cheap_and_pricey).rank(make_request(), exclude={"x"})
        assert [c.backend_id for c in ranking] == ["y"]

    def test_preferred_backend(self, cheap_and_pricey, make_request):
        ranking = _selector(cheap_and_pricey).rank(make_request(preferred_backend_id="y"))
        assert [c.backend_id for c in ranking] == ["y"]

    def test_preferred_provider(self, make_backend, make_request):
        backends = [
            make_backend("x"),
            make_backend("y", provider=ProviderKind.ANTHROPIC),
        ]
        ranking = _selector(backends).rank(
            make_request(preferred_provider=ProviderKind.ANTHROPIC)
        )
        assert [c.backend_id for c in ranking] == ["y"]

    def test_preferred_model(self, make_backend, make_request):
        backend = make_backend("x", model_name="large", quality=95.0)
        small = backend.models[0].model_copy(update={"name": "small", "quality_score": 60.0})
        backend.models.append(small)

        [c] = _selector([backend]).rank(make_request(preferred_model="small"))
        assert c.model.name == "small"
        [c] = _selector([backend]).rank(make_request())
        assert c.model.name == "large"

    def test_no_candidates(self, make_backend, make_request):
        backends = [make_backend("x", capabilities={Capability.TEXT_GENERATION})]
        assert _selector(backends).rank(make_request(OperationType.MODERATE_CONTENT)) == []
        assert _selector([]).rank(make_request()) == []


class TestRankFallback:
    def test_ignores_preferences(self, cheap_and_pricey, make_request):
        request = make_request(preferred_backend_id="x")
        ranking = _selector(cheap_and_pricey).rank_fallback(request, exclude={"x"})
        assert [c.backend_id for c in ranking] == ["y"]

    def test_most_reliable_first(self, make_backend, make_request):
        ledger = PerformanceLedger()
        cheap_flaky = make_backend("z", cost_in=0.0001, cost_out=0.0002, latency_ms=300.0)
        pricey_steady = make_backend("y", cost_in=0.01, cost_out=0.03, latency_ms=2000.0)
        ledger.seed("z", success_rate=0.5)
        ledger.seed("y", success_rate=0.95)
        selector = _selector([cheap_flaky, pricey_steady], ledger)

        assert selector.rank(make_request())[0].backend_id == "z"
        assert selector.rank_fallback(make_request(), exclude=())[0].backend_id == "y"

    def test_empty_when_only_excluded_backend(self, cheap_and_pricey, make_request):
        ranking = _selector(cheap_and_pricey[:1]).rank_fallback(make_request(), exclude={"x"})
        assert ranking == []
