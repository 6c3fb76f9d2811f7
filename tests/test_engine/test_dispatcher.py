"""
Tests for Dispatcher - concurrent provider fan-out.
"""

import asyncio
import time

import pytest

from drahms_vision.core.exceptions import NoProvidersAvailable
from drahms_vision.engine.dispatcher import DEADLINE_EXCEEDED, Dispatcher
from drahms_vision.engine.health import CircuitState, ProviderHealthTracker
from drahms_vision.engine.metrics import EngineMetrics
from drahms_vision.models.enums import ProviderOutcome


class TestDispatcher:
    """Test suite for Dispatcher."""

    @pytest.fixture
    def dispatcher(self):
        return Dispatcher(ProviderHealthTracker(failure_threshold=2), EngineMetrics())

    @pytest.mark.asyncio
    async def test_results_in_provider_order(self, dispatcher, make_provider, make_request):
        providers = [
            make_provider("slow", label="Robin", confidence=0.7, delay=0.05),
            make_provider("fast", label="Robin", confidence=0.8),
        ]

        results = await dispatcher.dispatch(make_request(), providers)

        assert [r.provider_id for r in results] == ["slow", "fast"]
        assert all(r.outcome == ProviderOutcome.SUCCESS for r in results)

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, dispatcher, make_provider, make_request):
        """A raising or failing provider does not affect the others."""
        providers = [
            make_provider("ok", label="Moon", confidence=0.9, delay=0.02),
            make_provider("raises", raises=RuntimeError("connection reset")),
            make_provider("fails", outcome=ProviderOutcome.ERROR),
        ]

        results = await dispatcher.dispatch(make_request(), providers)

        assert results[0].is_success
        assert results[0].label == "Moon"
        assert results[1].outcome == ProviderOutcome.ERROR
        assert "RuntimeError" in results[1].detail
        assert results[2].outcome == ProviderOutcome.ERROR

    @pytest.mark.asyncio
    async def test_provider_timeout_enforced(self, dispatcher, make_provider, make_request):
        providers = [
            make_provider("stuck", timeout=0.05, label="Moon", confidence=0.9, delay=1.0),
            make_provider("ok", label="Moon", confidence=0.8),
        ]

        start = time.perf_counter()
        results = await dispatcher.dispatch(make_request(deadline=2.0), providers)
        elapsed = time.perf_counter() - start

        assert results[0].outcome == ProviderOutcome.TIMEOUT
        assert "timed out" in results[0].detail
        assert results[1].is_success
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_overall_deadline_bounds_dispatch(self, dispatcher, make_provider, make_request):
        """Calls still outstanding at the deadline are abandoned as timeouts."""
        providers = [
            make_provider("ok", label="Robin", confidence=0.8, delay=0.01),
            make_provider("slow", timeout=5.0, label="Robin", confidence=0.9, delay=1.0),
        ]

        start = time.perf_counter()
        results = await dispatcher.dispatch(make_request(deadline=0.1), providers)
        elapsed = time.perf_counter() - start

        assert elapsed < 0.5
        assert results[0].is_success
        assert results[1].outcome == ProviderOutcome.TIMEOUT
        assert results[1].detail == DEADLINE_EXCEEDED

    @pytest.mark.asyncio
    async def test_cancelled_dispatch_cancels_provider_calls(self, dispatcher, make_provider, make_request):
        providers = [
            make_provider("slow-a", timeout=5.0, label="Robin", confidence=0.8, delay=5.0),
            make_provider("slow-b", timeout=5.0, label="Robin", confidence=0.7, delay=5.0),
        ]
        dispatch = asyncio.create_task(dispatcher.dispatch(make_request(deadline=10.0), providers))
        await asyncio.sleep(0.01)
        calls = [t for t in asyncio.all_tasks() if t.get_name().startswith("identify:")]

        dispatch.cancel()
        with pytest.raises(asyncio.CancelledError):
            await dispatch
        await asyncio.wait(calls, timeout=1.0)

        assert len(calls) == 2
        assert all(t.cancelled() for t in calls)
        assert dispatcher.metrics.providers == {}

    @pytest.mark.asyncio
    async def test_empty_provider_list_raises(self, dispatcher, make_request):
        with pytest.raises(NoProvidersAvailable):
            await dispatcher.dispatch(make_request(), [])

    @pytest.mark.asyncio
    async def test_contract_violations_become_errors(self, dispatcher, make_provider, make_request):
        providers = [
            make_provider("overconfident", label="Moon", confidence=1.5),
            make_provider("blank", label="   ", confidence=0.5),
        ]

        results = await dispatcher.dispatch(make_request(), providers)

        assert results[0].outcome == ProviderOutcome.ERROR
        assert "outside" in results[0].detail
        assert results[1].outcome == ProviderOutcome.ERROR
        assert results[1].detail == "Empty label"

    @pytest.mark.asyncio
    async def test_outcomes_feed_health_and_metrics(self, dispatcher, make_provider, make_request):
        providers = [
            make_provider("ok", label="Moon", confidence=0.9),
            make_provider("bad", outcome=ProviderOutcome.ERROR),
        ]

        await dispatcher.dispatch(make_request(), providers)
        await dispatcher.dispatch(make_request(), providers)

        assert dispatcher.health_tracker.state("bad") == CircuitState.OPEN
        assert dispatcher.health_tracker.state("ok") == CircuitState.CLOSED
        provider_metrics = dispatcher.metrics.to_dict()["providers"]
        assert provider_metrics["ok"]["successes"] == 2
        assert provider_metrics["bad"]["errors"] == 2
