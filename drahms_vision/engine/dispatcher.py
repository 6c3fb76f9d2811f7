"""
Dispatcher

Fans one identification request out to the selected providers concurrently.

- Each provider call runs in its own task, time-boxed by that provider's
  timeout (enforced here, not trusted to the provider).
- A provider that errors or times out never cancels or delays the others.
- One overall deadline bounds the whole fan-out. When it fires, outstanding
  calls are cancelled and abandoned; anything they produce later is dropped.
- No retries across providers: a failure is final for this request.
"""

import asyncio
import logging
import time
from typing import List, Optional

from drahms_vision.core.exceptions import NoProvidersAvailable, ProviderError, ProviderTimeout
from drahms_vision.engine.base import IdentificationRequest, Provider, ProviderResult
from drahms_vision.engine.health import ProviderHealthTracker
from drahms_vision.engine.metrics import EngineMetrics

logger = logging.getLogger(__name__)

DEADLINE_EXCEEDED = "overall deadline exceeded"


def _discard_late_result(task: asyncio.Task) -> None:
    """Done-callback for abandoned calls: consume the outcome and drop it."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Discarded late failure from {task.get_name()}: {exc}")
    else:
        logger.debug(f"Discarded late result from {task.get_name()}")


class Dispatcher:
    """Concurrent, failure-isolated provider fan-out under one deadline."""

    def __init__(
        self,
        health_tracker: Optional[ProviderHealthTracker] = None,
        metrics: Optional[EngineMetrics] = None,
    ):
        self.health_tracker = health_tracker
        self.metrics = metrics

    async def dispatch(
        self,
        request: IdentificationRequest,
        providers: List[Provider],
    ) -> List[ProviderResult]:
        """
        Query all providers and gather what arrives before the deadline.

        Args:
            request: The identification request
            providers: Ordered providers from the failover policy

        Returns:
            One ProviderResult per provider, in the given order. Providers
            that did not answer by the deadline are reported as timeouts.

        Raises:
            NoProvidersAvailable: providers is empty
        """
        if not providers:
            raise NoProvidersAvailable(request.category_hint)

        start = time.perf_counter()
        tasks = {
            asyncio.create_task(self._call(provider, request), name=f"identify:{provider.id}"): provider
            for provider in providers
        }

        try:
            done, pending = await asyncio.wait(tasks.keys(), timeout=request.overall_deadline)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
                task.add_done_callback(_discard_late_result)
            logger.info(f"Dispatch cancelled; cancelled {len(tasks)} provider call(s)")
            raise

        results = {}
        for task in done:
            provider = tasks[task]
            if task.cancelled():
                results[provider.id] = ProviderResult.timeout(provider.id, detail="cancelled")
            else:
                results[provider.id] = task.result()

        if pending:
            elapsed_ms = (time.perf_counter() - start) * 1000
            for task in pending:
                provider = tasks[task]
                task.cancel()
                task.add_done_callback(_discard_late_result)
                results[provider.id] = ProviderResult.timeout(
                    provider.id, latency_ms=elapsed_ms, detail=DEADLINE_EXCEEDED
                )
            logger.warning(
                f"Overall deadline {request.overall_deadline:.2f}s reached; "
                f"abandoned {len(pending)} provider call(s): "
                f"{', '.join(sorted(tasks[t].id for t in pending))}"
            )

        ordered = [results[provider.id] for provider in providers]
        for result in ordered:
            self._record(result)
        return ordered

    async def _call(self, provider: Provider, request: IdentificationRequest) -> ProviderResult:
        """Run one provider call; never raises except on cancellation."""
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                provider.client.identify(request.image_ref, request.context, provider.timeout),
                timeout=provider.timeout,
            )
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start) * 1000
            return ProviderResult.timeout(
                provider.id,
                latency_ms=elapsed_ms,
                detail=str(ProviderTimeout(provider.id, provider.timeout)),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(f"Provider {provider.id} raised {type(e).__name__}: {e}")
            return ProviderResult.error(
                provider.id,
                str(ProviderError(provider.id, f"{type(e).__name__}: {e}")),
                latency_ms=elapsed_ms,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        return self._validate(provider, result, elapsed_ms)

    @staticmethod
    def _validate(provider: Provider, result: object, elapsed_ms: float) -> ProviderResult:
        """Reject results that break the capability contract."""
        if not isinstance(result, ProviderResult):
            return ProviderResult.error(
                provider.id,
                f"Provider returned {type(result).__name__}, expected ProviderResult",
                latency_ms=elapsed_ms,
            )

        latency_ms = result.latency_ms or elapsed_ms
        if result.is_success:
            if not result.label or not result.label.strip():
                return ProviderResult.error(provider.id, "Empty label", latency_ms=latency_ms)
            if not 0.0 <= result.raw_confidence <= 1.0:
                return ProviderResult.error(
                    provider.id,
                    f"Confidence {result.raw_confidence} outside [0, 1]",
                    latency_ms=latency_ms,
                )

        return ProviderResult(
            provider_id=provider.id,
            outcome=result.outcome,
            label=result.label,
            raw_confidence=result.raw_confidence,
            latency_ms=latency_ms,
            detail=result.detail,
        )

    def _record(self, result: ProviderResult) -> None:
        if self.metrics is not None:
            self.metrics.record_provider_result(result)
        if self.health_tracker is not None:
            if result.is_success:
                self.health_tracker.record_success(result.provider_id)
            else:
                self.health_tracker.record_failure(result.provider_id, result.detail)
