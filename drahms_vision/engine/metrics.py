"""
Engine metrics.

Request, cache and per-provider counters with rolling latency averages over
the most recent calls. Updated from the event loop only.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Any

from drahms_vision.engine.base import ProviderResult, utcnow
from drahms_vision.models.enums import ProviderOutcome

ROLLING_WINDOW = 100


def _rolling_average(samples: Deque[float]) -> float:
    return sum(samples) / len(samples) if samples else 0.0


@dataclass
class ProviderMetrics:
    requests: int = 0
    successes: int = 0
    timeouts: int = 0
    errors: int = 0
    latencies_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=ROLLING_WINDOW))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requests": self.requests,
            "successes": self.successes,
            "timeouts": self.timeouts,
            "errors": self.errors,
            "average_response_time_ms": round(_rolling_average(self.latencies_ms), 3),
        }


@dataclass
class EngineMetrics:
    """Counters for the identification pipeline."""
    total_requests: int = 0
    cache_hits: int = 0
    dispatches: int = 0
    identified: int = 0
    unidentified: int = 0
    no_providers: int = 0
    dispatch_times_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=ROLLING_WINDOW))
    providers: Dict[str, ProviderMetrics] = field(default_factory=dict)

    def record_request(self) -> None:
        self.total_requests += 1

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def record_dispatch(self, elapsed_ms: float) -> None:
        self.dispatches += 1
        self.dispatch_times_ms.append(elapsed_ms)

    def record_outcome(self, unidentified: bool) -> None:
        if unidentified:
            self.unidentified += 1
        else:
            self.identified += 1

    def record_provider_result(self, result: ProviderResult) -> None:
        metrics = self.providers.get(result.provider_id)
        if metrics is None:
            metrics = ProviderMetrics()
            self.providers[result.provider_id] = metrics
        metrics.requests += 1
        metrics.latencies_ms.append(result.latency_ms)
        if result.outcome == ProviderOutcome.SUCCESS:
            metrics.successes += 1
        elif result.outcome == ProviderOutcome.TIMEOUT:
            metrics.timeouts += 1
        else:
            metrics.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": {
                "total_requests": self.total_requests,
                "cache_hits": self.cache_hits,
                "dispatches": self.dispatches,
                "identified": self.identified,
                "unidentified": self.unidentified,
                "no_providers": self.no_providers,
                "average_dispatch_time_ms": round(_rolling_average(self.dispatch_times_ms), 3),
            },
            "providers": {pid: m.to_dict() for pid, m in sorted(self.providers.items())},
            "timestamp": utcnow().isoformat(),
        }
