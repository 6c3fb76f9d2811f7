"""
Identification Engine Package

Multi-provider identification with failure isolation, context weighting
and confidence-weighted voting.

Components:
- ProviderRegistry: Read-only provider catalog grouped by category
- FailoverPolicy: Category-first provider selection with general fallback
- ProviderHealthTracker: Per-provider circuit breaker
- Dispatcher: Concurrent fan-out under an overall deadline
- ContextAdjuster: Season/time/location/sky reweighting
- ResultAggregator: Weighted voting with deterministic tie-breaks
- ResponseCache: TTL cache with request coalescing
"""

from drahms_vision.engine.base import (
    IdentificationProvider,
    Provider,
    ImageRef,
    GeoRegion,
    IdentificationContext,
    IdentificationRequest,
    ProviderResult,
    AdjustedResult,
    AggregatedResult,
)
from drahms_vision.engine.registry import ProviderRegistry
from drahms_vision.engine.failover import FailoverPolicy
from drahms_vision.engine.health import ProviderHealthTracker, CircuitState
from drahms_vision.engine.dispatcher import Dispatcher
from drahms_vision.engine.context import ContextAdjuster, context_bucket
from drahms_vision.engine.labels import LabelResolver, get_label_resolver
from drahms_vision.engine.aggregator import ResultAggregator
from drahms_vision.engine.cache import (
    ResponseCache,
    CacheEntry,
    CacheStatus,
    CacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
)
from drahms_vision.engine.metrics import EngineMetrics

__all__ = [
    "IdentificationProvider",
    "Provider",
    "ImageRef",
    "GeoRegion",
    "IdentificationContext",
    "IdentificationRequest",
    "ProviderResult",
    "AdjustedResult",
    "AggregatedResult",
    "ProviderRegistry",
    "FailoverPolicy",
    "ProviderHealthTracker",
    "CircuitState",
    "Dispatcher",
    "ContextAdjuster",
    "context_bucket",
    "LabelResolver",
    "get_label_resolver",
    "ResultAggregator",
    "ResponseCache",
    "CacheEntry",
    "CacheStatus",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "EngineMetrics",
]
