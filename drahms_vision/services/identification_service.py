"""
Identification Orchestration Service

Coordinates the complete identification pipeline:
1. Response cache lookup (with request coalescing)
2. Provider selection (category first, general fallback)
3. Concurrent dispatch under the overall deadline
4. Context reweighting
5. Weighted voting into one AggregatedResult

Every request yields exactly one AggregatedResult. Provider failures,
missing providers and cache outages all end in a (possibly unidentified)
result; only malformed requests raise.

Pipeline Flow:
```
Image + context
      |
 ┌────▼────┐
 │  Cache  │ ──hit──────────────────────────┐
 └────┬────┘                                │
      | miss (one leader per key)           │
 ┌────▼─────┐                               │
 │ Failover │ → ordered providers           │
 └────┬─────┘                               │
 ┌────▼──────┐                              │
 │Dispatcher │ → one ProviderResult each    │
 └────┬──────┘                              │
 ┌────▼────┐                                │
 │ Context │ → adjusted confidences         │
 └────┬────┘                                │
 ┌────▼──────┐                              │
 │Aggregator │ → AggregatedResult ──────────┤
 └───────────┘                              │
                                       AggregatedResult
```
"""

import logging
import math
import time
from typing import Any, Dict, List, Optional, Union

from drahms_vision.core.config import Settings, get_settings
from drahms_vision.core.exceptions import InvalidRequestError, NoProvidersAvailable
from drahms_vision.engine.aggregator import ResultAggregator
from drahms_vision.engine.base import (
    AggregatedResult,
    IdentificationContext,
    IdentificationRequest,
    ImageRef,
)
from drahms_vision.engine.cache import (
    CacheStatus,
    InMemoryCacheStore,
    RedisCacheStore,
    ResponseCache,
)
from drahms_vision.engine.context import ContextAdjuster, context_bucket
from drahms_vision.engine.dispatcher import Dispatcher
from drahms_vision.engine.failover import FailoverPolicy
from drahms_vision.engine.health import ProviderHealthTracker
from drahms_vision.engine.labels import LabelResolver
from drahms_vision.engine.metrics import EngineMetrics
from drahms_vision.engine.registry import ProviderRegistry
from drahms_vision.models.enums import Category, UnidentifiedReason
from drahms_vision.services.image_service import fingerprint

logger = logging.getLogger(__name__)


class IdentificationEngine:
    """
    Main entry point for object identification.

    Usage:
        engine = IdentificationEngine.from_settings(get_settings())
        result = await engine.identify(
            image=jpeg_bytes,
            category_hint="birds",
            context=IdentificationContext(latitude=40.7, longitude=-74.0),
        )
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        health_tracker: Optional[ProviderHealthTracker] = None,
        adjuster: Optional[ContextAdjuster] = None,
        aggregator: Optional[ResultAggregator] = None,
        cache: Optional[ResponseCache] = None,
        metrics: Optional[EngineMetrics] = None,
        overall_deadline: float = 5.0,
        default_threshold: float = 0.3,
    ):
        """
        Initialize the engine with its components.

        Components can be injected for testing; anything omitted gets a
        default instance.

        Args:
            registry: Provider catalog
            health_tracker: Circuit breaker state
            adjuster: Context reweighting
            aggregator: Weighted voting
            cache: Response cache
            metrics: Counters shared with the dispatcher
            overall_deadline: Seconds allowed for one dispatch
            default_threshold: Threshold used when a request gives none
        """
        if overall_deadline <= 0:
            raise ValueError("overall_deadline must be positive")
        self._check_threshold(default_threshold)

        self.registry = registry
        self.health_tracker = health_tracker or ProviderHealthTracker()
        self.metrics = metrics or EngineMetrics()
        self.failover = FailoverPolicy(registry, self.health_tracker)
        self.dispatcher = Dispatcher(self.health_tracker, self.metrics)
        self.adjuster = adjuster or ContextAdjuster()
        self.aggregator = aggregator or ResultAggregator()
        self.cache = cache or ResponseCache()
        self.overall_deadline = overall_deadline
        self.default_threshold = default_threshold

        for provider in registry.all():
            if provider.timeout > overall_deadline:
                logger.warning(
                    f"Provider {provider.id} timeout {provider.timeout:.2f}s exceeds the "
                    f"overall deadline {overall_deadline:.2f}s; it can only finish by the deadline"
                )

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentificationEngine":
        """Build a fully wired engine from application settings."""
        registry = ProviderRegistry.from_settings(settings)

        health_tracker = ProviderHealthTracker(
            failure_threshold=settings.failure_threshold,
            recovery_timeout=settings.recovery_timeout_ms / 1000.0,
            monitoring_period=settings.monitoring_period_ms / 1000.0,
        )

        if settings.cache_backend == "redis" and settings.redis_url:
            store = RedisCacheStore.from_url(settings.redis_url)
            logger.info("Response cache backed by Redis")
        else:
            if settings.cache_backend != "memory":
                logger.warning(
                    f"Cache backend {settings.cache_backend!r} not usable "
                    f"(redis_url set: {bool(settings.redis_url)}), using in-memory cache"
                )
            store = InMemoryCacheStore(capacity=settings.cache_capacity)

        cache = ResponseCache(
            store=store,
            success_ttl=settings.success_ttl_ms / 1000.0,
            unidentified_ttl=settings.unidentified_ttl_ms / 1000.0,
        )

        return cls(
            registry=registry,
            health_tracker=health_tracker,
            adjuster=ContextAdjuster(
                factor_min=settings.context_factor_min,
                factor_max=settings.context_factor_max,
            ),
            aggregator=ResultAggregator(LabelResolver(synonyms_path=settings.synonyms_path)),
            cache=cache,
            overall_deadline=settings.overall_deadline_ms / 1000.0,
            default_threshold=settings.default_threshold,
        )

    @staticmethod
    def _check_threshold(threshold: Any) -> float:
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise InvalidRequestError(f"Confidence threshold must be a number, got {threshold!r}")
        if math.isnan(threshold) or not 0.0 <= threshold <= 1.0:
            raise InvalidRequestError(f"Confidence threshold {threshold} outside [0, 1]")
        return float(threshold)

    @staticmethod
    def _image_ref(image: Union[bytes, ImageRef]) -> ImageRef:
        if isinstance(image, ImageRef):
            if not image.data:
                raise InvalidRequestError("Image payload is empty")
            return image
        if not isinstance(image, (bytes, bytearray)) or not image:
            raise InvalidRequestError("Image payload is empty")
        data = bytes(image)
        return ImageRef(data=data, fingerprint=fingerprint(data))

    def build_request(
        self,
        image: Union[bytes, ImageRef],
        category_hint: Optional[str] = "auto",
        context: Optional[IdentificationContext] = None,
        confidence_threshold: Optional[float] = None,
    ) -> IdentificationRequest:
        """
        Validate inputs into an IdentificationRequest.

        Raises:
            InvalidRequestError: empty image or threshold outside [0, 1]
        """
        threshold = self.default_threshold if confidence_threshold is None else confidence_threshold
        return IdentificationRequest(
            image_ref=self._image_ref(image),
            category_hint=category_hint,
            context=context or IdentificationContext(),
            confidence_threshold=self._check_threshold(threshold),
            overall_deadline=self.overall_deadline,
        )

    def cache_key(self, request: IdentificationRequest) -> str:
        category = request.category or Category.GENERAL
        return ResponseCache.make_key(
            request.image_fingerprint,
            category.value,
            context_bucket(request.context),
            request.confidence_threshold,
        )

    async def identify(
        self,
        image: Union[bytes, ImageRef],
        category_hint: Optional[str] = "auto",
        context: Optional[IdentificationContext] = None,
        confidence_threshold: Optional[float] = None,
    ) -> AggregatedResult:
        """
        Identify the object in an image.

        Args:
            image: Raw image bytes or a prepared ImageRef
            category_hint: Category name, or "auto"
            context: Situational context (defaults to "now", no location)
            confidence_threshold: Minimum merged confidence; defaults to the configured one

        Returns:
            AggregatedResult, identified or not

        Raises:
            InvalidRequestError: malformed request
        """
        request = self.build_request(image, category_hint, context, confidence_threshold)
        self.metrics.record_request()

        key = self.cache_key(request)
        result, status = await self.cache.get_or_compute(key, lambda: self._run(request))

        if status == CacheStatus.HIT:
            self.metrics.record_cache_hit()
        logger.debug(f"Request {key[:12]} served ({status.value})")
        return result

    async def _run(self, request: IdentificationRequest) -> AggregatedResult:
        """One uncached pass through the pipeline."""
        start = time.perf_counter()
        category, providers = self.failover.resolve(request.category_hint)

        try:
            results = await self.dispatcher.dispatch(request, providers)
        except NoProvidersAvailable as e:
            logger.warning(f"{e}; returning unidentified result")
            self.metrics.no_providers += 1
            self.metrics.record_outcome(unidentified=True)
            return AggregatedResult.unidentified_result(
                category=category,
                reason=UnidentifiedReason.NO_PROVIDERS_AVAILABLE,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_dispatch(elapsed_ms)

        adjusted = self.adjuster.adjust_all(results, providers, request.context)
        result = self.aggregator.aggregate(
            adjusted,
            providers_queried=len(providers),
            confidence_threshold=request.confidence_threshold,
            category=category,
            provider_results=results,
        )
        self.metrics.record_outcome(result.unidentified)

        if result.unidentified:
            logger.info(
                f"Unidentified ({result.reason.value}) after querying "
                f"{len(providers)} {category.value} provider(s) in {elapsed_ms:.0f}ms"
            )
        else:
            logger.info(
                f"Identified '{result.label}' ({result.merged_confidence:.3f}) from "
                f"{len(result.contributing_providers)}/{len(providers)} {category.value} "
                f"provider(s) in {elapsed_ms:.0f}ms"
            )
        return result

    def get_provider_status(self) -> List[Dict[str, Any]]:
        """Provider metadata with current circuit state."""
        status = []
        for info in self.registry.get_provider_info():
            info["circuit"] = self.health_tracker.state(info["id"]).value
            status.append(info)
        return status

    def get_metrics(self) -> Dict[str, Any]:
        metrics = self.metrics.to_dict()
        metrics["circuits"] = self.health_tracker.snapshot()
        return metrics

    async def get_cache_stats(self) -> Dict[str, Any]:
        return await self.cache.stats()

    async def clear_cache(self) -> None:
        await self.cache.clear()

    async def aclose(self) -> None:
        """Release provider clients and the cache backend."""
        for provider in self.registry.all():
            await provider.client.aclose()
        await self.cache.close()


# Singleton instance for dependency injection
_identification_engine: Optional[IdentificationEngine] = None


def get_identification_engine() -> IdentificationEngine:
    """Get or create the identification engine singleton."""
    global _identification_engine
    if _identification_engine is None:
        _identification_engine = IdentificationEngine.from_settings(get_settings())
    return _identification_engine
