"""
Base interfaces and data structures for the identification engine.

Provides:
- IdentificationProvider: capability contract every external source implements
- Provider: immutable catalog entry (id, category, priority, weight, timeout)
- IdentificationContext: situational context with derived season/time of day
- ProviderResult: tagged outcome of one provider call
- AggregatedResult: consolidated, confidence-scored answer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

from drahms_vision.models.enums import (
    Category,
    ProviderOutcome,
    UnidentifiedReason,
    Season,
    TimeOfDay,
    MoonPhase,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ImageRef:
    """Opaque handle to the captured image passed to providers."""
    data: bytes = field(repr=False)
    fingerprint: str
    content_type: str = "image/jpeg"


@dataclass(frozen=True)
class GeoRegion:
    """Latitude/longitude bounding box."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.min_lat <= latitude <= self.max_lat and
            self.min_lon <= longitude <= self.max_lon
        )


@dataclass(frozen=True)
class IdentificationContext:
    """
    Situational context for an identification request.

    Season and time of day are derived from the timestamp (and latitude,
    for the hemisphere). Weather and moon phase are only ever supplied by
    the caller.
    """
    timestamp: datetime = field(default_factory=utcnow)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    weather: Optional[str] = None
    moon_phase: Optional[MoonPhase] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def season(self) -> Season:
        """Meteorological season, flipped for the southern hemisphere."""
        month = self.timestamp.month
        if 3 <= month <= 5:
            season = Season.SPRING
        elif 6 <= month <= 8:
            season = Season.SUMMER
        elif 9 <= month <= 11:
            season = Season.AUTUMN
        else:
            season = Season.WINTER

        if self.latitude is not None and self.latitude < 0:
            season = {
                Season.SPRING: Season.AUTUMN,
                Season.SUMMER: Season.WINTER,
                Season.AUTUMN: Season.SPRING,
                Season.WINTER: Season.SUMMER,
            }[season]
        return season

    @property
    def time_of_day(self) -> TimeOfDay:
        hour = self.timestamp.hour
        if 5 <= hour < 12:
            return TimeOfDay.MORNING
        if 12 <= hour < 17:
            return TimeOfDay.AFTERNOON
        if 17 <= hour < 20:
            return TimeOfDay.EVENING
        return TimeOfDay.NIGHT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "weather": self.weather,
            "moon_phase": self.moon_phase.value if self.moon_phase else None,
            "season": self.season.value,
            "time_of_day": self.time_of_day.value,
        }


@dataclass(frozen=True)
class IdentificationRequest:
    """One request flowing through the pipeline."""
    image_ref: ImageRef
    category_hint: Optional[str]
    context: IdentificationContext
    confidence_threshold: float
    overall_deadline: float  # seconds

    @property
    def image_fingerprint(self) -> str:
        return self.image_ref.fingerprint

    @property
    def category(self) -> Optional[Category]:
        return Category.from_hint(self.category_hint)


@dataclass(frozen=True)
class ProviderResult:
    """
    Result of a single provider call.

    Failures are values, never exceptions: outcome is TIMEOUT or ERROR and
    detail explains why.
    """
    provider_id: str
    outcome: ProviderOutcome
    label: str = ""
    raw_confidence: float = 0.0
    latency_ms: float = 0.0
    detail: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.outcome == ProviderOutcome.SUCCESS

    @classmethod
    def success(
        cls,
        provider_id: str,
        label: str,
        confidence: float,
        latency_ms: float = 0.0,
    ) -> "ProviderResult":
        return cls(
            provider_id=provider_id,
            outcome=ProviderOutcome.SUCCESS,
            label=label,
            raw_confidence=confidence,
            latency_ms=latency_ms,
        )

    @classmethod
    def timeout(cls, provider_id: str, latency_ms: float = 0.0, detail: str = "timeout") -> "ProviderResult":
        return cls(
            provider_id=provider_id,
            outcome=ProviderOutcome.TIMEOUT,
            latency_ms=latency_ms,
            detail=detail,
        )

    @classmethod
    def error(cls, provider_id: str, detail: str, latency_ms: float = 0.0) -> "ProviderResult":
        return cls(
            provider_id=provider_id,
            outcome=ProviderOutcome.ERROR,
            latency_ms=latency_ms,
            detail=detail,
        )


class IdentificationProvider(ABC):
    """
    Capability contract for external classification sources.

    Implementations wrap an HTTP API, SDK or local model. They should return
    within the given timeout and report failures as TIMEOUT/ERROR results;
    the dispatcher enforces the timeout externally regardless.
    """

    def __init__(self, provider_id: str):
        self.provider_id = provider_id

    @abstractmethod
    async def identify(
        self,
        image_ref: ImageRef,
        context: IdentificationContext,
        timeout: float,
    ) -> ProviderResult:
        """
        Identify the object in an image.

        Args:
            image_ref: Image to classify
            context: Situational context (location, time, weather)
            timeout: Budget in seconds for this call

        Returns:
            ProviderResult with label and raw confidence, or a failure outcome
        """
        pass

    async def aclose(self) -> None:
        """Release client resources (HTTP sessions, etc.)."""
        return None


@dataclass(frozen=True)
class Provider:
    """
    Registered provider.

    Lower priority values are tried first and win aggregation ties. Instances
    are created once at startup and never mutated.
    """
    id: str
    category: Category
    priority: int
    weight: float
    timeout: float  # seconds
    client: IdentificationProvider = field(compare=False, repr=False)
    available: bool = True
    name: Optional[str] = None
    region: Optional[GeoRegion] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "category": self.category.value,
            "priority": self.priority,
            "weight": self.weight,
            "timeout_ms": int(self.timeout * 1000),
            "available": self.available,
            "region": (
                {
                    "min_lat": self.region.min_lat,
                    "max_lat": self.region.max_lat,
                    "min_lon": self.region.min_lon,
                    "max_lon": self.region.max_lon,
                }
                if self.region else None
            ),
        }


@dataclass(frozen=True)
class AdjustedResult:
    """A successful provider result after context reweighting."""
    result: ProviderResult
    weight: float
    priority: int
    multiplier: float
    adjusted_confidence: float

    @property
    def provider_id(self) -> str:
        return self.result.provider_id

    @property
    def label(self) -> str:
        return self.result.label


@dataclass(frozen=True)
class ContributingProvider:
    provider_id: str
    adjusted_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "adjusted_confidence": self.adjusted_confidence,
        }


@dataclass(frozen=True)
class LabelCandidate:
    """A non-winning (or sub-threshold) voting group."""
    label: str
    score: float
    weight: float
    providers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "score": self.score,
            "weight": self.weight,
            "providers": list(self.providers),
        }


@dataclass(frozen=True)
class ProviderDiagnostic:
    """Per-provider record attached to every aggregated result."""
    provider_id: str
    outcome: ProviderOutcome
    latency_ms: float
    label: Optional[str] = None
    raw_confidence: Optional[float] = None
    detail: Optional[str] = None

    @classmethod
    def from_result(cls, result: ProviderResult) -> "ProviderDiagnostic":
        return cls(
            provider_id=result.provider_id,
            outcome=result.outcome,
            latency_ms=round(result.latency_ms, 3),
            label=result.label if result.is_success else None,
            raw_confidence=result.raw_confidence if result.is_success else None,
            detail=result.detail,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "outcome": self.outcome.value,
            "latency_ms": self.latency_ms,
            "label": self.label,
            "raw_confidence": self.raw_confidence,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class AggregatedResult:
    """
    Consolidated identification.

    Exactly one is produced per request. When unidentified is True the label
    is empty, merged_confidence is 0 and contributing_providers is empty;
    reason says why.
    """
    label: str
    merged_confidence: float
    category: Category
    contributing_providers: Tuple[ContributingProvider, ...]
    timestamp: datetime
    unidentified: bool
    reason: Optional[UnidentifiedReason] = None
    alternatives: Tuple[LabelCandidate, ...] = ()
    diagnostics: Tuple[ProviderDiagnostic, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "label": self.label,
            "merged_confidence": self.merged_confidence,
            "category": self.category.value,
            "contributing_providers": [c.to_dict() for c in self.contributing_providers],
            "timestamp": self.timestamp.isoformat(),
            "unidentified": self.unidentified,
            "reason": self.reason.value if self.reason else None,
            "alternatives": [a.to_dict() for a in self.alternatives],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregatedResult":
        return cls(
            label=data["label"],
            merged_confidence=data["merged_confidence"],
            category=Category(data["category"]),
            contributing_providers=tuple(
                ContributingProvider(**c) for c in data.get("contributing_providers", [])
            ),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            unidentified=data["unidentified"],
            reason=UnidentifiedReason(data["reason"]) if data.get("reason") else None,
            alternatives=tuple(
                LabelCandidate(
                    label=a["label"],
                    score=a["score"],
                    weight=a["weight"],
                    providers=tuple(a.get("providers", [])),
                )
                for a in data.get("alternatives", [])
            ),
            diagnostics=tuple(
                ProviderDiagnostic(
                    provider_id=d["provider_id"],
                    outcome=ProviderOutcome(d["outcome"]),
                    latency_ms=d["latency_ms"],
                    label=d.get("label"),
                    raw_confidence=d.get("raw_confidence"),
                    detail=d.get("detail"),
                )
                for d in data.get("diagnostics", [])
            ),
        )

    @classmethod
    def unidentified_result(
        cls,
        category: Category,
        reason: UnidentifiedReason,
        alternatives: Optional[List[LabelCandidate]] = None,
        diagnostics: Optional[List[ProviderDiagnostic]] = None,
        timestamp: Optional[datetime] = None,
    ) -> "AggregatedResult":
        return cls(
            label="",
            merged_confidence=0.0,
            category=category,
            contributing_providers=(),
            timestamp=timestamp or utcnow(),
            unidentified=True,
            reason=reason,
            alternatives=tuple(alternatives or ()),
            diagnostics=tuple(diagnostics or ()),
        )
