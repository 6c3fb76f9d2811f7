"""
Context Adjuster

Reweights successful provider results using situational context:

    adjusted = clamp01(raw_confidence * provider_weight * multiplier)

The multiplier is the product of independent factors, each clamped to
[factor_min, factor_max]:
- season: migratory/seasonal categories (birds, plants)
- time of day: nocturnal categories boosted at night, astronomy penalized in daylight
- geography: providers restricted to a region penalized outside it
- celestial: astronomy boosted by clear skies and a dark moon

Missing context leaves the matching factor at 1.0. Context refines a
result but can never zero it out.
"""

import logging
from typing import Dict, List, Optional, Tuple

from drahms_vision.engine.base import (
    AdjustedResult,
    IdentificationContext,
    Provider,
    ProviderResult,
)
from drahms_vision.models.enums import Category, Season, TimeOfDay, MoonPhase

logger = logging.getLogger(__name__)


DEFAULT_SEASON_FACTORS: Dict[Category, Dict[Season, float]] = {
    Category.BIRDS: {
        Season.SPRING: 1.1,   # spring migration
        Season.SUMMER: 1.0,
        Season.AUTUMN: 1.1,   # autumn migration
        Season.WINTER: 0.9,
    },
    Category.PLANTS: {
        Season.SPRING: 1.1,
        Season.SUMMER: 1.1,
        Season.AUTUMN: 1.0,
        Season.WINTER: 0.8,
    },
}

DEFAULT_TIME_OF_DAY_FACTORS: Dict[Category, Dict[TimeOfDay, float]] = {
    Category.ANIMALS: {TimeOfDay.NIGHT: 1.15},
    Category.ASTRONOMY: {
        TimeOfDay.MORNING: 0.6,
        TimeOfDay.AFTERNOON: 0.6,
        TimeOfDay.NIGHT: 1.2,
    },
    Category.BIRDS: {TimeOfDay.NIGHT: 0.8},
    Category.INSECTS: {TimeOfDay.NIGHT: 0.9},
}

OUTSIDE_REGION_FACTOR = 0.7

CLEAR_SKY_FACTOR = 1.15
OBSCURED_SKY_FACTOR = 0.6
CLEAR_WEATHER = ("clear", "sunny", "fair")
OBSCURING_WEATHER = ("cloud", "overcast", "rain", "drizzle", "snow", "fog", "mist", "haze", "storm", "smoke")

DEFAULT_MOON_FACTORS: Dict[MoonPhase, float] = {
    MoonPhase.NEW: 1.1,
    MoonPhase.WAXING_CRESCENT: 1.05,
    MoonPhase.WANING_CRESCENT: 1.05,
    MoonPhase.FULL: 0.9,
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ContextAdjuster:
    """Deterministic context reweighting of provider confidences."""

    def __init__(
        self,
        factor_min: float = 0.5,
        factor_max: float = 1.2,
        season_factors: Optional[Dict[Category, Dict[Season, float]]] = None,
        time_of_day_factors: Optional[Dict[Category, Dict[TimeOfDay, float]]] = None,
        moon_factors: Optional[Dict[MoonPhase, float]] = None,
        outside_region_factor: float = OUTSIDE_REGION_FACTOR,
    ):
        """
        Args:
            factor_min: Lower bound applied to every individual factor
            factor_max: Upper bound applied to every individual factor
            season_factors: Per-category season table
            time_of_day_factors: Per-category time-of-day table
            moon_factors: Moon phase table for astronomy
            outside_region_factor: Penalty for regional providers outside their region
        """
        if not 0.0 < factor_min <= 1.0 <= factor_max:
            raise ValueError("Factor bounds must satisfy 0 < min <= 1 <= max")
        self.factor_min = factor_min
        self.factor_max = factor_max
        self.season_factors = DEFAULT_SEASON_FACTORS if season_factors is None else season_factors
        self.time_of_day_factors = (
            DEFAULT_TIME_OF_DAY_FACTORS if time_of_day_factors is None else time_of_day_factors
        )
        self.moon_factors = DEFAULT_MOON_FACTORS if moon_factors is None else moon_factors
        self.outside_region_factor = outside_region_factor

    def _bounded(self, factor: float) -> float:
        return clamp(factor, self.factor_min, self.factor_max)

    def season_factor(self, category: Category, context: IdentificationContext) -> float:
        table = self.season_factors.get(category)
        if not table:
            return 1.0
        return self._bounded(table.get(context.season, 1.0))

    def time_of_day_factor(self, category: Category, context: IdentificationContext) -> float:
        table = self.time_of_day_factors.get(category)
        if not table:
            return 1.0
        return self._bounded(table.get(context.time_of_day, 1.0))

    def geographic_factor(self, provider: Provider, context: IdentificationContext) -> float:
        if provider.region is None or not context.has_location:
            return 1.0
        if provider.region.contains(context.latitude, context.longitude):
            return 1.0
        return self._bounded(self.outside_region_factor)

    def celestial_factor(self, category: Category, context: IdentificationContext) -> float:
        if category != Category.ASTRONOMY:
            return 1.0

        factor = 1.0
        if context.weather:
            weather = context.weather.lower()
            if any(token in weather for token in OBSCURING_WEATHER):
                factor *= OBSCURED_SKY_FACTOR
            elif any(token in weather for token in CLEAR_WEATHER):
                factor *= CLEAR_SKY_FACTOR
        if context.moon_phase is not None:
            factor *= self.moon_factors.get(context.moon_phase, 1.0)
        return self._bounded(factor)

    def factors(self, provider: Provider, context: IdentificationContext) -> Dict[str, float]:
        """Individual factors for one provider, keyed by name."""
        return {
            "season": self.season_factor(provider.category, context),
            "time_of_day": self.time_of_day_factor(provider.category, context),
            "geographic": self.geographic_factor(provider, context),
            "celestial": self.celestial_factor(provider.category, context),
        }

    def multiplier(self, provider: Provider, context: IdentificationContext) -> float:
        result = 1.0
        for value in self.factors(provider, context).values():
            result *= value
        return result

    def adjust(
        self,
        result: ProviderResult,
        provider: Provider,
        context: IdentificationContext,
    ) -> AdjustedResult:
        """Reweight one successful result."""
        multiplier = self.multiplier(provider, context)
        adjusted = clamp(result.raw_confidence * provider.weight * multiplier, 0.0, 1.0)
        return AdjustedResult(
            result=result,
            weight=provider.weight,
            priority=provider.priority,
            multiplier=multiplier,
            adjusted_confidence=adjusted,
        )

    def adjust_all(
        self,
        results: List[ProviderResult],
        providers: List[Provider],
        context: IdentificationContext,
    ) -> List[AdjustedResult]:
        """Reweight the successful results; failures are skipped."""
        by_id = {p.id: p for p in providers}
        adjusted = []
        for result in results:
            provider = by_id.get(result.provider_id)
            if provider is None or not result.is_success:
                continue
            adjusted.append(self.adjust(result, provider, context))
        return adjusted


def context_bucket(context: IdentificationContext) -> Tuple:
    """
    Coarsened context used in cache keys.

    Covers every input of the multiplier (season, time of day, whole-degree
    location, weather, moon phase), so requests sharing a bucket are
    reweighted identically.
    """
    lat = round(context.latitude) if context.latitude is not None else None
    lon = round(context.longitude) if context.longitude is not None else None
    weather = context.weather.strip().lower() if context.weather else None
    return (
        context.season.value,
        context.time_of_day.value,
        lat,
        lon,
        weather,
        context.moon_phase.value if context.moon_phase else None,
    )
