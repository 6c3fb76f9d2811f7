"""
Tests for ContextAdjuster and IdentificationContext.

Tests cover:
- Derived season (with hemisphere) and time of day
- Individual factors and their bounds
- Adjusted confidence range
- Cache context buckets
"""

from datetime import datetime, timezone

import pytest

from drahms_vision.engine.base import GeoRegion, IdentificationContext, ProviderResult
from drahms_vision.engine.context import ContextAdjuster, context_bucket
from drahms_vision.models.enums import Category, MoonPhase, Season, TimeOfDay

NORTH_AMERICA = GeoRegion(min_lat=15.0, max_lat=72.0, min_lon=-170.0, max_lon=-50.0)


def at(month, hour, **kwargs):
    return IdentificationContext(
        timestamp=datetime(2026, month, 15, hour, 0, tzinfo=timezone.utc), **kwargs
    )


class TestIdentificationContext:

    @pytest.mark.parametrize("month,season", [
        (1, Season.WINTER), (4, Season.SPRING), (7, Season.SUMMER), (10, Season.AUTUMN), (12, Season.WINTER),
    ])
    def test_northern_season(self, month, season):
        assert at(month, 12).season == season

    def test_southern_hemisphere_season_flipped(self):
        assert at(1, 12, latitude=-33.9, longitude=151.2).season == Season.SUMMER
        assert at(7, 12, latitude=-33.9, longitude=151.2).season == Season.WINTER

    @pytest.mark.parametrize("hour,time_of_day", [
        (4, TimeOfDay.NIGHT), (5, TimeOfDay.MORNING), (12, TimeOfDay.AFTERNOON),
        (17, TimeOfDay.EVENING), (20, TimeOfDay.NIGHT),
    ])
    def test_time_of_day(self, hour, time_of_day):
        assert at(7, hour).time_of_day == time_of_day


class TestContextAdjuster:
    """Test suite for ContextAdjuster."""

    @pytest.fixture
    def adjuster(self):
        return ContextAdjuster()

    def test_missing_context_is_neutral(self, adjuster, make_provider):
        provider = make_provider("bugguide", Category.INSECTS, region=NORTH_AMERICA)

        factors = adjuster.factors(provider, at(7, 13))

        assert factors == {"season": 1.0, "time_of_day": 1.0, "geographic": 1.0, "celestial": 1.0}

    def test_migration_season_boosts_birds(self, adjuster, make_provider):
        provider = make_provider("ebird", Category.BIRDS)

        assert adjuster.season_factor(Category.BIRDS, at(4, 10)) == 1.1
        assert adjuster.multiplier(provider, at(1, 10)) == pytest.approx(0.9)

    def test_plants_season_uses_hemisphere(self, adjuster):
        assert adjuster.season_factor(Category.PLANTS, at(1, 12)) == 0.8
        assert adjuster.season_factor(Category.PLANTS, at(1, 12, latitude=-33.9, longitude=18.4)) == 1.1

    def test_nocturnal_animals_boosted_at_night(self, adjuster):
        assert adjuster.time_of_day_factor(Category.ANIMALS, at(7, 23)) == 1.15
        assert adjuster.time_of_day_factor(Category.ANIMALS, at(7, 13)) == 1.0

    def test_region_penalty_outside_region(self, adjuster, make_provider):
        provider = make_provider("bugguide", Category.INSECTS, region=NORTH_AMERICA)

        assert adjuster.geographic_factor(provider, at(7, 13, latitude=40.7, longitude=-74.0)) == 1.0
        assert adjuster.geographic_factor(provider, at(7, 13, latitude=48.8, longitude=2.3)) == 0.7

    def test_astronomy_clear_dark_night(self, adjuster, make_provider):
        provider = make_provider("nasa", Category.ASTRONOMY, weight=0.5)
        context = at(7, 23, weather="Clear", moon_phase=MoonPhase.NEW)

        result = adjuster.adjust(ProviderResult.success("nasa", "Moon", 0.9), provider, context)

        # celestial 1.15 * 1.1 clamped to 1.2, night 1.2
        assert result.multiplier == pytest.approx(1.44)
        assert result.adjusted_confidence == pytest.approx(0.9 * 0.5 * 1.44)

    def test_astronomy_penalized_in_daylight_under_clouds(self, adjuster, make_provider):
        provider = make_provider("nasa", Category.ASTRONOMY)

        assert adjuster.multiplier(provider, at(7, 13, weather="overcast")) == pytest.approx(0.36)

    def test_factor_bounds_applied(self, make_provider):
        adjuster = ContextAdjuster(factor_min=0.8, factor_max=1.1)
        provider = make_provider("nasa", Category.ASTRONOMY)

        assert adjuster.time_of_day_factor(Category.ASTRONOMY, at(7, 13)) == 0.8
        assert adjuster.time_of_day_factor(Category.ASTRONOMY, at(7, 23)) == 1.1
        assert adjuster.factors(provider, at(7, 23, weather="clear"))["celestial"] == 1.1

    def test_invalid_bounds_rejected(self):
        with pytest.raises(ValueError):
            ContextAdjuster(factor_min=1.1, factor_max=1.2)

    def test_adjusted_confidence_stays_in_range(self, adjuster, make_provider):
        provider = make_provider("nasa", Category.ASTRONOMY, weight=1.0)
        context = at(7, 23, weather="clear", moon_phase=MoonPhase.NEW)

        result = adjuster.adjust(ProviderResult.success("nasa", "Moon", 1.0), provider, context)

        assert result.adjusted_confidence == 1.0

    def test_adjust_all_skips_failures(self, adjuster, make_provider, summer_afternoon):
        providers = [make_provider("a"), make_provider("b")]
        results = [
            ProviderResult.success("a", "Moon", 0.8),
            ProviderResult.timeout("b", 3000.0),
        ]

        adjusted = adjuster.adjust_all(results, providers, summer_afternoon)

        assert [a.provider_id for a in adjusted] == ["a"]
        assert adjusted[0].adjusted_confidence == pytest.approx(0.4)


class TestContextBucket:

    def test_nearby_locations_share_bucket(self):
        first = at(7, 13, latitude=40.2, longitude=-74.1)
        second = at(7, 14, latitude=40.4, longitude=-73.8)

        assert context_bucket(first) == context_bucket(second)

    def test_bucket_tracks_multiplier_inputs(self):
        base = context_bucket(at(7, 13))

        assert context_bucket(at(1, 13)) != base
        assert context_bucket(at(7, 23)) != base
        assert context_bucket(at(7, 13, weather="rain")) != base
        assert context_bucket(at(7, 13, moon_phase=MoonPhase.FULL)) != base
