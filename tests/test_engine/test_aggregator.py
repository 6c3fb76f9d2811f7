"""
Tests for ResultAggregator - weighted voting over adjusted results.

Tests cover:
- Agreement beats a single high-confidence outlier
- Merged confidence formula and bounds
- Deterministic tie-breaking
- Threshold and unidentified results
- Synonym grouping
"""

import pytest

from drahms_vision.engine.aggregator import ResultAggregator
from drahms_vision.engine.base import AdjustedResult, ProviderResult
from drahms_vision.engine.labels import LabelResolver
from drahms_vision.models.enums import Category, ProviderOutcome, UnidentifiedReason


def adjusted(provider_id, label, raw, weight, priority=1, multiplier=1.0):
    return AdjustedResult(
        result=ProviderResult.success(provider_id, label, raw, latency_ms=10.0),
        weight=weight,
        priority=priority,
        multiplier=multiplier,
        adjusted_confidence=min(1.0, raw * weight * multiplier),
    )


class TestResultAggregator:
    """Test suite for ResultAggregator."""

    @pytest.fixture
    def aggregator(self):
        return ResultAggregator(LabelResolver())

    # === Voting ===

    def test_agreement_beats_single_outlier(self, aggregator):
        """Two providers agreeing outvote one confident dissenter."""
        results = [
            adjusted("a", "Sparrow", 0.6, 0.5, priority=1),
            adjusted("b", "Sparrow", 0.5, 0.4, priority=2),
            adjusted("c", "Finch", 0.9, 0.3, priority=3),
        ]

        result = aggregator.aggregate(results, providers_queried=3, confidence_threshold=0.1,
                                      category=Category.BIRDS)

        assert result.unidentified is False
        assert result.label == "Sparrow"
        assert result.merged_confidence == pytest.approx(0.5 / 3)
        assert [c.provider_id for c in result.contributing_providers] == ["a", "b"]
        assert result.alternatives[0].label == "Finch"
        assert result.alternatives[0].score == pytest.approx(0.27)

    def test_labels_grouped_case_and_whitespace_insensitive(self, aggregator):
        results = [
            adjusted("a", "  sparrow ", 0.6, 0.5),
            adjusted("b", "SPARROW", 0.5, 0.4),
        ]

        result = aggregator.aggregate(results, 2, 0.0, Category.BIRDS)

        assert len(result.contributing_providers) == 2
        assert result.merged_confidence == pytest.approx((0.3 + 0.2) / 2)

    def test_synonyms_vote_together(self, aggregator):
        """Common and scientific names fall into one group."""
        results = [
            adjusted("ebird", "American Robin", 0.8, 0.6, priority=1),
            adjusted("birdnet", "Turdus migratorius", 0.7, 0.4, priority=2),
        ]

        result = aggregator.aggregate(results, 2, 0.3, Category.BIRDS)

        assert result.label == "American Robin"
        assert result.merged_confidence == pytest.approx(0.38)

    def test_display_label_from_strongest_member(self, aggregator):
        results = [
            adjusted("a", "wood thrush", 0.4, 0.5, priority=1),
            adjusted("b", "Wood Thrush", 0.9, 0.5, priority=2),
        ]

        result = aggregator.aggregate(results, 2, 0.0, Category.BIRDS)

        assert result.label == "Wood Thrush"

    # === Merged confidence ===

    def test_failures_count_as_queried(self, aggregator):
        """Timeouts and errors dilute the merged confidence."""
        results = [adjusted("a", "Moon", 0.9, 1.0)]
        raw = [
            results[0].result,
            ProviderResult.timeout("b", 3000.0),
            ProviderResult.error("c", "HTTP 500"),
        ]

        result = aggregator.aggregate(results, 3, 0.0, Category.ASTRONOMY, provider_results=raw)

        assert result.merged_confidence == pytest.approx(0.3)
        assert [d.provider_id for d in result.diagnostics] == ["a", "b", "c"]
        assert result.diagnostics[1].outcome == ProviderOutcome.TIMEOUT

    def test_merged_confidence_capped_at_one(self, aggregator):
        results = [
            adjusted("a", "Moon", 1.0, 1.0, multiplier=1.2),
            adjusted("b", "Moon", 1.0, 1.0, multiplier=1.2),
        ]

        result = aggregator.aggregate(results, 1, 0.0, Category.ASTRONOMY)

        assert result.merged_confidence == 1.0

    def test_merged_confidence_not_a_source_value(self, aggregator):
        results = [adjusted("a", "Raccoon", 0.8, 0.5)]

        result = aggregator.aggregate(results, 1, 0.0, Category.ANIMALS)

        assert result.merged_confidence == pytest.approx(0.4)
        assert result.merged_confidence != 0.8

    # === Tie-breaking ===

    def test_tie_broken_by_weight(self, aggregator):
        results = [
            adjusted("a", "Oak", 0.5, 0.4, priority=1),   # 0.20
            adjusted("b", "Maple", 0.25, 0.8, priority=2),  # 0.20
        ]

        result = aggregator.aggregate(results, 2, 0.0, Category.PLANTS)

        assert result.label == "Maple"

    def test_tie_broken_by_priority(self, aggregator):
        results = [
            adjusted("z", "Oak", 0.5, 0.5, priority=2),
            adjusted("y", "Maple", 0.5, 0.5, priority=1),
        ]

        result = aggregator.aggregate(results, 2, 0.0, Category.PLANTS)

        assert result.label == "Maple"

    def test_tie_broken_by_label(self, aggregator):
        results = [
            adjusted("a", "Oak", 0.5, 0.5, priority=1),
            adjusted("b", "Maple", 0.5, 0.5, priority=1),
        ]

        result = aggregator.aggregate(results, 2, 0.0, Category.PLANTS)

        assert result.label == "Maple"

    def test_input_order_does_not_matter(self, aggregator):
        results = [
            adjusted("a", "Oak", 0.3, 0.7, priority=2),
            adjusted("b", "Maple", 0.7, 0.3, priority=1),
            adjusted("c", "oak", 0.2, 0.3, priority=3),
        ]

        first = aggregator.aggregate(results, 3, 0.0, Category.PLANTS)
        second = aggregator.aggregate(list(reversed(results)), 3, 0.0, Category.PLANTS)

        assert first.label == second.label
        assert first.merged_confidence == second.merged_confidence
        assert first.contributing_providers == second.contributing_providers

    # === Unidentified ===

    def test_below_threshold_is_unidentified(self, aggregator):
        results = [
            adjusted("a", "Sparrow", 0.6, 0.5),
            adjusted("b", "Sparrow", 0.5, 0.4),
            adjusted("c", "Finch", 0.9, 0.3),
        ]

        result = aggregator.aggregate(results, 3, 0.3, Category.BIRDS)

        assert result.unidentified is True
        assert result.reason == UnidentifiedReason.BELOW_THRESHOLD
        assert result.label == ""
        assert result.merged_confidence == 0.0
        assert result.contributing_providers == ()
        assert [a.label for a in result.alternatives] == ["Sparrow", "Finch"]

    def test_threshold_is_inclusive(self, aggregator):
        results = [adjusted("a", "Moon", 0.5, 1.0)]

        result = aggregator.aggregate(results, 1, 0.5, Category.ASTRONOMY)

        assert result.unidentified is False

    def test_no_successes_is_unidentified(self, aggregator):
        raw = [ProviderResult.timeout("a", 3000.0), ProviderResult.error("b", "boom")]

        result = aggregator.aggregate([], 2, 0.0, Category.BIRDS, provider_results=raw)

        assert result.unidentified is True
        assert result.reason == UnidentifiedReason.NO_SUCCESSFUL_PROVIDERS
        assert len(result.diagnostics) == 2
        assert result.category == Category.BIRDS
