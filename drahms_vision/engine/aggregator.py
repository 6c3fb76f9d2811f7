"""
Result Aggregator

Merges context-adjusted provider results into one labeled answer.

Algorithm:
1. Resolve each label to a voting key (case-fold, trim, synonyms)
2. Per group: score = sum of adjusted confidences, weight = sum of provider weights
3. Winner ordering: score desc, weight desc, best (lowest) priority asc,
   normalized label asc. Fully deterministic for identical inputs.
4. merged_confidence = min(1, score / max(1, providers queried))
5. Below threshold, or no successful results -> unidentified

Timeouts and errors never vote; they are carried through as diagnostics.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Dict

from drahms_vision.engine.base import (
    AdjustedResult,
    AggregatedResult,
    ContributingProvider,
    LabelCandidate,
    ProviderDiagnostic,
    ProviderResult,
    utcnow,
)
from drahms_vision.engine.labels import LabelResolver, get_label_resolver
from drahms_vision.models.enums import Category, UnidentifiedReason

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3


@dataclass
class VotingGroup:
    key: str
    members: List[AdjustedResult] = field(default_factory=list)
    canonical_display: Optional[str] = None

    @property
    def ordered_members(self) -> List[AdjustedResult]:
        return sorted(self.members, key=lambda m: (m.priority, m.provider_id))

    @property
    def score(self) -> float:
        return math.fsum(m.adjusted_confidence for m in self.ordered_members)

    @property
    def weight(self) -> float:
        return math.fsum(m.weight for m in self.ordered_members)

    @property
    def best_priority(self) -> int:
        return min(m.priority for m in self.members)

    def sort_key(self):
        return (-self.score, -self.weight, self.best_priority, self.key)

    @property
    def display(self) -> str:
        """Canonical name when known, else the strongest member's label."""
        if self.canonical_display:
            return self.canonical_display
        strongest = min(
            self.members,
            key=lambda m: (-m.adjusted_confidence, m.priority, m.provider_id),
        )
        return " ".join(strongest.label.split())

    def to_candidate(self) -> LabelCandidate:
        return LabelCandidate(
            label=self.display,
            score=self.score,
            weight=self.weight,
            providers=tuple(m.provider_id for m in self.ordered_members),
        )


class ResultAggregator:
    """Weighted voting over adjusted provider results."""

    def __init__(self, label_resolver: Optional[LabelResolver] = None):
        self.label_resolver = label_resolver or get_label_resolver()

    def group(self, adjusted: List[AdjustedResult]) -> List[VotingGroup]:
        """Form voting groups, best first."""
        groups: Dict[str, VotingGroup] = {}
        for item in adjusted:
            resolved = self.label_resolver.resolve(item.label)
            if not resolved.key:
                continue
            group = groups.get(resolved.key)
            if group is None:
                group = VotingGroup(key=resolved.key)
                groups[resolved.key] = group
            if resolved.canonical:
                group.canonical_display = resolved.display
            group.members.append(item)

        return sorted(groups.values(), key=VotingGroup.sort_key)

    def aggregate(
        self,
        adjusted: List[AdjustedResult],
        providers_queried: int,
        confidence_threshold: float,
        category: Category,
        provider_results: Optional[List[ProviderResult]] = None,
    ) -> AggregatedResult:
        """
        Compute the consolidated identification.

        Args:
            adjusted: Context-adjusted successful results
            providers_queried: Number of providers dispatched (including failures)
            confidence_threshold: Minimum merged confidence to report a label
            category: Category the providers were drawn from
            provider_results: All raw outcomes, attached as diagnostics

        Returns:
            AggregatedResult (possibly unidentified)
        """
        diagnostics = tuple(ProviderDiagnostic.from_result(r) for r in (provider_results or []))
        groups = self.group(adjusted)

        if not groups:
            logger.info(
                f"No successful provider results ({len(diagnostics)} provider(s) queried)"
            )
            return AggregatedResult.unidentified_result(
                category=category,
                reason=UnidentifiedReason.NO_SUCCESSFUL_PROVIDERS,
                diagnostics=diagnostics,
            )

        winner = groups[0]
        merged = min(1.0, winner.score / max(1, providers_queried))
        merged = max(0.0, merged)

        if merged < confidence_threshold:
            logger.info(
                f"Best candidate '{winner.display}' at {merged:.3f} "
                f"below threshold {confidence_threshold:.3f}"
            )
            return AggregatedResult.unidentified_result(
                category=category,
                reason=UnidentifiedReason.BELOW_THRESHOLD,
                alternatives=tuple(g.to_candidate() for g in groups[:MAX_ALTERNATIVES]),
                diagnostics=diagnostics,
            )

        contributors = tuple(
            ContributingProvider(
                provider_id=m.provider_id,
                adjusted_confidence=m.adjusted_confidence,
            )
            for m in winner.ordered_members
        )

        return AggregatedResult(
            label=winner.display,
            merged_confidence=merged,
            category=category,
            contributing_providers=contributors,
            timestamp=utcnow(),
            unidentified=False,
            alternatives=tuple(g.to_candidate() for g in groups[1:MAX_ALTERNATIVES + 1]),
            diagnostics=diagnostics,
        )
