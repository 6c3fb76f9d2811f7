"""
Failover Policy

Selects the ordered provider set for a request:

1. A known category with at least one available provider -> that category's
   available providers, by priority.
2. Otherwise (auto/unknown/empty hint, or every provider of the category
   unavailable) -> the general category's available providers.
3. General empty too -> empty list. Not an error here; the dispatcher turns
   it into NoProvidersAvailable and the engine into an unidentified result.
"""

import logging
from typing import List, Optional, Tuple

from drahms_vision.engine.base import Provider
from drahms_vision.engine.health import ProviderHealthTracker
from drahms_vision.engine.registry import ProviderRegistry
from drahms_vision.models.enums import Category

logger = logging.getLogger(__name__)


class FailoverPolicy:
    """Category-first provider selection with fallback to general."""

    def __init__(
        self,
        registry: ProviderRegistry,
        health_tracker: Optional[ProviderHealthTracker] = None,
    ):
        self.registry = registry
        self.health_tracker = health_tracker

    def is_available(self, provider: Provider) -> bool:
        if not provider.available:
            return False
        if self.health_tracker is not None:
            return self.health_tracker.is_available(provider.id)
        return True

    def _available(self, category: Category) -> List[Provider]:
        return [p for p in self.registry.providers_for(category) if self.is_available(p)]

    def resolve(self, category_hint: Optional[str]) -> Tuple[Category, List[Provider]]:
        """
        Select providers and report which category they were drawn from.

        Returns:
            (effective category, ordered providers)
        """
        category = Category.from_hint(category_hint)

        if category is not None and category != Category.GENERAL:
            providers = self._available(category)
            if providers:
                return category, providers
            logger.info(f"No available providers for {category.value}, falling back to general")

        return Category.GENERAL, self._available(Category.GENERAL)

    def select(self, category_hint: Optional[str]) -> List[Provider]:
        """Ordered list of providers to query for this hint."""
        return self.resolve(category_hint)[1]
