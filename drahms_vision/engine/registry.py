"""
Provider Registry

Static, read-only catalog of identification providers grouped by category.

The registry is built once at process start (from the JSON catalog file or
the built-in default catalog) and shared read-only for the lifetime of the
process. Runtime availability is tracked separately by
ProviderHealthTracker.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Iterable, Tuple

from pydantic import ValidationError

from drahms_vision.core.config import ProviderConfig, Settings, DEFAULT_PROVIDER_CATALOG
from drahms_vision.core.exceptions import RegistryConfigurationError
from drahms_vision.engine.base import Provider, GeoRegion
from drahms_vision.models.enums import Category

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry for identification providers.

    Providers are validated on construction; duplicate ids, weights outside
    (0, 1] or non-positive timeouts are configuration errors.
    """

    def __init__(self, providers: Iterable[Provider]):
        by_id: Dict[str, Provider] = {}
        grouped: Dict[Category, List[Provider]] = {category: [] for category in Category}

        for provider in providers:
            self._validate(provider)
            if provider.id in by_id:
                raise RegistryConfigurationError(f"Duplicate provider id: {provider.id}")
            by_id[provider.id] = provider
            grouped[provider.category].append(provider)

        self._by_id = MappingProxyType(by_id)
        self._by_category: Dict[Category, Tuple[Provider, ...]] = MappingProxyType({
            category: tuple(sorted(members, key=lambda p: (p.priority, p.id)))
            for category, members in grouped.items()
        })

        logger.info(
            f"Provider registry initialized with {len(by_id)} providers "
            f"({sum(1 for p in by_id.values() if p.available)} available)"
        )

    @staticmethod
    def _validate(provider: Provider) -> None:
        if not provider.id:
            raise RegistryConfigurationError("Provider id must not be empty")
        if not isinstance(provider.category, Category):
            raise RegistryConfigurationError(
                f"Provider {provider.id} has invalid category {provider.category!r}"
            )
        if not 0.0 < provider.weight <= 1.0:
            raise RegistryConfigurationError(
                f"Provider {provider.id} weight {provider.weight} outside (0, 1]"
            )
        if provider.timeout <= 0:
            raise RegistryConfigurationError(
                f"Provider {provider.id} timeout must be positive"
            )

    def get(self, provider_id: str) -> Optional[Provider]:
        """Get a provider by id."""
        return self._by_id.get(provider_id)

    def providers_for(self, category: Category) -> Tuple[Provider, ...]:
        """All providers of a category, ordered by priority then id."""
        return self._by_category[category]

    def all(self) -> List[Provider]:
        return [p for category in Category for p in self._by_category[category]]

    def get_provider_info(self) -> List[Dict[str, Any]]:
        """Provider metadata for API responses."""
        return [p.to_dict() for p in self.all()]

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._by_id

    @classmethod
    def from_catalog(
        cls,
        entries: List[Dict[str, Any]],
        settings: Settings,
    ) -> "ProviderRegistry":
        """
        Build a registry from raw catalog entries.

        Args:
            entries: Catalog entries (see ProviderConfig)
            settings: Application settings (base URL, API keys)

        Returns:
            ProviderRegistry
        """
        from drahms_vision.providers import build_provider_client

        providers = []
        for raw in entries:
            try:
                config = ProviderConfig(**raw)
            except ValidationError as e:
                raise RegistryConfigurationError(f"Invalid provider entry {raw!r}: {e}") from e

            category = Category.from_hint(config.category)
            if category is None:
                raise RegistryConfigurationError(
                    f"Provider {config.id} has unknown category {config.category!r}"
                )

            client, usable = build_provider_client(config, settings)
            if not usable:
                logger.info(f"Provider {config.id} registered as unavailable (not configured)")

            providers.append(Provider(
                id=config.id,
                name=config.name,
                category=category,
                priority=config.priority,
                weight=config.weight,
                timeout=config.timeout_ms / 1000.0,
                client=client,
                available=config.available and usable,
                region=GeoRegion(**config.region.model_dump()) if config.region else None,
            ))

        return cls(providers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        """Build the registry from the configured catalog file or the default catalog."""
        entries = DEFAULT_PROVIDER_CATALOG
        if settings.provider_catalog_path:
            path = Path(settings.provider_catalog_path)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise RegistryConfigurationError(
                    f"Cannot read provider catalog {path}: {e}"
                ) from e
            entries = data.get("providers", []) if isinstance(data, dict) else data
            logger.info(f"Loaded {len(entries)} provider entries from {path}")

        return cls.from_catalog(entries, settings)
