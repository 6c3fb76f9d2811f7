"""
Identification provider implementations.

Components:
- HttpIdentificationProvider: generic JSON identification endpoint
- PlantNetProvider: Pl@ntNet v2 API
- StaticProvider: fixed answers for development and tests
"""

from typing import Tuple

from drahms_vision.core.config import ProviderConfig, Settings
from drahms_vision.core.exceptions import RegistryConfigurationError
from drahms_vision.engine.base import IdentificationProvider
from drahms_vision.models.enums import ProviderOutcome
from drahms_vision.providers.http_provider import HttpIdentificationProvider
from drahms_vision.providers.plantnet import PlantNetProvider
from drahms_vision.providers.static_provider import StaticProvider


def build_provider_client(
    config: ProviderConfig,
    settings: Settings,
) -> Tuple[IdentificationProvider, bool]:
    """
    Create the client for a catalog entry.

    Returns:
        (client, usable) where usable is False when the entry lacks the
        endpoint or credentials it needs. Such providers are registered but
        marked unavailable.
    """
    if config.kind == "http":
        endpoint = config.endpoint
        if not endpoint and settings.provider_base_url:
            endpoint = f"{settings.provider_base_url.rstrip('/')}/api/identify/{config.id}"
        client = HttpIdentificationProvider(config.id, endpoint or "")
        return client, bool(endpoint)

    if config.kind == "plantnet":
        client = PlantNetProvider(
            provider_id=config.id,
            api_key=settings.plantnet_api_key,
            base_url=config.endpoint,
        )
        return client, client.is_configured

    if config.kind == "static":
        if not config.label or config.confidence is None:
            raise RegistryConfigurationError(
                f"Static provider {config.id} needs a label and a confidence"
            )
        client = StaticProvider(config.id, label=config.label, confidence=config.confidence)
        return client, True

    raise RegistryConfigurationError(f"Provider {config.id} has unknown kind {config.kind!r}")


__all__ = [
    "HttpIdentificationProvider",
    "PlantNetProvider",
    "StaticProvider",
    "ProviderOutcome",
    "build_provider_client",
]
