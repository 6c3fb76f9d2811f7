"""
Exception hierarchy for the identification engine.

Provider failures (ProviderTimeout, ProviderError) are caught at the
dispatcher boundary and recorded as diagnostics. NoProvidersAvailable and
CacheUnavailable are handled inside the engine. Only InvalidRequestError and
RegistryConfigurationError ever reach the caller.
"""

from typing import Optional


class IdentificationError(Exception):
    """Base class for all engine errors."""


class ProviderTimeout(IdentificationError):
    """A provider exceeded its own per-call budget."""

    def __init__(self, provider_id: str, timeout: float):
        self.provider_id = provider_id
        self.timeout = timeout
        super().__init__(f"Provider {provider_id} timed out after {timeout:.2f}s")


class ProviderError(IdentificationError):
    """A provider returned a transport, parsing or application error."""

    def __init__(self, provider_id: str, detail: str):
        self.provider_id = provider_id
        self.detail = detail
        super().__init__(f"Provider {provider_id} failed: {detail}")


class NoProvidersAvailable(IdentificationError):
    """The failover policy produced an empty provider list."""

    def __init__(self, category_hint: Optional[str] = None):
        self.category_hint = category_hint
        super().__init__(f"No providers available for category hint {category_hint!r}")


class CacheUnavailable(IdentificationError):
    """The cache backend failed; callers degrade to always-miss."""


class InvalidRequestError(IdentificationError, ValueError):
    """Malformed identification request (bad image, threshold, etc.)."""


class RegistryConfigurationError(IdentificationError):
    """The provider catalog is inconsistent or invalid."""
