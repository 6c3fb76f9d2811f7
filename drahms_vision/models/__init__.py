# Data models module
from drahms_vision.models.schemas import (
    ContextPayload,
    IdentifyRequest,
    IdentifyResponse,
    ProvidersResponse,
    MetricsResponse,
    ErrorResponse,
)
from drahms_vision.models.enums import (
    Category,
    ProviderOutcome,
    UnidentifiedReason,
    ConfidenceLevel,
)

__all__ = [
    "ContextPayload",
    "IdentifyRequest",
    "IdentifyResponse",
    "ProvidersResponse",
    "MetricsResponse",
    "ErrorResponse",
    "Category",
    "ProviderOutcome",
    "UnidentifiedReason",
    "ConfidenceLevel",
]
