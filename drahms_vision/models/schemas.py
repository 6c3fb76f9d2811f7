"""
Pydantic schemas for API request/response validation.

These schemas define the contract between the API and its clients (the
relay server and the dashboard), ensuring type safety and automatic
documentation.
"""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional
import base64
import binascii

from drahms_vision.models.enums import MoonPhase


# === Request Schemas ===

class ContextPayload(BaseModel):
    """Situational context captured with the image."""
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    timestamp: Optional[datetime] = Field(
        default=None,
        description="Capture time (ISO-8601). Naive values are read as UTC; defaults to now."
    )
    weather: Optional[str] = Field(
        default=None,
        description="Free-text weather condition, e.g. 'clear', 'overcast'",
        max_length=64
    )
    moon_phase: Optional[MoonPhase] = Field(default=None, description="Moon phase, when known")


class IdentifyRequest(BaseModel):
    """
    Request schema for object identification.

    Attributes:
        image: Base64-encoded image data (data URL prefix allowed)
        category: Category hint (birds, insects, plants, astronomy, animals, general) or "auto"
        context: Optional situational context
        confidence_threshold: Minimum merged confidence; server default when omitted
    """
    image: str = Field(
        ...,
        description="Base64-encoded image data",
        min_length=1
    )
    category: str = Field(
        default="auto",
        description="Category hint or 'auto'",
        max_length=32
    )
    context: Optional[ContextPayload] = Field(default=None)
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("image")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        """Validate that the image is valid base64."""
        payload = v.split(",", 1)[1] if "," in v else v
        try:
            decoded = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 image data: {e}")
        if not decoded:
            raise ValueError("Image data is empty")
        return v


# === Response Schemas ===

class ContributingProviderSchema(BaseModel):
    provider_id: str
    adjusted_confidence: float = Field(..., ge=0.0, le=1.0)


class CandidateSchema(BaseModel):
    """A label that lost the vote or fell below the threshold."""
    label: str
    score: float
    weight: float
    providers: list[str] = Field(default_factory=list)


class ProviderDiagnosticSchema(BaseModel):
    provider_id: str
    outcome: str
    latency_ms: float
    label: Optional[str] = None
    raw_confidence: Optional[float] = None
    detail: Optional[str] = None


class IdentifyResponse(BaseModel):
    """
    Consolidated identification.

    When unidentified is true the label is empty, merged_confidence is 0 and
    reason explains why; alternatives still lists the best candidates.
    """
    label: str = Field(..., description="Identified object, empty when unidentified")
    merged_confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_level: str = Field(..., description="very_low | low | moderate | high | very_high")
    category: str
    contributing_providers: list[ContributingProviderSchema] = Field(default_factory=list)
    timestamp: datetime
    unidentified: bool
    reason: Optional[str] = None
    alternatives: list[CandidateSchema] = Field(default_factory=list)
    diagnostics: list[ProviderDiagnosticSchema] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "label": "American Robin",
                "merged_confidence": 0.38,
                "confidence_level": "low",
                "category": "birds",
                "contributing_providers": [
                    {"provider_id": "ebird", "adjusted_confidence": 0.48},
                    {"provider_id": "birdnet", "adjusted_confidence": 0.28}
                ],
                "timestamp": "2026-05-14T13:02:11+00:00",
                "unidentified": False,
                "reason": None,
                "alternatives": [],
                "diagnostics": [
                    {"provider_id": "ebird", "outcome": "success", "latency_ms": 412.0},
                    {"provider_id": "birdnet", "outcome": "success", "latency_ms": 655.3}
                ]
            }
        }


class ProviderInfo(BaseModel):
    """Registered provider with its current circuit state."""
    id: str
    name: str
    category: str
    priority: int
    weight: float
    timeout_ms: int
    available: bool
    circuit: str
    region: Optional[dict] = None


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]
    total: int
    available: int


class MetricsResponse(BaseModel):
    """Engine counters and per-provider rolling statistics."""
    overall: dict
    providers: dict
    circuits: dict
    timestamp: str


# === Error Schemas ===

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict] = Field(default=None, description="Additional error details")
