"""
Application configuration with environment-based settings.

Configuration is centralized here to allow easy swapping between
development, staging, and production environments. The provider catalog
can be supplied as a JSON file; otherwise the built-in catalog below is used.
"""

from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "Drahms Vision Identification API"
    app_version: str = "2.0.0"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 3001
    workers: int = 1

    # Engine timing
    overall_deadline_ms: int = 5000
    default_threshold: float = Field(default=0.3, ge=0.0, le=1.0)

    # Response cache
    cache_backend: str = "memory"  # "memory" or "redis"
    redis_url: Optional[str] = None
    cache_capacity: int = 512
    success_ttl_ms: int = 30 * 60 * 1000
    unidentified_ttl_ms: int = 2 * 60 * 1000

    # Providers
    provider_catalog_path: Optional[str] = None
    provider_base_url: Optional[str] = None  # e.g. "http://localhost:3001"
    plantnet_api_key: Optional[str] = None
    synonyms_path: Optional[str] = None

    # Circuit breaker
    failure_threshold: int = 3
    recovery_timeout_ms: int = 60_000
    monitoring_period_ms: int = 60_000

    # Context weighting bounds
    context_factor_min: float = 0.5
    context_factor_max: float = 1.2

    # Image payloads
    max_image_size_mb: float = 10.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "DRAHMS_VISION_"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class ProviderRegion(BaseModel):
    """Geographic bounding box a provider's data covers."""
    min_lat: float = Field(ge=-90.0, le=90.0)
    max_lat: float = Field(ge=-90.0, le=90.0)
    min_lon: float = Field(ge=-180.0, le=180.0)
    max_lon: float = Field(ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def check_bounds_order(self) -> "ProviderRegion":
        if self.min_lat > self.max_lat:
            raise ValueError(f"min_lat {self.min_lat} exceeds max_lat {self.max_lat}")
        if self.min_lon > self.max_lon:
            raise ValueError(f"min_lon {self.min_lon} exceeds max_lon {self.max_lon}")
        return self


class ProviderConfig(BaseModel):
    """
    One provider catalog entry.

    kind selects the client implementation:
    - "http": generic JSON endpoint (POST image, receive identifications)
    - "plantnet": Pl@ntNet v2 identify API
    - "static": fixed answer, for demos and local development
    """
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    category: str
    priority: int = 1
    weight: float = 0.5
    timeout_ms: int = 3000
    available: bool = True
    kind: str = "http"
    endpoint: Optional[str] = None
    region: Optional[ProviderRegion] = None

    # "static" kind only
    label: Optional[str] = None
    confidence: Optional[float] = None


# North America, used by regional catalogs (BugGuide, BAMONA)
NORTH_AMERICA = {"min_lat": 15.0, "max_lat": 72.0, "min_lon": -170.0, "max_lon": -50.0}

# Built-in provider catalog, grouped by category in priority order
DEFAULT_PROVIDER_CATALOG = [
    # Birds
    {"id": "ebird", "name": "eBird", "category": "birds", "priority": 1, "weight": 0.6},
    {"id": "birdnet", "name": "BirdNET", "category": "birds", "priority": 2, "weight": 0.4},
    {"id": "xenocanto", "name": "XenoCanto", "category": "birds", "priority": 3, "weight": 0.3},

    # Insects
    {"id": "inaturalist", "name": "iNaturalist", "category": "insects", "priority": 1, "weight": 0.6},
    {"id": "bugguide", "name": "BugGuide", "category": "insects", "priority": 2, "weight": 0.4,
     "region": NORTH_AMERICA},
    {"id": "bamona", "name": "BAMONA", "category": "insects", "priority": 3, "weight": 0.3,
     "region": NORTH_AMERICA},

    # Plants
    {"id": "plantnet", "name": "Pl@ntNet", "category": "plants", "priority": 1, "weight": 0.6,
     "kind": "plantnet"},
    {"id": "flora", "name": "FloraIncognita", "category": "plants", "priority": 2, "weight": 0.4},
    {"id": "trefle", "name": "Trefle", "category": "plants", "priority": 3, "weight": 0.3},

    # Astronomy
    {"id": "nasa", "name": "NASA APOD", "category": "astronomy", "priority": 1, "weight": 0.5},
    {"id": "weather", "name": "OpenWeather", "category": "astronomy", "priority": 2, "weight": 0.3},
    {"id": "heavens", "name": "HeavensAbove", "category": "astronomy", "priority": 3, "weight": 0.4},

    # Animals
    {"id": "wildlife", "name": "WildlifeInsights", "category": "animals", "priority": 1, "weight": 0.6},
    {"id": "mammal", "name": "MammalNet", "category": "animals", "priority": 2, "weight": 0.4},
    {"id": "amphibian", "name": "AmphibiaWeb", "category": "animals", "priority": 3, "weight": 0.3},

    # General
    {"id": "googlelens", "name": "Google Lens", "category": "general", "priority": 1, "weight": 0.6},
    {"id": "imagga", "name": "Imagga", "category": "general", "priority": 2, "weight": 0.4},
    {"id": "cloudinary", "name": "Cloudinary", "category": "general", "priority": 3, "weight": 0.3},
    {"id": "roboflow", "name": "Roboflow", "category": "general", "priority": 4, "weight": 0.3},
]
