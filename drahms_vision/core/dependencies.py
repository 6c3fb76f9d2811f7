"""
FastAPI dependency injection.

Provides dependency injection for services and components,
enabling easy testing and component swapping.
"""

from functools import lru_cache

from drahms_vision.core.config import get_settings
from drahms_vision.services.identification_service import (
    IdentificationEngine,
    get_identification_engine,
)
from drahms_vision.services.image_service import ImageService


@lru_cache()
def get_image_service() -> ImageService:
    """Get cached image service."""
    return ImageService(max_size_mb=get_settings().max_image_size_mb)


# Re-export the main service getter
__all__ = [
    "IdentificationEngine",
    "get_identification_engine",
    "get_image_service",
]
