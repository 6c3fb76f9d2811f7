# Services module
from drahms_vision.services.image_service import ImageService, fingerprint
from drahms_vision.services.identification_service import (
    IdentificationEngine,
    get_identification_engine,
)

__all__ = [
    "ImageService",
    "IdentificationEngine",
    "fingerprint",
    "get_identification_engine",
]
