"""
Image payload handling.

Decodes base64 / data-URL payloads from the relay, verifies they are real
images, fingerprints them for caching, and re-encodes to JPEG for providers
that only accept JPEG uploads.
"""

import base64
import binascii
import hashlib
import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from drahms_vision.core.exceptions import InvalidRequestError
from drahms_vision.engine.base import ImageRef

logger = logging.getLogger(__name__)

FORMAT_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
}


def fingerprint(data: bytes) -> str:
    """SHA-256 content hash used for cache keys."""
    return hashlib.sha256(data).hexdigest()


class ImageService:
    """Validates and normalizes captured images."""

    def __init__(self, max_size_mb: float = 10.0):
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    def decode_base64(self, payload: str) -> bytes:
        """Decode a base64 string, stripping a data URL prefix if present."""
        if not payload:
            raise InvalidRequestError("Image payload is empty")
        if "," in payload:
            payload = payload.split(",", 1)[1]
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidRequestError(f"Invalid base64 image data: {e}") from e

    def load(self, data: bytes) -> ImageRef:
        """
        Validate raw image bytes and wrap them in an ImageRef.

        Raises:
            InvalidRequestError: empty, oversized or undecodable image
        """
        if not data:
            raise InvalidRequestError("Image payload is empty")
        if len(data) > self.max_size_bytes:
            raise InvalidRequestError(
                f"Image exceeds {self.max_size_bytes // (1024 * 1024)}MB limit"
            )

        try:
            with Image.open(io.BytesIO(data)) as image:
                image_format = image.format
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidRequestError(f"Payload is not a readable image: {e}") from e

        content_type = FORMAT_CONTENT_TYPES.get(image_format or "", "application/octet-stream")
        return ImageRef(data=data, fingerprint=fingerprint(data), content_type=content_type)

    def load_base64(self, payload: str) -> ImageRef:
        return self.load(self.decode_base64(payload))


def to_jpeg(image_ref: ImageRef, quality: int = 85, max_side: Optional[int] = None) -> bytes:
    """JPEG bytes for an image, re-encoding when necessary."""
    if image_ref.content_type == "image/jpeg" and max_side is None:
        return image_ref.data

    with Image.open(io.BytesIO(image_ref.data)) as image:
        image_rgb = image.convert("RGB")
    if max_side is not None and max(image_rgb.size) > max_side:
        image_rgb.thumbnail((max_side, max_side))

    buffer = io.BytesIO()
    image_rgb.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
