"""
Shared fixtures.

Providers in tests are StaticProvider instances with fixed answers and
optional delays, so no test touches the network.
"""

import base64
import io
from datetime import datetime, timezone

import pytest
from PIL import Image

from drahms_vision.engine.base import (
    IdentificationContext,
    IdentificationRequest,
    ImageRef,
    Provider,
)
from drahms_vision.models.enums import Category, ProviderOutcome
from drahms_vision.providers.static_provider import StaticProvider
from drahms_vision.services.image_service import fingerprint


@pytest.fixture
def jpeg_bytes():
    """A small real JPEG image."""
    img = Image.new("RGB", (64, 48), color=(120, 90, 40))
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_base64(jpeg_bytes):
    return base64.b64encode(jpeg_bytes).decode("utf-8")


@pytest.fixture
def image_ref():
    data = b"captured-frame-0001"
    return ImageRef(data=data, fingerprint=fingerprint(data))


@pytest.fixture
def summer_afternoon():
    """Context in which every season/time-of-day factor for birds is neutral."""
    return IdentificationContext(timestamp=datetime(2026, 7, 15, 13, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_provider():
    """Factory for registry Providers backed by a StaticProvider."""

    def _make(
        provider_id,
        category=Category.GENERAL,
        priority=1,
        weight=0.5,
        timeout=1.0,
        label="",
        confidence=0.0,
        delay=0.0,
        outcome=ProviderOutcome.SUCCESS,
        raises=None,
        available=True,
        region=None,
    ):
        client = StaticProvider(
            provider_id,
            label=label,
            confidence=confidence,
            delay=delay,
            outcome=outcome,
            raises=raises,
        )
        return Provider(
            id=provider_id,
            category=category,
            priority=priority,
            weight=weight,
            timeout=timeout,
            client=client,
            available=available,
            region=region,
        )

    return _make


@pytest.fixture
def make_request(image_ref, summer_afternoon):
    """Factory for IdentificationRequests."""

    def _make(category_hint="auto", threshold=0.0, deadline=2.0, context=None):
        return IdentificationRequest(
            image_ref=image_ref,
            category_hint=category_hint,
            context=context or summer_afternoon,
            confidence_threshold=threshold,
            overall_deadline=deadline,
        )

    return _make
