"""
Pl@ntNet API provider for plant identification.

API: https://my.plantnet.org/
Species: 50,000+ plant species

Requires an API key from https://my.plantnet.org/
"""

import logging
import time
from typing import Optional

import httpx

from drahms_vision.engine.base import (
    IdentificationContext,
    IdentificationProvider,
    ImageRef,
    ProviderResult,
)
from drahms_vision.services.image_service import to_jpeg

logger = logging.getLogger(__name__)


class PlantNetProvider(IdentificationProvider):
    """Pl@ntNet v2 identify endpoint."""

    API_BASE_URL = "https://my-api.plantnet.org/v2/identify/all"

    def __init__(
        self,
        provider_id: str = "plantnet",
        api_key: Optional[str] = None,
        organ: str = "auto",
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(provider_id)
        self.api_key = api_key
        self.organ = organ
        self.base_url = base_url or self.API_BASE_URL
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def identify(
        self,
        image_ref: ImageRef,
        context: IdentificationContext,
        timeout: float,
    ) -> ProviderResult:
        start_time = time.perf_counter()

        if not self.api_key:
            return ProviderResult.error(self.provider_id, "PlantNet API key not configured")

        try:
            image_bytes = to_jpeg(image_ref, max_side=1280)

            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                files = {"images": ("capture.jpg", image_bytes, "image/jpeg")}
                params = {"api-key": self.api_key}
                data = {"organs": self.organ}

                response = await client.post(self.base_url, files=files, data=data, params=params)

            latency_ms = (time.perf_counter() - start_time) * 1000

            if response.status_code == 200:
                results = response.json().get("results") or []
                if not results:
                    return ProviderResult.error(self.provider_id, "No species identified", latency_ms)

                top_result = results[0]
                species = top_result.get("species", {})
                scientific_name = species.get("scientificNameWithoutAuthor")
                common_names = species.get("commonNames") or []
                label = common_names[0] if common_names else scientific_name
                if not label:
                    return ProviderResult.error(self.provider_id, "Result without a species name", latency_ms)

                return ProviderResult.success(
                    self.provider_id,
                    label,
                    float(top_result.get("score", 0.0)),
                    latency_ms,
                )

            # PlantNet answers 404 when nothing in the image matches a species
            elif response.status_code == 404:
                return ProviderResult.error(self.provider_id, "No species identified", latency_ms)
            elif response.status_code == 401:
                return ProviderResult.error(self.provider_id, "Invalid PlantNet API key", latency_ms)
            elif response.status_code == 429:
                return ProviderResult.error(self.provider_id, "PlantNet API rate limit exceeded", latency_ms)
            else:
                return ProviderResult.error(
                    self.provider_id, f"PlantNet API error: {response.status_code}", latency_ms
                )

        except httpx.TimeoutException:
            latency_ms = (time.perf_counter() - start_time) * 1000
            return ProviderResult.timeout(self.provider_id, latency_ms, "PlantNet API timeout")
        except (httpx.HTTPError, ValueError, OSError) as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error(f"PlantNet API error: {e}")
            return ProviderResult.error(self.provider_id, str(e), latency_ms)
