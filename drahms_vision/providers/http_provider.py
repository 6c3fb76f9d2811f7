"""
Generic HTTP identification provider.

Posts the image and context as JSON to an identification endpoint and reads
back the relay's standard answer format:

    {"identifications": [{"name": "American Robin", "confidence": 0.82}, ...]}

Transient failures are retried with exponential backoff while the call's
time budget allows. The dispatcher still enforces the budget externally.
"""

import asyncio
import base64
import logging
import time
from typing import Any, Dict, Optional

import httpx

from drahms_vision.engine.base import (
    IdentificationContext,
    IdentificationProvider,
    ImageRef,
    ProviderResult,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 502, 503, 504}


class HttpIdentificationProvider(IdentificationProvider):
    """Provider backed by a JSON identification endpoint."""

    def __init__(
        self,
        provider_id: str,
        endpoint: str,
        api_key: Optional[str] = None,
        retry_attempts: int = 1,
        backoff_base: float = 0.25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            provider_id: Registry id of this provider
            endpoint: Full URL of the identification endpoint
            api_key: Optional bearer token
            retry_attempts: Extra attempts after a retryable failure
            backoff_base: First backoff delay in seconds (doubles per attempt)
            transport: Custom httpx transport (used by tests)
        """
        super().__init__(provider_id)
        self.endpoint = endpoint
        self.api_key = api_key
        self.retry_attempts = retry_attempts
        self.backoff_base = backoff_base
        self._transport = transport

    def _build_payload(self, image_ref: ImageRef, context: IdentificationContext) -> Dict[str, Any]:
        location = None
        if context.has_location:
            location = {"latitude": context.latitude, "longitude": context.longitude}
        return {
            "image": base64.b64encode(image_ref.data).decode("ascii"),
            "content_type": image_ref.content_type,
            "location": location,
            "timestamp": context.timestamp.isoformat(),
            "context": context.to_dict(),
        }

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _parse(self, data: Any, latency_ms: float) -> ProviderResult:
        identifications = data.get("identifications") if isinstance(data, dict) else None
        if not isinstance(identifications, list) or not identifications:
            return ProviderResult.error(self.provider_id, "No identifications returned", latency_ms)

        top = max(
            (i for i in identifications if isinstance(i, dict) and i.get("name")),
            key=lambda i: float(i.get("confidence", 0.0)),
            default=None,
        )
        if top is None:
            return ProviderResult.error(self.provider_id, "Invalid result format", latency_ms)

        confidence = float(top.get("confidence", 0.0))
        return ProviderResult.success(self.provider_id, str(top["name"]), confidence, latency_ms)

    async def identify(
        self,
        image_ref: ImageRef,
        context: IdentificationContext,
        timeout: float,
    ) -> ProviderResult:
        start_time = time.perf_counter()
        deadline = start_time + timeout
        payload = self._build_payload(image_ref, context)
        last_error = "no attempt made"

        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            for attempt in range(self.retry_attempts + 1):
                remaining = deadline - time.perf_counter()
                if remaining <= 0:
                    break
                try:
                    response = await client.post(
                        self.endpoint,
                        json=payload,
                        headers=self._headers(),
                        timeout=remaining,
                    )
                except httpx.TimeoutException:
                    latency_ms = (time.perf_counter() - start_time) * 1000
                    return ProviderResult.timeout(self.provider_id, latency_ms, f"{self.provider_id} request timed out")
                except httpx.HTTPError as e:
                    last_error = f"Transport error: {e}"
                else:
                    latency_ms = (time.perf_counter() - start_time) * 1000
                    if response.status_code == 200:
                        try:
                            return self._parse(response.json(), latency_ms)
                        except (ValueError, TypeError) as e:
                            return ProviderResult.error(self.provider_id, f"Unparseable response: {e}", latency_ms)
                    if response.status_code == 401:
                        return ProviderResult.error(self.provider_id, "Invalid API key", latency_ms)
                    last_error = f"HTTP {response.status_code}"
                    if response.status_code not in RETRYABLE_STATUS:
                        return ProviderResult.error(self.provider_id, last_error, latency_ms)

                delay = self.backoff_base * (2 ** attempt)
                if attempt < self.retry_attempts and time.perf_counter() + delay < deadline:
                    logger.debug(
                        f"{self.provider_id} attempt {attempt + 1} failed ({last_error}), "
                        f"retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                else:
                    break

        latency_ms = (time.perf_counter() - start_time) * 1000
        return ProviderResult.error(self.provider_id, last_error, latency_ms)
