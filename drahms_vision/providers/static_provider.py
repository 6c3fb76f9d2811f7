"""Static provider for development, demos and tests."""

import asyncio
import logging
from typing import Optional

from drahms_vision.engine.base import (
    IdentificationContext,
    IdentificationProvider,
    ImageRef,
    ProviderResult,
)
from drahms_vision.models.enums import ProviderOutcome

logger = logging.getLogger(__name__)


class StaticProvider(IdentificationProvider):
    """
    Provider that always gives the same answer.

    Useful for:
    - Local development without external API keys
    - Exercising the pipeline (delays, timeouts, failures)
    """

    def __init__(
        self,
        provider_id: str,
        label: str = "",
        confidence: float = 0.0,
        delay: float = 0.0,
        outcome: ProviderOutcome = ProviderOutcome.SUCCESS,
        detail: Optional[str] = None,
        raises: Optional[Exception] = None,
    ):
        """
        Args:
            provider_id: Registry id
            label: Label to return
            confidence: Raw confidence to return
            delay: Seconds to wait before answering
            outcome: Outcome to report
            detail: Failure detail for TIMEOUT/ERROR outcomes
            raises: Exception to raise instead of returning
        """
        super().__init__(provider_id)
        self.label = label
        self.confidence = confidence
        self.delay = delay
        self.outcome = outcome
        self.detail = detail
        self.raises = raises
        self.calls = 0

    async def identify(
        self,
        image_ref: ImageRef,
        context: IdentificationContext,
        timeout: float,
    ) -> ProviderResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        latency_ms = self.delay * 1000

        if self.outcome == ProviderOutcome.SUCCESS:
            return ProviderResult.success(self.provider_id, self.label, self.confidence, latency_ms)
        if self.outcome == ProviderOutcome.TIMEOUT:
            return ProviderResult.timeout(self.provider_id, latency_ms, self.detail or "timeout")
        return ProviderResult.error(self.provider_id, self.detail or "static failure", latency_ms)
