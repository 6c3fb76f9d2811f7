"""
Identification API endpoints.

- Identify an object in a captured image
- Inspect registered providers and their circuit state
- Engine metrics
- Response cache statistics and reset
"""

import logging
from datetime import timezone

from fastapi import APIRouter, HTTPException, Depends

from drahms_vision.core.dependencies import get_identification_engine, get_image_service
from drahms_vision.core.exceptions import InvalidRequestError
from drahms_vision.engine.base import AggregatedResult, IdentificationContext
from drahms_vision.models.enums import ConfidenceLevel
from drahms_vision.models.schemas import (
    ContextPayload,
    ErrorResponse,
    IdentifyRequest,
    IdentifyResponse,
    MetricsResponse,
    ProvidersResponse,
)
from drahms_vision.services.identification_service import IdentificationEngine
from drahms_vision.services.image_service import ImageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/identify", tags=["Identification"])


def build_context(payload: ContextPayload) -> IdentificationContext:
    """Convert the request context into the engine's context."""
    kwargs = {
        "latitude": payload.latitude,
        "longitude": payload.longitude,
        "weather": payload.weather,
        "moon_phase": payload.moon_phase,
    }
    if payload.timestamp is not None:
        timestamp = payload.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        kwargs["timestamp"] = timestamp
    return IdentificationContext(**kwargs)


def to_response(result: AggregatedResult) -> IdentifyResponse:
    data = result.to_dict()
    data["confidence_level"] = ConfidenceLevel.from_score(result.merged_confidence).value
    return IdentifyResponse(**data)


@router.post(
    "",
    response_model=IdentifyResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    summary="Identify object in image",
    description="""
    Multi-provider identification.

    The image is sent concurrently to the providers of the hinted category
    (or the general providers for "auto"). Provider confidences are
    reweighted by context (season, time of day, location, sky conditions)
    and merged by weighted voting.

    An answer below the confidence threshold is returned as unidentified,
    with the best candidates listed under alternatives.

    **Categories:** birds, insects, plants, astronomy, animals, general, auto
    """
)
async def identify_object(
    request: IdentifyRequest,
    engine: IdentificationEngine = Depends(get_identification_engine),
    image_service: ImageService = Depends(get_image_service),
) -> IdentifyResponse:
    """
    Identify an object.

    This is the main endpoint that runs the complete identification pipeline.
    """
    try:
        logger.info(f"Received identification request (category={request.category})")

        image_ref = image_service.load_base64(request.image)
        context = build_context(request.context) if request.context else None

        result = await engine.identify(
            image=image_ref,
            category_hint=request.category,
            context=context,
            confidence_threshold=request.confidence_threshold,
        )
        return to_response(result)

    except InvalidRequestError as e:
        logger.warning(f"Validation error: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.get(
    "/providers",
    response_model=ProvidersResponse,
    summary="List identification providers",
)
async def list_providers(
    engine: IdentificationEngine = Depends(get_identification_engine),
) -> ProvidersResponse:
    """Registered providers with priority, weight, timeout and circuit state."""
    providers = engine.get_provider_status()
    return ProvidersResponse(
        providers=providers,
        total=len(providers),
        available=sum(1 for p in providers if p["available"] and p["circuit"] != "open"),
    )


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Engine metrics",
)
async def get_metrics(
    engine: IdentificationEngine = Depends(get_identification_engine),
) -> MetricsResponse:
    """Request counts, cache hits, per-provider outcomes and latencies."""
    return MetricsResponse(**engine.get_metrics())


@router.get("/cache", summary="Response cache statistics")
async def get_cache_stats(
    engine: IdentificationEngine = Depends(get_identification_engine),
) -> dict:
    return await engine.get_cache_stats()


@router.delete("/cache", summary="Clear the response cache")
async def clear_cache(
    engine: IdentificationEngine = Depends(get_identification_engine),
) -> dict:
    await engine.clear_cache()
    return {"status": "cleared"}
