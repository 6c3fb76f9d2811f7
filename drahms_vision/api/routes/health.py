"""
Health check and system status endpoints.

Provides endpoints for:
- Basic health check
- Detailed readiness (provider registry, circuits, cache backend)
- Liveness probe
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional
import time

from drahms_vision.core.config import get_settings
from drahms_vision.core.dependencies import get_identification_engine
from drahms_vision.services.identification_service import IdentificationEngine

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: float
    version: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check with component status."""
    status: str
    timestamp: float
    version: str
    components: dict[str, dict]
    uptime_seconds: Optional[float] = None


# Track startup time
_startup_time: Optional[float] = None


def set_startup_time() -> None:
    """Set the startup time (called on app startup)."""
    global _startup_time
    _startup_time = time.time()


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Simple health status indicating the service is running.
    """
    return HealthResponse(
        status="healthy",
        timestamp=time.time(),
        version=get_settings().app_version
    )


@router.get("/ready", response_model=DetailedHealthResponse)
async def readiness_check(
    engine: IdentificationEngine = Depends(get_identification_engine),
) -> DetailedHealthResponse:
    """
    Detailed readiness check.

    Ready when at least one general-purpose provider can be selected, since
    every request can fall back to the general category. Providers with an
    open circuit count as unavailable.
    """
    providers = engine.get_provider_status()
    selectable = [p for p in providers if p["available"] and p["circuit"] != "open"]
    general = [p for p in selectable if p["category"] == "general"]

    components = {
        "providers": {
            "status": "ready" if general else "degraded",
            "registered": len(providers),
            "selectable": len(selectable),
            "general_selectable": len(general),
            "open_circuits": sorted(p["id"] for p in providers if p["circuit"] == "open"),
        },
        "cache": {
            "status": "ready",
            **(await engine.get_cache_stats()),
        },
    }
    overall_healthy = bool(general)

    uptime = None
    if _startup_time:
        uptime = time.time() - _startup_time

    if not overall_healthy:
        raise HTTPException(status_code=503, detail="No general-purpose provider available")

    return DetailedHealthResponse(
        status="ready",
        timestamp=time.time(),
        version=get_settings().app_version,
        components=components,
        uptime_seconds=uptime
    )


@router.get("/live")
async def liveness_check() -> dict:
    """
    Simple liveness probe for Kubernetes.

    Returns 200 if the process is running.
    """
    return {"status": "alive"}
