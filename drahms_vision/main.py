"""
Drahms Vision Identification API

FastAPI application for multi-provider object identification. The relay
server forwards captured frames here; the dashboard reads provider status
and metrics.

This is the main entry point for the application.

Usage:
    uvicorn drahms_vision.main:app --reload
    uvicorn drahms_vision.main:app --host 0.0.0.0 --port 3001

Production:
    gunicorn drahms_vision.main:app -k uvicorn.workers.UvicornWorker -w 4
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.utils import get_openapi

from drahms_vision.core.config import get_settings
from drahms_vision.core.exceptions import RegistryConfigurationError
from drahms_vision.api.routes import identify_router, health_router
from drahms_vision.api.routes.health import set_startup_time
from drahms_vision.services.identification_service import get_identification_engine

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup:
    - Build the provider registry and identification engine

    Runs on shutdown:
    - Close provider clients and the cache backend
    """
    logger.info("Starting Drahms Vision Identification API...")

    # Record startup time
    set_startup_time()

    try:
        engine = get_identification_engine()
    except RegistryConfigurationError as e:
        logger.error(f"Invalid provider catalog: {e}")
        raise
    logger.info(f"Identification engine ready with {len(engine.registry)} providers")

    logger.info("Application startup complete")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down Drahms Vision Identification API...")
    await engine.aclose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Drahms Vision Identification API

Identifies objects in captured images by querying several category-specific
providers at once and merging their answers.

### Features

- **Category routing**: birds, insects, plants, astronomy, animals, with fallback to general providers
- **Failure isolation**: slow or failing providers never block the others; one overall deadline bounds every request
- **Context weighting**: season, time of day, location and sky conditions adjust provider confidences
- **Weighted voting**: provider weights and deterministic tie-breaks produce one answer with a merged confidence
- **Response cache**: identical requests are served from cache and concurrent duplicates share one dispatch

### API Endpoints

- `POST /api/v1/identify` - Identify an object
- `GET /api/v1/identify/providers` - Registered providers and circuit state
- `GET /api/v1/identify/metrics` - Engine metrics
- `GET /api/v1/identify/cache` - Cache statistics
- `DELETE /api/v1/identify/cache` - Clear the cache
- `GET /api/v1/health` - Health check
- `GET /api/v1/health/ready` - Detailed readiness check
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again.",
            "details": {"exception": str(exc)} if settings.debug else None
        }
    )


# Include routers
app.include_router(health_router, prefix=settings.api_prefix)
app.include_router(identify_router, prefix=settings.api_prefix)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "documentation": "/docs",
        "health_check": f"{settings.api_prefix}/health",
        "identification_endpoint": f"{settings.api_prefix}/identify"
    }


# Custom OpenAPI schema
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=settings.app_name,
        version=settings.app_version,
        description=app.description,
        routes=app.routes,
    )

    # Add custom tags
    openapi_schema["tags"] = [
        {
            "name": "Identification",
            "description": "Multi-provider object identification endpoints"
        },
        {
            "name": "Health",
            "description": "Health check and system status endpoints"
        },
        {
            "name": "Root",
            "description": "API root and information"
        }
    ]

    # Add example request
    openapi_schema["info"]["x-example-request"] = {
        "image": "<base64_encoded_image>",
        "category": "birds",
        "context": {"latitude": 40.7, "longitude": -74.0, "weather": "clear"}
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


# Entry point for running with Python
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "drahms_vision.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )
