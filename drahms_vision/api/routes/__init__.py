# API routes module
from drahms_vision.api.routes.identify import router as identify_router
from drahms_vision.api.routes.health import router as health_router

__all__ = ["identify_router", "health_router"]
