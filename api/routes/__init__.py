"""API route modules."""

from .auth_routes import router as auth_router
from .health_routes import router as health_router
from .resource_routes import build_resource_router, resource_routers

__all__ = [
    "auth_router",
    "build_resource_router",
    "health_router",
    "resource_routers",
]
