"""Routes package."""

from docgate.api.routes.events import router as events_router
from docgate.api.routes.health import router as health_router

__all__ = [
    "events_router",
    "health_router",
]
