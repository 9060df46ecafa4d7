"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docgate import __version__
from docgate.api.routes import events_router, health_router
from docgate.config import Settings, get_settings
from docgate.runtime import Runtime


def create_app(settings: Settings | None = None, runtime: Runtime | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        app.state.runtime = runtime or Runtime(settings)
        await app.state.runtime.start()

        yield

        await app.state.runtime.close()

    app = FastAPI(
        title="docgate",
        description="Crawl, review and upload documentation sources",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS for the review UI
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    app.include_router(health_router)
    app.include_router(events_router)

    @app.get("/")
    async def root():
        return {
            "name": "docgate",
            "version": __version__,
            "docs": "/docs",
        }

    return app
