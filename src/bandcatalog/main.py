"""FastAPI application factory.

Run with:  uvicorn bandcatalog.main:app
"""

from fastapi import FastAPI

from bandcatalog import __version__
from bandcatalog.api import api_router
from bandcatalog.api.exception_handlers import register_exception_handlers
from bandcatalog.api.routers import health
from bandcatalog.config import Settings, get_settings
from bandcatalog.infrastructure.lifecycle import lifespan
from bandcatalog.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the application. Pass settings to override env config (tests do)."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Band Catalog",
        description="Setlists, a per-band song catalog, bulk import and reordering",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
