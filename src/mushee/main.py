"""FastAPI application factory.

Run with:
    uvicorn --factory mushee.main:create_app
"""

from fastapi import FastAPI

from mushee import __version__
from mushee.api.exception_handlers import register_exception_handlers
from mushee.api.routers import api_router
from mushee.config import Settings, get_settings
from mushee.infrastructure.lifecycle import lifespan
from mushee.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI app.

    Tests pass their own Settings; production uses the cached environment settings.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="MuShee",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app
