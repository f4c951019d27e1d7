"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from snapnow.api.admin import router as admin_router
from snapnow.api.bookings import router as bookings_router
from snapnow.api.earnings import router as earnings_router
from snapnow.api.editing import router as editing_router
from snapnow.api.locations import router as locations_router
from snapnow.app_logging import configure_logging
from snapnow.containers import AppContainer
from snapnow.errors import SnapNowError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)
    app.include_router(bookings_router)
    app.include_router(locations_router)
    app.include_router(editing_router)
    app.include_router(earnings_router)

    @app.exception_handler(SnapNowError)
    async def handle_snapnow_error(request: Request, exc: SnapNowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                "Request failed",
                extra={"path": request.url.path, "error": type(exc).__name__},
            )
        return JSONResponse(
            status_code=exc.status_code, content={"detail": exc.message}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
