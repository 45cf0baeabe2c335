"""FastAPI application for the studio-booking API."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from .. import __version__
from ..config import get_settings
from ..db.engine import get_db_path, init_db
from ..logging_config import configure_logging
from ..services.notifications import LoggingNotifier, Notifier
from .errors import register_error_handlers
from .routers import (
    attendance,
    bookings,
    classes,
    credits,
    packages,
    private_requests,
    users,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    # Startup: make sure the schema exists
    await init_db(app.state.db_path)
    yield


def create_app(db_path: Path | None = None, notifier: Notifier | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    app = FastAPI(
        title="studio-booking",
        description="Class booking, credit ledger and package engine",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.db_path = db_path or get_db_path()
    app.state.notifier = notifier or LoggingNotifier()

    register_error_handlers(app)

    app.include_router(users.router)
    app.include_router(classes.router)
    app.include_router(bookings.router)
    app.include_router(packages.router)
    app.include_router(credits.router)
    app.include_router(attendance.router)
    app.include_router(private_requests.router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app
