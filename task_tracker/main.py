"""
FastAPI application for the Task Tracker.

This is the main entry point that:
- Builds settings and the task store
- Checks database connectivity and bootstraps the schema before serving
- Registers the API routes, error handlers and the browser page
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .api import router
from .config import Settings
from .errors import register_error_handlers
from .logging_setup import setup_logging
from .store import TaskStore

logger = logging.getLogger(__name__)

static_path = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan.

    Startup: connectivity check, then schema bootstrap. Either failure aborts
    startup. Shutdown runs after in-flight requests finish and releases the pool.
    """
    store: TaskStore = app.state.store
    try:
        store.ping()
        logger.info("Connected to the task database")
        store.ensure_schema()
    except SQLAlchemyError:
        logger.critical("Task database is not usable, refusing to start", exc_info=True)
        store.close()
        raise

    yield

    logger.info("Shutting down, closing database connections")
    store.close()


def create_app(settings: Settings | None = None, store: TaskStore | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Service settings. Defaults to `Settings.from_env()`.
        store: Task store. Defaults to a pooled store built from settings.

    Returns:
        The configured application.
    """
    settings = settings or Settings.from_env()
    store = store or TaskStore.from_settings(settings)

    app = FastAPI(
        title="Task Tracker",
        description="Create, list, edit and delete tasks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(router)

    if static_path.exists():
        app.mount("/static", StaticFiles(directory=static_path), name="static")

    @app.get("/", include_in_schema=False)
    async def root():
        """Serve the task page."""
        index_path = static_path / "index.html"
        if index_path.exists():
            return FileResponse(index_path)
        return {"message": "Task Tracker API", "docs": "/docs"}

    return app


def run() -> None:
    """Start the server with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    logger.info("Starting Task Tracker (%s) on port %s", settings.environment, settings.port)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        timeout_graceful_shutdown=settings.shutdown_timeout,
    )


if __name__ == "__main__":
    run()
