import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tasktracker import config
from tasktracker.database import Database
from tasktracker.errors import register_exception_handlers
from tasktracker.logging_setup import configure_logging
from tasktracker.middlewares import RequestContextMiddleware
from tasktracker.routers import tasks
from tasktracker.utils.auth import TokenVerifier, build_verifier

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None, verifier: Optional[TokenVerifier] = None) -> FastAPI:
    """Build the application.

    The database and token verifier are created during startup unless they
    are passed in. Identity-provider misconfiguration raises
    ``ConfigurationError`` from startup.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.verifier = verifier or build_verifier()
        db = database or Database(config.DATABASE_URL)
        db.create_all()
        app.state.database = db
        logger.info("tasktracker started", extra={"extra_data": {"auth_backend": type(app.state.verifier).__name__}})
        try:
            yield
        finally:
            db.dispose()

    app = FastAPI(title="TaskTracker", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware, project_id=config.GOOGLE_CLOUD_PROJECT or None)
    register_exception_handlers(app)

    app.include_router(tasks.router)

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    return app


app = create_app()
