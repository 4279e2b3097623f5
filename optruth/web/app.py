"""FastAPI application for the Operational Truth dashboard API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from optruth import __version__
from optruth.core.logging import configure_logging
from optruth.db.connection import close_db, init_db
from optruth.web.dependencies import reset_registry
from optruth.web.routes import projects

logger = structlog.get_logger()


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise

        logger.info("request_completed", status_code=response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    reset_registry()
    await close_db()


def create_app(init_database: bool = True) -> FastAPI:
    """Build the API app.

    Args:
        init_database: Create tables on startup and dispose the engine on
            shutdown (disable when the store is overridden)
    """
    configure_logging()

    app = FastAPI(
        title="Operational Truth",
        description="Reconciled project facts, costs and health for the dashboard",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if init_database else None,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(projects.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app
