import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api import dues, tariffs
from .config import Database, Settings, get_settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.request_context import REQUEST_ID_HEADER, assign_request_id
from .core.version import get_version_info

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API around an explicitly configured store.

    Run with ``uvicorn --factory rwportal.main:create_app``.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level.upper(), json_logs=settings.log_json)  # type: ignore[arg-type]
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        # In dev we make sure tables exist. Alembic migrations should be used for real schema evolution.
        database.create_all()
        try:
            yield
        finally:
            database.dispose()

    app = FastAPI(title="RW Portal - Dues", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = assign_request_id(request)
        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": request_id,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response

    @app.get("/health", tags=["system"])
    def health() -> dict:
        return {"status": "ok", **get_version_info()}

    app.include_router(dues.router, prefix="/dues", tags=["dues"])
    app.include_router(tariffs.router, prefix="/dues", tags=["tariffs"])
    return app
