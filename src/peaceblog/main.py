"""FastAPI application entrypoint."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from peaceblog import __version__
from peaceblog.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from peaceblog.api.router import api_router
from peaceblog.config import settings
from peaceblog.database import close_db, get_session_context
from peaceblog.services.auth import build_auth_service
from peaceblog.services.directory import DatabasePrincipalDirectory
from peaceblog.services.maintenance import run_maintenance
from peaceblog.services.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    maintenance = asyncio.create_task(
        run_maintenance(app.state.auth_service.store, get_rate_limiter()),
        name="maintenance",
    )
    yield
    maintenance.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await maintenance
    # Let queued verification emails finish before the loop goes away
    await app.state.auth_service.dispatcher.drain()
    await close_db()


app = FastAPI(
    title="Peace Blog API",
    description="Blog content management with two-factor admin sign-in",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

# Built at import so a bad signing secret stops the process before it serves anything
app.state.auth_service = build_auth_service(
    settings,
    directory=DatabasePrincipalDirectory(get_session_context),
)

app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]

# Added last so it wraps the logging middleware and the ID is set first
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

# CORS middleware
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)

app.include_router(api_router, prefix="/api")

# Serve uploaded images
uploads_dir = Path(settings.storage_path)
uploads_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=uploads_dir), name="uploads")


if __name__ == "__main__":
    import uvicorn

    from peaceblog.logging import get_uvicorn_log_config

    uvicorn.run(
        "peaceblog.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
