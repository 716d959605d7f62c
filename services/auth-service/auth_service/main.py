"""FastAPI application wiring for the auth service."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool
import uvicorn

from .api.error_handlers import register_error_handlers
from .api.routes import router as auth_router
from .config import get_settings
from .domain.invites import InviteLedger
from .domain.registration import RegistrationCoordinator
from .domain.service import AuthenticationService
from .observability import setup_logging
from .repository import AccountRepository

settings = get_settings()
setup_logging(settings.log_level, settings.log_format)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    repository = AccountRepository(pool)
    if settings.auto_migrate:
        repository.ensure_schema()
    app.state.pool = pool
    app.state.auth_service = AuthenticationService(repository)
    # One coordinator per process: its lock serialises every registration.
    app.state.registration_coordinator = RegistrationCoordinator(
        repository,
        InviteLedger(),
        lock_timeout_seconds=settings.registration_lock_timeout_seconds,
    )
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth_router)


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.http_host, port=settings.http_port, log_config=None)
