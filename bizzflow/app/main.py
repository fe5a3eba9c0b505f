"""Expose the BizzFlow FastAPI app and enforce local development CORS defaults."""

import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .database import session_scope
from .logging_config import configure_logging
from .migrations import run_database_migrations
from .routers import (
    auth_router,
    clients_router,
    dashboard_router,
    exports_router,
    products_router,
    sales_router,
)
from .services.users import UserService
from .time_utils import utcnow

SERVICE_NAME = "bizzflow-backend"
RUN_MIGRATIONS_ENV = "RUN_MIGRATIONS_ON_STARTUP"

LOCAL_DEVELOPMENT_ORIGINS = {
    "http://localhost:5173",
    "http://localhost:3000",
}
LOCALHOST_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?$"

DEFAULT_ALLOWED_ORIGINS = {
    *LOCAL_DEVELOPMENT_ORIGINS,
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
}

LOGGER = logging.getLogger(__name__)


def _normalize_origin(origin: str) -> str | None:
    stripped = origin.strip()
    if not stripped:
        return None
    return stripped.rstrip("/")


def _read_allowed_origins(raw_origins: Iterable[str]) -> list[str]:
    normalized = {_normalize_origin(origin) for origin in raw_origins}
    return sorted({origin for origin in normalized if origin})


def _split_raw_origins(raw_value: str) -> list[str]:
    """Split a raw origin string using commas or whitespace as separators."""

    return [origin for origin in re.split(r"[\s,]+", raw_value) if origin]


def _load_allowed_origins_from_env() -> list[str]:
    raw_value = os.getenv("BACKEND_ALLOWED_ORIGINS")
    if not raw_value:
        return []
    return _read_allowed_origins(_split_raw_origins(raw_value))


def _resolve_allowed_origins() -> list[str]:
    env_origins = _load_allowed_origins_from_env()
    if env_origins:
        origins = list(env_origins)
    else:
        origins = _read_allowed_origins(DEFAULT_ALLOWED_ORIGINS)

    missing_dev_origins = [
        origin for origin in LOCAL_DEVELOPMENT_ORIGINS if origin not in origins
    ]
    if missing_dev_origins:
        origins = _read_allowed_origins([*origins, *missing_dev_origins])

    return origins


def _read_bool_env(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def ensure_database_is_ready() -> None:
    """Apply pending migrations and seed the bootstrap administrator."""

    if _read_bool_env(RUN_MIGRATIONS_ENV, True):
        LOGGER.info("Ensuring database schema is up to date before serving requests")
        run_database_migrations()
    else:
        LOGGER.info("Startup migrations disabled via %s", RUN_MIGRATIONS_ENV)

    with session_scope() as db:
        UserService.ensure_bootstrap_admin(db)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    ensure_database_is_ready()
    LOGGER.info("%s %s started", SERVICE_NAME, __version__)
    yield
    LOGGER.info("%s shutting down", SERVICE_NAME)


app = FastAPI(title="BizzFlow API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_resolve_allowed_origins(),
    allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(clients_router, prefix="/api/clients", tags=["clients"])
app.include_router(products_router, prefix="/api/products", tags=["products"])
app.include_router(sales_router, prefix="/api/sales", tags=["sales"])
app.include_router(dashboard_router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(exports_router, prefix="/api/export", tags=["export"])


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    """Return a simple health check response."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": __version__,
        "timestamp": utcnow().isoformat(),
    }
