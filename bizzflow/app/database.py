"""Engine, session factory and unit-of-work helpers for BizzFlow.

Connection settings come from the environment once, at import time:

``DATABASE_URL``
    SQLAlchemy URL. Defaults to ``bizzflow/data/bizzflow.db`` (SQLite).
``REQUIRE_POSTGRES``
    When truthy, refuse to start on SQLite (including the default file).
``DATABASE_POOL_SIZE`` / ``DATABASE_MAX_OVERFLOW`` / ``DATABASE_POOL_TIMEOUT`` /
``DATABASE_POOL_RECYCLE`` / ``DATABASE_CONNECT_TIMEOUT``
    Pool options for server databases.
``DATABASE_SQLITE_BUSY_TIMEOUT``
    Seconds a SQLite writer waits for a competing sale to commit.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_SQLITE_FILE = DATA_DIR / "bizzflow.db"

_TRUTHY = frozenset({"1", "true", "yes", "on"})

# (environment variable, default) for every integer knob.
_POOL_OPTIONS = {
    "pool_size": ("DATABASE_POOL_SIZE", 5),
    "max_overflow": ("DATABASE_MAX_OVERFLOW", 10),
    "pool_timeout": ("DATABASE_POOL_TIMEOUT", 30),
    "pool_recycle": ("DATABASE_POOL_RECYCLE", 1800),
}
_CONNECT_TIMEOUT = ("DATABASE_CONNECT_TIMEOUT", 10)
_SQLITE_BUSY_TIMEOUT = ("DATABASE_SQLITE_BUSY_TIMEOUT", 15)


class DatabaseConfigError(RuntimeError):
    """Raised when the database environment is inconsistent."""


def _env_int(environ: Mapping[str, str], option: tuple[str, int]) -> int:
    name, default = option
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise DatabaseConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise DatabaseConfigError(f"{name} must be non-negative")
    return value


def _is_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite"


def _sqlite_file(url: URL) -> Optional[Path]:
    if not _is_sqlite(url) or url.database in (None, "", ":memory:"):
        return None
    return Path(url.database)


@dataclass(frozen=True)
class DatabaseSettings:
    url: URL
    require_postgres: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> "DatabaseSettings":
        raw_url = environ.get("DATABASE_URL") or f"sqlite:///{DEFAULT_SQLITE_FILE.as_posix()}"
        require_postgres = environ.get("REQUIRE_POSTGRES", "").strip().lower() in _TRUTHY
        settings = cls(url=make_url(raw_url), require_postgres=require_postgres)
        if settings.require_postgres and settings.is_sqlite:
            raise DatabaseConfigError(
                "REQUIRE_POSTGRES is set but DATABASE_URL points at SQLite; "
                "configure a PostgreSQL DATABASE_URL"
            )
        return settings

    @property
    def is_sqlite(self) -> bool:
        return _is_sqlite(self.url)

    @property
    def rendered_url(self) -> str:
        return self.url.render_as_string(hide_password=False)

    def prepare_storage(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        path = _sqlite_file(self.url)
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)


def build_engine_kwargs(
    database_url: str | URL, environ: Mapping[str, str] = os.environ
) -> Dict[str, Any]:
    """Return ``create_engine`` options for ``database_url``.

    SQLite connections are shared across request threads and wait
    ``DATABASE_SQLITE_BUSY_TIMEOUT`` seconds on a locked database; server
    databases get a pre-pinged, bounded pool.
    """

    url = make_url(database_url)
    if _is_sqlite(url):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": _env_int(environ, _SQLITE_BUSY_TIMEOUT),
            }
        }

    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    for keyword, option in _POOL_OPTIONS.items():
        kwargs[keyword] = _env_int(environ, option)
    kwargs["connect_args"] = {"connect_timeout": _env_int(environ, _CONNECT_TIMEOUT)}
    return kwargs


settings = DatabaseSettings.from_env()
settings.prepare_storage()

SQLALCHEMY_DATABASE_URL = settings.rendered_url

engine = create_engine(SQLALCHEMY_DATABASE_URL, **build_engine_kwargs(settings.url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts and startup hooks; commits when the block succeeds."""
    session = SessionLocal()
    with session:
        with transaction(session):
            yield session


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a unit of work on ``db`` that commits on success.

    Any exit path other than a normal return, including cancellation of the
    surrounding request, rolls the whole unit back before the error
    propagates unchanged.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
