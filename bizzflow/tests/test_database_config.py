from __future__ import annotations

import pytest

from bizzflow.app.database import (
    DEFAULT_SQLITE_FILE,
    DatabaseConfigError,
    DatabaseSettings,
    build_engine_kwargs,
)


def test_settings_default_to_the_bundled_sqlite_file():
    settings = DatabaseSettings.from_env({})

    assert settings.is_sqlite
    assert settings.url.database == DEFAULT_SQLITE_FILE.as_posix()


def test_require_postgres_rejects_sqlite_urls():
    with pytest.raises(DatabaseConfigError):
        DatabaseSettings.from_env({"REQUIRE_POSTGRES": "1"})
    with pytest.raises(DatabaseConfigError):
        DatabaseSettings.from_env(
            {"REQUIRE_POSTGRES": "true", "DATABASE_URL": "sqlite:///shop.db"}
        )


def test_require_postgres_accepts_postgres_urls():
    settings = DatabaseSettings.from_env(
        {"REQUIRE_POSTGRES": "yes", "DATABASE_URL": "postgresql://shop:secret@db/bizzflow"}
    )

    assert not settings.is_sqlite
    assert settings.rendered_url == "postgresql://shop:secret@db/bizzflow"


def test_prepare_storage_creates_the_sqlite_directory(tmp_path):
    target = tmp_path / "nested" / "shop.db"
    settings = DatabaseSettings.from_env({"DATABASE_URL": f"sqlite:///{target}"})

    settings.prepare_storage()

    assert target.parent.is_dir()


def test_sqlite_engine_options_carry_busy_timeout():
    kwargs = build_engine_kwargs("sqlite:///shop.db", {"DATABASE_SQLITE_BUSY_TIMEOUT": "3"})

    assert kwargs == {"connect_args": {"check_same_thread": False, "timeout": 3}}


def test_server_engine_options_read_pool_settings():
    kwargs = build_engine_kwargs(
        "postgresql://shop@db/bizzflow",
        {"DATABASE_POOL_SIZE": "2", "DATABASE_CONNECT_TIMEOUT": "4"},
    )

    assert kwargs["pool_pre_ping"] is True
    assert kwargs["pool_size"] == 2
    assert kwargs["max_overflow"] == 10
    assert kwargs["connect_args"] == {"connect_timeout": 4}


@pytest.mark.parametrize("raw", ["many", "-1"])
def test_invalid_pool_settings_are_rejected(raw):
    with pytest.raises(DatabaseConfigError):
        build_engine_kwargs("postgresql://shop@db/bizzflow", {"DATABASE_POOL_SIZE": raw})
