from fastapi.testclient import TestClient

from bizzflow import __version__
from bizzflow.app.main import (
    LOCAL_DEVELOPMENT_ORIGINS,
    _load_allowed_origins_from_env,
    _resolve_allowed_origins,
    _split_raw_origins,
    app,
)


def test_split_raw_origins_accepts_commas_and_whitespace():
    raw = "http://localhost:5173, http://127.0.0.1:5173 http://0.0.0.0:5173"
    assert _split_raw_origins(raw) == [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://0.0.0.0:5173",
    ]


def test_load_allowed_origins_from_env_accepts_space_separated_values(monkeypatch):
    monkeypatch.setenv(
        "BACKEND_ALLOWED_ORIGINS",
        "http://localhost:5173/ https://shop.example.com",
    )

    origins = _load_allowed_origins_from_env()

    assert origins == [
        "http://localhost:5173",
        "https://shop.example.com",
    ]


def test_configured_origins_keep_local_development_defaults(monkeypatch):
    monkeypatch.setenv("BACKEND_ALLOWED_ORIGINS", "https://shop.example.com")

    origins = _resolve_allowed_origins()

    assert "https://shop.example.com" in origins
    assert LOCAL_DEVELOPMENT_ORIGINS <= set(origins)


def test_api_includes_cors_headers_for_local_dev_origin():
    client = TestClient(app)

    response = client.options(
        "/api/clients/",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"


def test_health_endpoint():
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "bizzflow-backend"
    assert body["version"] == __version__
