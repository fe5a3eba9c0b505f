from __future__ import annotations

import pytest

from bizzflow.app import models
from bizzflow.app.security import (
    _decode_jwt,
    _load_jwt_key,
    create_access_token,
    generate_password_hash,
    verify_password,
)
from bizzflow.app.services.users import UserService

TEST_PASSWORD = "S3llerPass!"


def test_password_hash_round_trip():
    stored = generate_password_hash("correct horse", iterations=1_000)

    assert stored.startswith("1000$")
    assert verify_password("correct horse", stored)
    assert not verify_password("wrong horse", stored)


def test_access_token_carries_user_identity(seller_user):
    payload = _decode_jwt(create_access_token(seller_user), _load_jwt_key())

    assert payload["sub"] == str(seller_user.id)
    assert payload["username"] == "seller"
    assert payload["role"] == "seller"


def test_login_returns_token_and_profile(api, seller_user):
    response = api.post(
        "/api/auth/login", json={"username": " Seller ", "password": TEST_PASSWORD}
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 3600
    assert body["user"]["role"] == "seller"

    profile = api.get(
        "/api/auth/profile", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert profile.status_code == 200
    assert profile.json()["username"] == "seller"


def test_login_rejects_bad_credentials(api, seller_user, db_session):
    wrong = api.post("/api/auth/login", json={"username": "seller", "password": "nope-nope"})
    assert wrong.status_code == 401

    seller_user.is_active = False
    db_session.commit()
    inactive = api.post("/api/auth/login", json={"username": "seller", "password": TEST_PASSWORD})
    assert inactive.status_code == 401


def test_tampered_token_is_rejected(api, seller_user):
    token = create_access_token(seller_user)
    header, payload, signature = token.split(".")
    tampered = f"{header}.{payload}.{signature[::-1]}"

    response = api.get("/api/auth/profile", headers={"Authorization": f"Bearer {tampered}"})

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_only_admins_can_register_users(admin_client, seller_client):
    payload = {"username": "NewSeller", "password": "secret123", "name": "New Seller"}

    forbidden = seller_client.post("/api/auth/register", json=payload)
    created = admin_client.post("/api/auth/register", json=payload)
    duplicate = admin_client.post("/api/auth/register", json=payload)

    assert forbidden.status_code == 403
    assert created.status_code == 201
    assert created.json()["username"] == "newseller"
    assert created.json()["role"] == "seller"
    assert duplicate.status_code == 409


def test_change_password(seller_client, api, seller_user):
    rejected = seller_client.post(
        "/api/auth/change-password",
        json={"current_password": "not-it", "new_password": "brand-new-pass"},
    )
    assert rejected.status_code == 400

    accepted = seller_client.post(
        "/api/auth/change-password",
        json={"current_password": TEST_PASSWORD, "new_password": "brand-new-pass"},
    )
    assert accepted.status_code == 200
    assert accepted.json()["message"] == "Password updated"

    login = api.post(
        "/api/auth/login", json={"username": "seller", "password": "brand-new-pass"}
    )
    assert login.status_code == 200


@pytest.mark.parametrize("existing_users", [0, 1])
def test_bootstrap_admin_only_seeds_empty_databases(db_session, monkeypatch, existing_users):
    monkeypatch.setenv("ADMIN_USERNAME", "Owner")
    monkeypatch.setenv("ADMIN_PASSWORD_HASH", generate_password_hash("owner-pass", iterations=1_000))
    if existing_users:
        db_session.add(
            models.User(
                username="someone",
                name="Someone",
                role=models.UserRole.SELLER,
                password_hash=generate_password_hash("x" * 8, iterations=1_000),
            )
        )
        db_session.commit()

    created = UserService.ensure_bootstrap_admin(db_session)

    if existing_users:
        assert created is None
        assert UserService.get_by_username(db_session, "owner") is None
    else:
        assert created.username == "owner"
        assert created.role == models.UserRole.ADMIN
