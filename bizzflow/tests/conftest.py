from __future__ import annotations

import base64
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Callable, Generator

import pytest

# Settings read at import time must exist before the application is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "0")
os.environ.setdefault("BIZZFLOW_JWT_SECRET", base64.urlsafe_b64encode(b"\x02" * 32).decode())
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")

# Ensure the project root (which exposes the ``bizzflow`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bizzflow.app import models  # noqa: E402
from bizzflow.app.database import Base, get_db  # noqa: E402
from bizzflow.app.main import app  # noqa: E402
from bizzflow.app.security import create_access_token, generate_password_hash  # noqa: E402

TEST_PASSWORD = "S3llerPass!"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


def _create_user(db: Session, username: str, role: models.UserRole) -> models.User:
    user = models.User(
        username=username,
        name=username.title(),
        email=f"{username}@bizzflow.test",
        role=role,
        password_hash=generate_password_hash(TEST_PASSWORD, iterations=1_000),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session: Session) -> models.User:
    return _create_user(db_session, "admin", models.UserRole.ADMIN)


@pytest.fixture
def seller_user(db_session: Session) -> models.User:
    return _create_user(db_session, "seller", models.UserRole.SELLER)


@pytest.fixture
def api(db_session: Session) -> Generator[TestClient, None, None]:
    """Unauthenticated client sharing the test session."""

    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


def _authenticated(user: models.User) -> TestClient:
    test_client = TestClient(app)
    test_client.headers.update({"Authorization": f"Bearer {create_access_token(user)}"})
    return test_client


@pytest.fixture
def admin_client(api: TestClient, admin_user: models.User) -> TestClient:
    return _authenticated(admin_user)


@pytest.fixture
def seller_client(api: TestClient, seller_user: models.User) -> TestClient:
    return _authenticated(seller_user)


@pytest.fixture
def make_product(db_session: Session) -> Callable[..., models.Product]:
    counter = {"value": 0}

    def _make(
        *,
        stock: int = 10,
        unit_price: str = "10.00",
        category: str | None = "General",
        min_stock: int = 0,
        code: str | None = None,
        name: str | None = None,
    ) -> models.Product:
        counter["value"] += 1
        product = models.Product(
            code=code or f"P{counter['value']:03d}",
            name=name or f"Product {counter['value']}",
            category=category,
            unit_price=Decimal(unit_price),
            cost_price=Decimal(unit_price) / 2,
            stock=stock,
            min_stock=min_stock,
            is_active=True,
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_client(db_session: Session) -> Callable[..., models.Client]:
    def _make(
        *,
        name: str = "Ana Costa",
        total_spent: str = "0",
        category: models.ClientCategory = models.ClientCategory.NORMAL,
        email: str | None = None,
    ) -> models.Client:
        client = models.Client(
            name=name,
            email=email,
            category=category,
            total_spent=Decimal(total_spent),
        )
        db_session.add(client)
        db_session.commit()
        db_session.refresh(client)
        return client

    return _make


@pytest.fixture
def reload(db_session: Session) -> Callable:
    """Return a helper re-reading an instance from the database."""

    def _reload(instance):
        key = instance.id
        db_session.expire_all()
        return db_session.get(type(instance), key)

    return _reload
