from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from decimal import Decimal

import pytest

from bizzflow.app import models
from bizzflow.app.scripts import reconcile_clients
from bizzflow.app.services.data_consistency import DataConsistencyService
from bizzflow.app.time_utils import utcnow


@pytest.fixture
def drifted_client(seller_client, db_session, make_product, make_client):
    product = make_product(stock=10, unit_price="10.00")
    client = make_client(name="Drifted")
    for quantity in (1, 2):
        assert seller_client.post(
            "/api/sales/",
            json={"items": [{"product_id": product.id, "quantity": quantity}], "client_id": client.id},
        ).status_code == 201

    stored = db_session.get(models.Client, client.id)
    stored.total_spent = Decimal("5.00")
    stored.last_purchase = (utcnow() - timedelta(days=10)).date()
    db_session.commit()
    return stored


@pytest.fixture
def scripted_session(db_session, monkeypatch):
    @contextmanager
    def _scope():
        yield db_session
        db_session.commit()

    monkeypatch.setattr(reconcile_clients, "session_scope", _scope)
    return db_session


def test_consistent_clients_report_no_mismatch(seller_client, make_product, make_client, db_session):
    product = make_product(stock=5)
    client = make_client()
    seller_client.post(
        "/api/sales/",
        json={"items": [{"product_id": product.id, "quantity": 2}], "client_id": client.id},
    )
    make_client(name="No purchases")

    assert DataConsistencyService.client_aggregates(db_session) == []


def test_drifted_totals_are_detected(drifted_client, db_session):
    mismatches = DataConsistencyService.client_aggregates(db_session)

    assert len(mismatches) == 1
    mismatch = mismatches[0]
    assert mismatch.client_id == drifted_client.id
    assert mismatch.stored_total == Decimal("5.00")
    assert mismatch.computed_total == Decimal("30.00")
    assert mismatch.computed_last_purchase == utcnow().date()


def test_reconcile_script_reports_without_fixing(drifted_client, scripted_session):
    assert reconcile_clients.main([]) == 1

    scripted_session.expire_all()
    assert scripted_session.get(models.Client, drifted_client.id).total_spent == Decimal("5.00")


def test_reconcile_script_repairs_totals(drifted_client, scripted_session):
    assert reconcile_clients.main(["--fix", "--verbose"]) == 0

    scripted_session.expire_all()
    repaired = scripted_session.get(models.Client, drifted_client.id)
    assert repaired.total_spent == Decimal("30.00")
    assert repaired.last_purchase == utcnow().date()
    assert reconcile_clients.main([]) == 0
