from __future__ import annotations

import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bizzflow.app import models, schemas
from bizzflow.app.database import Base
from bizzflow.app.services import SaleService


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'checkout.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


def test_simultaneous_sales_get_distinct_numbers(file_sessions, monkeypatch):
    with file_sessions() as setup:
        product = models.Product(
            code="P001",
            name="Notebook",
            unit_price=Decimal("10.00"),
            cost_price=Decimal("5.00"),
            stock=5,
            min_stock=0,
            is_active=True,
        )
        setup.add(product)
        setup.commit()
        product_id = product.id

    # Both checkouts read the day's numbers before either one inserts.
    both_numbered = threading.Barrier(2, timeout=10)
    lock = threading.Lock()
    calls = {"count": 0}
    real_next_sale_number = SaleService._next_sale_number

    def numbered_together(db, sold_at):
        number = real_next_sale_number(db, sold_at)
        with lock:
            calls["count"] += 1
            first_round = calls["count"] <= 2
        if first_round:
            both_numbered.wait()
        return number

    monkeypatch.setattr(SaleService, "_next_sale_number", staticmethod(numbered_together))

    sale_numbers = []
    errors = []

    def checkout():
        with file_sessions() as db:
            try:
                sale = SaleService.create_sale(
                    db,
                    schemas.SaleCreate(
                        items=[schemas.SaleItemInput(product_id=product_id, quantity=1)]
                    ),
                    seller_id=None,
                )
                sale_numbers.append(sale.sale_number)
            except Exception as exc:  # surfaced by the assertions below
                errors.append(exc)

    workers = [threading.Thread(target=checkout) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=60)

    assert errors == []
    assert len(sale_numbers) == 2
    assert sorted(number[7:] for number in sale_numbers) == ["001", "002"]
    assert calls["count"] == 3

    with file_sessions() as check:
        assert check.get(models.Product, product_id).stock == 3
        assert check.query(models.Sale).count() == 2
