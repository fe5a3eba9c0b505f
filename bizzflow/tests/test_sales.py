from __future__ import annotations

import dataclasses
import re
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from bizzflow.app import models, schemas
from bizzflow.app.services import (
    ClientService,
    InsufficientStockError,
    ProductService,
    SaleService,
)
from bizzflow.app.time_utils import utcnow


def _sale_payload(*lines, **extra) -> dict:
    payload = {
        "items": [
            {"product_id": product.id, "quantity": quantity, **({"unit_price": price} if price else {})}
            for product, quantity, price in lines
        ]
    }
    payload.update(extra)
    return payload


def _backdate(db_session, sale_id: int, days: int) -> None:
    db_session.query(models.Sale).filter(models.Sale.id == sale_id).update(
        {"sale_date": utcnow() - timedelta(days=days)}, synchronize_session=False
    )
    db_session.commit()


def test_walk_in_sale_decrements_stock(seller_client, db_session, make_product, reload):
    product = make_product(stock=5, unit_price="10.00")

    response = seller_client.post("/api/sales/", json=_sale_payload((product, 3, "10")))

    assert response.status_code == 201, response.text
    body = response.json()
    assert Decimal(body["final_amount"]) == Decimal("30")
    assert Decimal(body["subtotal"]) == Decimal("30")
    assert body["client_id"] is None
    assert body["status"] == "completed"
    assert re.fullmatch(r"V\d{6}\d{3}", body["sale_number"])
    assert len(body["items"]) == 1
    assert body["items"][0]["product_name"] == product.name
    assert Decimal(body["items"][0]["total_price"]) == Decimal("30")
    assert reload(product).stock == 2


def test_sale_exceeding_stock_is_rejected_without_side_effects(
    seller_client, db_session, make_product, reload
):
    product = make_product(stock=2)

    response = seller_client.post("/api/sales/", json=_sale_payload((product, 3, None)))

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["kind"] == "insufficient_stock"
    assert detail["product_id"] == product.id
    assert product.name in detail["message"]
    assert reload(product).stock == 2
    assert db_session.query(models.Sale).count() == 0
    assert db_session.query(models.SaleItem).count() == 0


def test_repeated_lines_are_checked_against_total_quantity(
    seller_client, db_session, make_product, reload
):
    product = make_product(stock=5)

    response = seller_client.post(
        "/api/sales/", json=_sale_payload((product, 3, None), (product, 3, None))
    )

    assert response.status_code == 409
    assert response.json()["detail"]["requested"] == 6
    assert reload(product).stock == 5


def test_unknown_or_inactive_product_is_rejected(seller_client, db_session, make_product):
    inactive = make_product(stock=10)
    inactive.is_active = False
    db_session.commit()

    missing = seller_client.post(
        "/api/sales/", json={"items": [{"product_id": 9999, "quantity": 1}]}
    )
    assert missing.status_code == 404
    assert missing.json()["detail"]["kind"] == "product_not_found"

    disabled = seller_client.post("/api/sales/", json=_sale_payload((inactive, 1, None)))
    assert disabled.status_code == 404
    assert disabled.json()["detail"]["product_id"] == inactive.id


def test_empty_sale_is_rejected(seller_client):
    response = seller_client.post("/api/sales/", json={"items": []})

    assert response.status_code == 422


def test_sale_updates_client_aggregate(
    seller_client, db_session, make_product, make_client, reload
):
    product = make_product(stock=10, unit_price="10.00")
    client = make_client(total_spent="100")

    response = seller_client.post(
        "/api/sales/", json=_sale_payload((product, 5, None), client_id=client.id)
    )

    assert response.status_code == 201, response.text
    assert response.json()["client_name"] == client.name
    stored = reload(client)
    assert Decimal(stored.total_spent) == Decimal("150")
    assert stored.last_purchase == utcnow().date()


def test_sale_for_unknown_client_is_rejected(seller_client, make_product, reload):
    product = make_product(stock=10)

    response = seller_client.post(
        "/api/sales/", json=_sale_payload((product, 1, None), client_id=4242)
    )

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "client_not_found"
    assert reload(product).stock == 10


def test_final_amount_applies_discount_and_tax(seller_client, make_product):
    product = make_product(stock=20, unit_price="25.00")

    response = seller_client.post(
        "/api/sales/",
        json=_sale_payload((product, 4, None), discount="10", tax="2", payment_method="card"),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert Decimal(body["subtotal"]) == Decimal("100")
    assert Decimal(body["discount"]) == Decimal("10")
    assert Decimal(body["tax"]) == Decimal("2")
    assert Decimal(body["final_amount"]) == Decimal("92")
    assert body["payment_method"] == "card"
    assert Decimal(body["items"][0]["unit_price"]) == Decimal("25")


def test_discount_larger_than_subtotal_is_rejected(seller_client, make_product, reload):
    product = make_product(stock=5, unit_price="10.00")

    response = seller_client.post(
        "/api/sales/", json=_sale_payload((product, 1, None), discount="11")
    )

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "invalid_sale"
    assert reload(product).stock == 5


def test_sale_numbers_increase_within_the_day(seller_client, make_product):
    product = make_product(stock=10)

    first = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None))).json()
    second = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None))).json()

    assert first["sale_number"][:7] == second["sale_number"][:7]
    assert int(second["sale_number"][7:]) == int(first["sale_number"][7:]) + 1


def test_failure_after_stock_update_rolls_everything_back(
    db_session, seller_user, make_product, make_client, reload, monkeypatch
):
    product = make_product(stock=5)
    client = make_client(total_spent="20")

    def failing_apply_purchase(*args, **kwargs):
        raise RuntimeError("aggregate store offline")

    monkeypatch.setattr(ClientService, "apply_purchase", staticmethod(failing_apply_purchase))

    with pytest.raises(RuntimeError):
        SaleService.create_sale(
            db_session,
            schemas.SaleCreate(
                items=[schemas.SaleItemInput(product_id=product.id, quantity=2)],
                client_id=client.id,
            ),
            seller_id=seller_user.id,
        )

    assert reload(product).stock == 5
    assert Decimal(reload(client).total_spent) == Decimal("20")
    assert db_session.query(models.Sale).count() == 0
    assert db_session.query(models.SaleItem).count() == 0


def test_guarded_decrement_failure_restores_earlier_lines(
    db_session, seller_user, make_product, reload, monkeypatch
):
    plenty = make_product(stock=5)
    scarce = make_product(stock=1)
    real_catalog_entry = ProductService.catalog_entry

    def stale_catalog_entry(db, product_id):
        # Simulates a concurrent sale consuming stock after the availability check.
        return dataclasses.replace(real_catalog_entry(db, product_id), stock=1000)

    monkeypatch.setattr(ProductService, "catalog_entry", staticmethod(stale_catalog_entry))

    with pytest.raises(InsufficientStockError) as excinfo:
        SaleService.create_sale(
            db_session,
            schemas.SaleCreate(
                items=[
                    schemas.SaleItemInput(product_id=plenty.id, quantity=2),
                    schemas.SaleItemInput(product_id=scarce.id, quantity=3),
                ]
            ),
            seller_id=seller_user.id,
        )

    assert excinfo.value.kind == "insufficient_stock"
    assert reload(plenty).stock == 5
    assert reload(scarce).stock == 1
    assert db_session.query(models.Sale).count() == 0


def test_database_outage_is_reported_as_unavailable(
    seller_client, make_product, reload, monkeypatch
):
    product = make_product(stock=5)

    def locked(*args, **kwargs):
        raise OperationalError("UPDATE products", {}, Exception("database is locked"))

    monkeypatch.setattr(ProductService, "decrement_stock", staticmethod(locked))

    response = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None)))

    assert response.status_code == 503
    assert response.json()["detail"]["kind"] == "store_unavailable"
    assert reload(product).stock == 5


def test_persistent_sale_number_conflict_is_a_constraint_violation(
    seller_client, db_session, make_product, reload, monkeypatch
):
    product = make_product(stock=5)
    first = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None))).json()

    monkeypatch.setattr(
        SaleService,
        "_next_sale_number",
        staticmethod(lambda db, sold_at: first["sale_number"]),
    )
    response = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None)))

    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "constraint_violation"
    assert reload(product).stock == 4
    assert db_session.query(models.Sale).count() == 1


def test_taken_sale_number_is_regenerated(
    seller_client, db_session, make_product, reload, monkeypatch
):
    product = make_product(stock=5)
    first = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None))).json()
    real_next_sale_number = SaleService._next_sale_number
    calls = []

    def stale_then_real(db, sold_at):
        calls.append(sold_at)
        if len(calls) == 1:
            return first["sale_number"]
        return real_next_sale_number(db, sold_at)

    monkeypatch.setattr(SaleService, "_next_sale_number", staticmethod(stale_then_real))
    response = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None)))

    assert response.status_code == 201
    assert len(calls) == 2
    assert int(response.json()["sale_number"][7:]) == int(first["sale_number"][7:]) + 1
    assert reload(product).stock == 3
    assert db_session.query(models.Sale).count() == 2


def test_daily_sale_numbers_stop_at_999(seller_client, db_session, make_product, reload):
    product = make_product(stock=5)
    today = utcnow()
    db_session.add(
        models.Sale(
            sale_number=f"V{today:%y%m%d}999",
            subtotal=Decimal("1.00"),
            discount=Decimal("0"),
            tax=Decimal("0"),
            final_amount=Decimal("1.00"),
            payment_method=models.PaymentMethod.CASH,
            status=models.SaleStatus.COMPLETED,
            sale_date=today,
        )
    )
    db_session.commit()

    response = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None)))

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["kind"] == "constraint_violation"
    assert detail["sale_number_prefix"] == f"V{today:%y%m%d}"
    assert reload(product).stock == 5
    assert db_session.query(models.Sale).count() == 1


def test_cancelled_sales_are_listed_but_not_counted(
    seller_client, db_session, make_product
):
    product = make_product(stock=5, unit_price="10.00")
    seller_client.post("/api/sales/", json=_sale_payload((product, 1, None)))
    db_session.add(
        models.Sale(
            sale_number="LEGACY-0001",
            subtotal=Decimal("50.00"),
            discount=Decimal("0"),
            tax=Decimal("0"),
            final_amount=Decimal("50.00"),
            payment_method=models.PaymentMethod.CASH,
            status=models.SaleStatus.CANCELLED,
            sale_date=utcnow(),
        )
    )
    db_session.commit()

    listed = seller_client.get("/api/sales/", params={"status": "cancelled"}).json()
    stats = seller_client.get("/api/sales/stats", params={"period": "all"}).json()

    assert [sale["sale_number"] for sale in listed["items"]] == ["LEGACY-0001"]
    assert stats["total_sales"] == 1
    assert Decimal(str(stats["total_revenue"])) == Decimal("10.00")


def test_delete_reverses_stock_and_client_aggregate(
    seller_client, db_session, make_product, make_client, reload
):
    first = make_product(stock=10, unit_price="10.00")
    second = make_product(stock=4, unit_price="5.00")
    client = make_client(total_spent="100")

    created = seller_client.post(
        "/api/sales/",
        json=_sale_payload((first, 3, None), (second, 2, None), client_id=client.id),
    ).json()

    response = seller_client.delete(f"/api/sales/{created['id']}")

    assert response.status_code == 200, response.text
    snapshot = response.json()
    assert snapshot["sale_number"] == created["sale_number"]
    assert len(snapshot["items"]) == 2
    assert reload(first).stock == 10
    assert reload(second).stock == 4
    stored = reload(client)
    assert Decimal(stored.total_spent) == Decimal("100")
    assert stored.last_purchase is None
    assert db_session.query(models.SaleItem).count() == 0
    assert seller_client.get(f"/api/sales/{created['id']}").status_code == 404


def test_delete_recomputes_last_purchase_from_remaining_sales(
    admin_client, db_session, make_product, make_client, reload
):
    product = make_product(stock=10)
    client = make_client()

    older = admin_client.post(
        "/api/sales/", json=_sale_payload((product, 1, None), client_id=client.id)
    ).json()
    newer = admin_client.post(
        "/api/sales/", json=_sale_payload((product, 2, None), client_id=client.id)
    ).json()
    _backdate(db_session, older["id"], days=3)

    assert admin_client.delete(f"/api/sales/{newer['id']}").status_code == 200

    stored = reload(client)
    assert Decimal(stored.total_spent) == Decimal(older["final_amount"])
    assert stored.last_purchase == (utcnow() - timedelta(days=3)).date()


def test_old_sales_can_only_be_deleted_by_admins(
    seller_client, admin_client, db_session, make_product, reload
):
    product = make_product(stock=10)
    sale = seller_client.post("/api/sales/", json=_sale_payload((product, 2, None))).json()
    _backdate(db_session, sale["id"], days=3)

    forbidden = seller_client.delete(f"/api/sales/{sale['id']}")
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]["kind"] == "forbidden"
    assert reload(product).stock == 8

    allowed = admin_client.delete(f"/api/sales/{sale['id']}")
    assert allowed.status_code == 200
    assert reload(product).stock == 10


def test_deleting_unknown_sale_returns_not_found(seller_client):
    response = seller_client.delete("/api/sales/12345")

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "sale_not_found"


def test_list_sales_applies_date_precedence_and_filters(
    seller_client, db_session, make_product
):
    product = make_product(stock=50)
    recent = seller_client.post(
        "/api/sales/", json=_sale_payload((product, 1, None), payment_method="cash")
    ).json()
    old = seller_client.post(
        "/api/sales/", json=_sale_payload((product, 1, None), payment_method="transfer")
    ).json()
    _backdate(db_session, old["id"], days=40)

    everything = seller_client.get("/api/sales/").json()
    assert everything["total"] == 2
    assert [item["id"] for item in everything["items"]] == [recent["id"], old["id"]]

    today = seller_client.get("/api/sales/", params={"today": "true"}).json()
    assert [item["id"] for item in today["items"]] == [recent["id"]]

    old_day = (utcnow() - timedelta(days=40)).date().isoformat()
    ranged = seller_client.get(
        "/api/sales/",
        params={"start_date": old_day, "end_date": old_day, "today": "true"},
    ).json()
    assert [item["id"] for item in ranged["items"]] == [old["id"]]

    by_method = seller_client.get("/api/sales/", params={"payment_method": "transfer"}).json()
    assert by_method["total"] == 1

    page = seller_client.get("/api/sales/", params={"limit": 1, "offset": 1}).json()
    assert page["limit"] == 1
    assert [item["id"] for item in page["items"]] == [old["id"]]


@pytest.mark.parametrize("limit", [0, 1001])
def test_list_sales_rejects_out_of_range_limits(seller_client, limit):
    assert seller_client.get("/api/sales/", params={"limit": limit}).status_code == 422


def test_reads_do_not_change_state(seller_client, make_product, reload):
    product = make_product(stock=5)
    sale = seller_client.post("/api/sales/", json=_sale_payload((product, 1, None))).json()

    first = seller_client.get(f"/api/sales/{sale['id']}").json()
    second = seller_client.get(f"/api/sales/{sale['id']}").json()
    listing = seller_client.get("/api/sales/").json()
    again = seller_client.get("/api/sales/").json()

    assert first == second
    assert listing == again
    assert reload(product).stock == 4


def test_sale_stats_aggregate_by_payment_method(seller_client, make_product):
    product = make_product(stock=50, unit_price="10.00")
    seller_client.post("/api/sales/", json=_sale_payload((product, 2, None), payment_method="cash"))
    seller_client.post("/api/sales/", json=_sale_payload((product, 4, None), payment_method="card"))

    response = seller_client.get("/api/sales/stats", params={"period": "today"})

    assert response.status_code == 200
    stats = response.json()
    assert stats["total_sales"] == 2
    assert Decimal(stats["total_revenue"]) == Decimal("60")
    assert Decimal(stats["average_ticket"]) == Decimal("30")
    assert Decimal(stats["by_payment_method"]["cash"]) == Decimal("20")
    assert Decimal(stats["by_payment_method"]["card"]) == Decimal("40")


def test_sales_by_product_report(seller_client, make_product):
    bestseller = make_product(stock=50, unit_price="5.00", category="Drinks")
    other = make_product(stock=50, unit_price="20.00", category="Food")
    seller_client.post("/api/sales/", json=_sale_payload((bestseller, 3, None), (other, 1, None)))
    seller_client.post("/api/sales/", json=_sale_payload((bestseller, 2, None)))

    rows = seller_client.get("/api/sales/reports/by-product").json()
    drinks = seller_client.get(
        "/api/sales/reports/by-product", params={"category": "Drinks"}
    ).json()

    assert [row["product_id"] for row in rows] == [bestseller.id, other.id]
    assert rows[0]["total_quantity"] == 5
    assert rows[0]["sale_count"] == 2
    assert Decimal(rows[0]["total_revenue"]) == Decimal("25")
    assert rows[0]["current_stock"] == 45
    assert [row["product_id"] for row in drinks] == [bestseller.id]


def test_sales_require_authentication(api):
    assert api.get("/api/sales/").status_code == 401
