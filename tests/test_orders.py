import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from cafe_pos import orders, stock
from cafe_pos.errors import InvalidInput
from cafe_pos.models import Order


def _order_payload(menu: dict, quantity: int = 3, **extra) -> dict:
    payload = {
        "items": [
            {
                "product_id": menu["product_id"],
                "variant_id": menu["variant_id"],
                "quantity": quantity,
                "addons": [{"addon_id": menu["addon_id"], "quantity": 1}],
            }
        ],
        "paid": 100,
    }
    payload.update(extra)
    return payload


def _stock_levels(client, menu: dict) -> tuple[int, int, int]:
    return (
        client.get(f"/ingredients/{menu['ingredient_id']}").json()["data"]["stock_quantity"],
        client.get(f"/materials/{menu['material_id']}").json()["data"]["stock_quantity"],
        client.get(f"/addons/{menu['addon_id']}").json()["data"]["stock_quantity"],
    )


def test_create_order_computes_totals_and_decrements_stock(client, menu) -> None:
    resp = client.post("/orders", json=_order_payload(menu, total=51))
    assert resp.status_code == 200
    body = resp.json()
    order = body["data"]
    assert order["total"] == 51.0
    assert order["paid"] == 100.0
    assert order["change"] == 49.0
    assert order["order_type"] == "DINE_IN"
    assert order["order_status"] == "QUEUING"
    assert order["items"][0]["unit_price"] == 12.0
    assert order["items"][0]["addons"][0]["name"] == "Pearls"
    assert body["meta"]["warnings"] == []

    # 2 units of tea per drink, three drinks
    assert _stock_levels(client, menu) == (94, 47, 19)


def test_stock_can_go_negative(client, menu) -> None:
    payload = _order_payload(menu, quantity=60)
    payload["paid"] = 1000
    resp = client.post("/orders", json=payload)
    assert resp.status_code == 200

    # 60 drinks at 2g of tea each against 100g on hand
    assert _stock_levels(client, menu) == (-20, -10, 19)


def test_client_total_mismatch_is_flagged(client, menu) -> None:
    resp = client.post("/orders", json=_order_payload(menu, total=10, orderType="TAKE_OUT"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"]["total"] == 51.0
    assert body["data"]["order_type"] == "TAKE_OUT"
    assert body["meta"]["warnings"] == ["total_mismatch"]


def test_camel_case_cart_is_accepted(client, menu) -> None:
    payload = {
        "items": [
            {
                "productId": menu["product_id"],
                "variantId": menu["variant_id"],
                "quantity": 1,
                "addons": [{"id": menu["addon_id"], "quantity": 2}],
            }
        ],
        "paid": 50,
        "orderStatus": "SERVED",
    }
    resp = client.post("/orders", json=payload)
    assert resp.status_code == 200
    assert resp.json()["data"]["total"] == 42.0
    assert resp.json()["data"]["order_status"] == "SERVED"


@pytest.mark.parametrize(
    "payload_update",
    [
        {"items": []},
        {"paid": None},
        {"paid": "lots"},
        {"total": "abc"},
        {"order_type": "DELIVERY"},
    ],
)
def test_invalid_order_creates_nothing(client, menu, payload_update) -> None:
    payload = _order_payload(menu)
    payload.update(payload_update)
    if payload.get("paid") is None:
        payload.pop("paid")

    resp = client.post("/orders", json=payload)
    assert resp.status_code == 400
    assert "detail" in resp.json()

    assert client.get("/orders").json()["data"] == []
    assert client.get("/receipts").json()["data"] == []
    assert _stock_levels(client, menu) == (100, 50, 20)


def test_unknown_catalog_references_are_rejected(client, menu) -> None:
    payload = _order_payload(menu)
    payload["items"][0]["variant_id"] = 999
    resp = client.post("/orders", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "unknown variant id: 999"

    other = client.post(
        "/products",
        json={"name": "Toast", "category": "InsideMeals", "variants": [{"name": "general", "price": 3}]},
    ).json()["data"]
    payload = _order_payload(menu)
    payload["items"][0]["variant_id"] = other["variants"][0]["variant_id"]
    resp = client.post("/orders", json=payload)
    assert resp.status_code == 400
    assert "does not belong to product" in resp.json()["detail"]
    assert _stock_levels(client, menu) == (100, 50, 20)


def test_failed_receipt_rolls_back_whole_order(client, menu, monkeypatch) -> None:
    def broken_snapshot(db, order):
        raise SQLAlchemyError("receipt table unavailable")

    monkeypatch.setattr(orders, "snapshot_receipt", broken_snapshot)

    resp = client.post("/orders", json=_order_payload(menu))
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Failed to create order"}

    assert client.get("/orders").json()["data"] == []
    assert client.get("/receipts").json()["data"] == []
    assert _stock_levels(client, menu) == (100, 50, 20)


def test_receipt_survives_product_rename(client, menu) -> None:
    order = client.post("/orders", json=_order_payload(menu)).json()["data"]

    rename = client.put(
        f"/products/{menu['product_id']}",
        json={
            "name": "Royal Milk Tea",
            "category": "InsideBeverages",
            "variants": [
                {
                    "name": "large",
                    "price": 14,
                    "ingredients": [{"id": menu["ingredient_id"], "quantity": 2}],
                    "materials": [{"id": menu["material_id"], "quantity": 1}],
                }
            ],
        },
    )
    assert rename.status_code == 200

    receipts = client.get("/receipts").json()["data"]
    assert len(receipts) == 1
    content = receipts[0]["content"]
    assert content["id"] == order["order_id"]
    assert content["items"][0]["product"] == "Milk Tea"
    assert content["items"][0]["unit_price"] == 12.0
    assert content["items"][0]["addons"] == [{"name": "Pearls", "quantity": 1}]
    assert receipts[0]["order"]["items"][0]["product_name"] == "Royal Milk Tea"


def test_product_with_orders_cannot_be_deleted(client, menu) -> None:
    client.post("/orders", json=_order_payload(menu))

    resp = client.delete(f"/products/{menu['product_id']}")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Cannot delete product with associated orders."}

    product = client.get(f"/products/{menu['product_id']}").json()["data"]
    assert product["name"] == "Milk Tea"
    assert len(product["variants"]) == 1

    addon_resp = client.delete(f"/addons/{menu['addon_id']}")
    assert addon_resp.status_code == 400


def test_get_order_includes_receipt_and_patch_changes_status_only(client, menu) -> None:
    order_id = client.post("/orders", json=_order_payload(menu)).json()["data"]["order_id"]

    detail = client.get(f"/orders/{order_id}").json()["data"]
    assert detail["receipt"]["id"] == order_id
    assert detail["receipt"]["change"] == 49.0

    patched = client.patch(f"/orders/{order_id}", json={"orderStatus": "SERVED"})
    assert patched.status_code == 200
    data = patched.json()["data"]
    assert data["order_status"] == "SERVED"
    assert data["total"] == 51.0

    assert client.patch(f"/orders/{order_id}", json={"order_status": "DONE"}).status_code == 400
    assert client.patch("/orders/999", json={"order_status": "SERVED"}).status_code == 404
    assert client.get("/orders/999").status_code == 404


def test_order_list_filters(client, menu, session_factory) -> None:
    recent = client.post("/orders", json=_order_payload(menu, quantity=1)).json()["data"]
    old = client.post("/orders", json=_order_payload(menu, quantity=1)).json()["data"]

    old_moment = datetime.now(timezone.utc) - timedelta(days=40)
    with session_factory() as db:
        db.get(Order, old["order_id"]).created_at = old_moment
        db.commit()

    everything = client.get("/orders").json()["data"]
    assert [row["order_id"] for row in everything] == [old["order_id"], recent["order_id"]]

    today = client.get("/orders", params={"filter": "today"}).json()["data"]
    assert [row["order_id"] for row in today] == [recent["order_id"]]

    custom = client.get("/orders", params={"filter": "custom", "date": old_moment.date().isoformat()}).json()["data"]
    assert [row["order_id"] for row in custom] == [old["order_id"]]

    served = client.get("/orders", params={"status": "SERVED"}).json()["data"]
    assert served == []

    assert client.get("/orders", params={"filter": "yesterday"}).status_code == 400
    assert client.get("/orders", params={"filter": "range", "start": "2024-01-01"}).status_code == 400
    assert client.get("/orders", params={"filter": "custom", "date": "not-a-date"}).status_code == 400


def test_dashboard_summarises_orders(client, menu) -> None:
    client.post("/orders", json=_order_payload(menu))

    resp = client.get("/dashboard")
    assert resp.status_code == 200
    data = resp.json()["data"]
    stats = data["stats"]
    assert stats["all_time_earning"] == 51.0
    assert stats["all_time_products_sold"] == 3
    assert stats["best_product"] == "Milk Tea"
    assert stats["least_product"] == "Milk Tea"
    assert len(data["hours"]) == 24
    assert data["products"] == [{"product": "Milk Tea", "quantity": 3}]

    assert client.get("/dashboard", params={"filter": "bogus"}).status_code == 400


KARACHI = timezone(timedelta(hours=5))
NOW = datetime(2024, 3, 15, 20, 0, tzinfo=timezone.utc)


def test_order_window_today_and_month_use_cafe_timezone() -> None:
    starts_at, ends_at = orders.order_window("today", KARACHI, now=NOW)
    assert starts_at == datetime(2024, 3, 15, 19, 0, tzinfo=timezone.utc)
    assert ends_at == datetime(2024, 3, 16, 18, 59, 59, 999999, tzinfo=timezone.utc)

    starts_at, ends_at = orders.order_window("month", KARACHI, now=NOW)
    assert starts_at == datetime(2024, 2, 29, 19, 0, tzinfo=timezone.utc)
    assert ends_at is None

    assert orders.order_window("all", KARACHI, now=NOW) == (None, None)


def test_order_window_range_and_custom() -> None:
    starts_at, ends_at = orders.order_window("range", KARACHI, start="2024-03-01", end="2024-03-02")
    assert starts_at == datetime(2024, 2, 29, 19, 0, tzinfo=timezone.utc)
    assert ends_at == datetime(2024, 3, 2, 18, 59, 59, 999999, tzinfo=timezone.utc)

    starts_at, ends_at = orders.order_window(
        "range", KARACHI, start="2024-03-01T10:00:00+00:00", end="2024-03-01T12:00:00+00:00"
    )
    assert starts_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert ends_at == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    starts_at, _ = orders.order_window("custom", KARACHI, day="2024-03-10")
    assert starts_at == datetime(2024, 3, 9, 19, 0, tzinfo=timezone.utc)

    with pytest.raises(InvalidInput):
        orders.order_window("range", KARACHI, start="2024-03-01")
    with pytest.raises(InvalidInput):
        orders.order_window("custom", KARACHI)
    with pytest.raises(InvalidInput):
        orders.order_window("week", KARACHI)
    with pytest.raises(InvalidInput):
        orders.order_window("custom", KARACHI, day="2024-03-10junk")


def test_missing_stock_row_is_skipped_with_warning(session_factory, caplog) -> None:
    with session_factory() as db, caplog.at_level(logging.WARNING, logger="cafe_pos.stock"):
        assert stock.decrement(db, "ingredient", 12345, 3) is False
    assert "no stock row for ingredient 12345" in caplog.text
