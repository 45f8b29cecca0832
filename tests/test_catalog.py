from decimal import Decimal

from cafe_pos.catalog import ingredient_price_per_unit, material_price_per_piece


def test_material_price_per_piece() -> None:
    assert material_price_per_piece(True, Decimal("100"), 4, None) == Decimal("25")
    assert material_price_per_piece(True, Decimal("10"), 3, None) == Decimal("3.3333")
    assert material_price_per_piece(False, Decimal("100"), 4, Decimal("1.25")) == Decimal("1.25")
    # a package with no unit count falls back to the supplied piece price
    assert material_price_per_piece(True, Decimal("100"), 0, Decimal("2")) == Decimal("2")
    assert material_price_per_piece(False, None, None, None) == Decimal("0")


def test_ingredient_price_per_unit() -> None:
    assert ingredient_price_per_unit(Decimal("250"), Decimal("500")) == Decimal("0.5")
    assert ingredient_price_per_unit(Decimal("80"), None) == Decimal("80")
    assert ingredient_price_per_unit(Decimal("80"), Decimal("0")) == Decimal("80")


def _product_body(variants: list[dict]) -> dict:
    return {"name": "Latte", "category": "InsideBeverages", "variants": variants}


def test_variant_reconcile_by_name(client, menu) -> None:
    created = client.post(
        "/products",
        json=_product_body([{"name": "small", "price": 8}, {"name": "large", "price": 10}]),
    ).json()["data"]
    product_id = created["product_id"]
    small_id, large_id = (v["variant_id"] for v in created["variants"])

    resp = client.put(
        f"/products/{product_id}",
        json=_product_body(
            [
                {"name": "small", "price": 9, "ingredients": [{"id": menu["ingredient_id"], "quantity": 1}]},
                {"name": "medium", "price": 11},
            ]
        ),
    )
    assert resp.status_code == 200
    variants = {v["name"]: v for v in resp.json()["data"]["variants"]}
    assert set(variants) == {"small", "medium"}
    assert variants["small"]["variant_id"] == small_id
    assert variants["small"]["price"] == 9.0
    assert variants["small"]["ingredients"][0]["quantity_used"] == 1
    assert variants["medium"]["variant_id"] not in (small_id, large_id)


def test_variant_referenced_by_order_is_kept(client, menu) -> None:
    client.post(
        "/orders",
        json={
            "items": [{"product_id": menu["product_id"], "variant_id": menu["variant_id"], "quantity": 1}],
            "paid": 12,
        },
    )

    resp = client.put(
        f"/products/{menu['product_id']}",
        json={"name": "Milk Tea", "category": "InsideBeverages", "variants": [{"name": "small", "price": 9}]},
    )
    assert resp.status_code == 200
    variants = resp.json()["data"]["variants"]
    assert [v["name"] for v in variants] == ["large", "small"]
    large = variants[0]
    assert large["variant_id"] == menu["variant_id"]
    assert large["price"] == 12.0
    assert large["ingredients"][0]["quantity_used"] == 2

    order = client.get("/orders").json()["data"][0]
    assert order["items"][0]["variant_name"] == "large"


def test_reconcile_rejects_unknown_material(client, menu) -> None:
    resp = client.put(
        f"/products/{menu['product_id']}",
        json={
            "name": "Milk Tea",
            "category": "InsideBeverages",
            "variants": [{"name": "large", "price": 12, "materials": [{"id": 404, "quantity": 1}]}],
        },
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "unknown material id(s): 404"
    product = client.get(f"/products/{menu['product_id']}").json()["data"]
    assert product["variants"][0]["materials"][0]["material_id"] == menu["material_id"]
