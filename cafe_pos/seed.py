from __future__ import annotations

import logging
import random
from decimal import Decimal

from sqlalchemy import delete
from sqlalchemy.orm import Session

from cafe_pos import stock
from cafe_pos.catalog import ingredient_price_per_unit, material_price_per_piece
from cafe_pos.models import (
    PRODUCT_CATEGORIES,
    Addon,
    Ingredient,
    Material,
    Order,
    OrderItem,
    OrderItemAddon,
    Product,
    Receipt,
    Stock,
    Variant,
    VariantIngredient,
    VariantMaterial,
)
from cafe_pos.orders import Cart, CartAddon, CartLine, place_order

logger = logging.getLogger(__name__)

# children before parents so foreign keys never dangle mid-reset
_RESET_ORDER = (
    OrderItemAddon,
    Receipt,
    OrderItem,
    Order,
    VariantIngredient,
    VariantMaterial,
    Stock,
    Variant,
    Product,
    Ingredient,
    Material,
    Addon,
)

VARIANT_NAMES = ("general", "small", "large")
SEED_SIZE = 10
SEED_ORDERS = 5


def reset_database(db: Session) -> None:
    for model in _RESET_ORDER:
        db.execute(delete(model))
    db.flush()
    logger.info("all tables cleared")


def _money(rng: random.Random, low: int, high: int) -> Decimal:
    return Decimal(rng.randint(low * 100, high * 100)) / 100


def seed_demo(db: Session, rng: random.Random | None = None) -> dict:
    """Fill an empty database with a small demo catalog and a few sales."""
    rng = rng or random.Random()

    addons = []
    for n in range(1, SEED_SIZE + 1):
        addon = Addon(name=f"Add-on {n}", price=_money(rng, 5, 20))
        stock.open_stock(addon, rng.randint(50, 200))
        addons.append(addon)

    materials = []
    for n in range(1, SEED_SIZE + 1):
        is_package = n % 2 == 0
        package_price = _money(rng, 50, 200) if is_package else None
        units_per_package = rng.randint(10, 50) if is_package else None
        material = Material(
            name=f"Material {n}",
            is_package=is_package,
            package_price=package_price,
            units_per_package=units_per_package,
            price_per_piece=material_price_per_piece(
                is_package, package_price, units_per_package, _money(rng, 1, 5)
            ),
        )
        stock.open_stock(material, rng.randint(100, 500))
        materials.append(material)

    ingredients = []
    for n in range(1, SEED_SIZE + 1):
        units_per_purchase = Decimal(rng.choice((250, 500, 1000)))
        price_per_purchase = _money(rng, 100, 500)
        ingredient = Ingredient(
            name=f"Ingredient {n}",
            measurement_unit="g",
            purchase_unit="pack",
            units_per_purchase=units_per_purchase,
            price_per_purchase=price_per_purchase,
            price_per_unit=ingredient_price_per_unit(price_per_purchase, units_per_purchase),
        )
        stock.open_stock(ingredient, rng.randint(1000, 5000))
        ingredients.append(ingredient)

    db.add_all(addons + materials + ingredients)

    products = []
    for n in range(1, SEED_SIZE + 1):
        product = Product(name=f"Product {n}", category=rng.choice(PRODUCT_CATEGORIES))
        for variant_name in VARIANT_NAMES:
            variant = Variant(name=variant_name, price=_money(rng, 40, 150))
            for ingredient in rng.sample(ingredients, 2):
                variant.ingredients.append(
                    VariantIngredient(ingredient=ingredient, quantity_used=rng.randint(5, 50))
                )
            variant.materials.append(
                VariantMaterial(material=rng.choice(materials), quantity_used=1)
            )
            product.variants.append(variant)
        products.append(product)

    db.add_all(products)
    db.flush()

    for _ in range(SEED_ORDERS):
        lines = []
        due = Decimal("0")
        for product in rng.sample(products, rng.randint(1, 3)):
            variant = rng.choice(product.variants)
            chosen = rng.sample(addons, rng.randint(0, 2))
            quantity = rng.randint(1, 3)
            due += variant.price * quantity + sum((addon.price for addon in chosen), Decimal("0"))
            lines.append(
                CartLine(
                    product_id=product.id,
                    variant_id=variant.id,
                    quantity=quantity,
                    addons=[CartAddon(addon_id=addon.id, quantity=1) for addon in chosen],
                )
            )
        # customers round up to the next whole unit
        place_order(db, Cart(items=lines), Decimal(int(due) + 1))

    db.flush()
    counts = {
        "addons": len(addons),
        "materials": len(materials),
        "ingredients": len(ingredients),
        "products": len(products),
        "orders": SEED_ORDERS,
    }
    logger.info("demo data seeded: %s", counts)
    return counts
