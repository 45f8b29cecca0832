from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from cafe_pos.errors import Conflict, InvalidInput
from cafe_pos.models import (
    Addon,
    Ingredient,
    Material,
    OrderItem,
    OrderItemAddon,
    Product,
    Variant,
    VariantIngredient,
    VariantMaterial,
)

logger = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.0001")


def material_price_per_piece(
    is_package: bool,
    package_price: Optional[Decimal],
    units_per_package: Optional[int],
    price_per_piece: Optional[Decimal],
) -> Decimal:
    if is_package and package_price is not None and units_per_package and units_per_package > 0:
        return (Decimal(package_price) / Decimal(units_per_package)).quantize(PRICE_QUANTUM)
    return Decimal(price_per_piece) if price_per_piece is not None else Decimal("0")


def ingredient_price_per_unit(price_per_purchase: Decimal, units_per_purchase: Optional[Decimal]) -> Decimal:
    if units_per_purchase is not None and units_per_purchase > 0:
        return (Decimal(price_per_purchase) / Decimal(units_per_purchase)).quantize(PRICE_QUANTUM)
    return Decimal(price_per_purchase)


def _check_unique_names(variants: list) -> None:
    seen: set[str] = set()
    for variant in variants:
        if variant.name in seen:
            raise InvalidInput(f"duplicate variant name: {variant.name}")
        seen.add(variant.name)


def _load_by_id(db: Session, model, ids: set[int], label: str) -> dict:
    if not ids:
        return {}
    rows = db.scalars(select(model).where(model.id.in_(ids))).all()
    found = {row.id: row for row in rows}
    missing = sorted(ids - found.keys())
    if missing:
        raise InvalidInput(f"unknown {label} id(s): {', '.join(str(i) for i in missing)}")
    return found


def _fill_links(variant: Variant, wanted, ingredients: dict, materials: dict) -> None:
    for usage in wanted.ingredients:
        variant.ingredients.append(
            VariantIngredient(ingredient=ingredients[usage.id], quantity_used=usage.quantity)
        )
    for usage in wanted.materials:
        variant.materials.append(
            VariantMaterial(material=materials[usage.id], quantity_used=usage.quantity)
        )


def _resolve_resources(db: Session, variants: list) -> tuple[dict, dict]:
    ingredient_ids = {usage.id for v in variants for usage in v.ingredients}
    material_ids = {usage.id for v in variants for usage in v.materials}
    ingredients = _load_by_id(db, Ingredient, ingredient_ids, "ingredient")
    materials = _load_by_id(db, Material, material_ids, "material")
    return ingredients, materials


def build_variants(db: Session, product: Product, variants: list) -> None:
    """Attach freshly created variants (with their resource usage) to a new product."""
    _check_unique_names(variants)
    ingredients, materials = _resolve_resources(db, variants)
    for wanted in variants:
        variant = Variant(name=wanted.name, price=wanted.price)
        _fill_links(variant, wanted, ingredients, materials)
        product.variants.append(variant)


def variant_ids_in_orders(db: Session, product_id: int) -> set[int]:
    rows = db.scalars(
        select(OrderItem.variant_id)
        .join(Variant, Variant.id == OrderItem.variant_id)
        .where(Variant.product_id == product_id)
        .distinct()
    ).all()
    return set(rows)


def reconcile_variants(db: Session, product: Product, variants: list) -> None:
    """Bring ``product.variants`` in line with an edited variant list.

    Variants are matched by name. A matching variant keeps its id (so past
    order lines stay valid) and gets its price and resource links replaced.
    Unmatched names are created. Existing variants missing from the list are
    deleted unless an order line points at them, in which case they stay as
    they are.
    """
    _check_unique_names(variants)
    ingredients, materials = _resolve_resources(db, variants)
    existing = {variant.name: variant for variant in product.variants}
    used_ids = variant_ids_in_orders(db, product.id)

    for wanted in variants:
        variant = existing.get(wanted.name)
        if variant is None:
            variant = Variant(name=wanted.name, price=wanted.price)
            product.variants.append(variant)
        else:
            variant.price = wanted.price
            variant.ingredients.clear()
            variant.materials.clear()
        _fill_links(variant, wanted, ingredients, materials)

    keep = {wanted.name for wanted in variants}
    for name, variant in existing.items():
        if name in keep:
            continue
        if variant.id in used_ids:
            logger.info("variant %s of product %s is referenced by orders; kept", variant.id, product.id)
            continue
        product.variants.remove(variant)


def ensure_product_deletable(db: Session, product: Product) -> None:
    referenced = db.scalar(
        select(
            exists().where(
                or_(
                    OrderItem.product_id == product.id,
                    OrderItem.variant_id.in_(select(Variant.id).where(Variant.product_id == product.id)),
                )
            )
        )
    )
    if referenced:
        raise Conflict("Cannot delete product with associated orders.")


def ensure_addon_deletable(db: Session, addon: Addon) -> None:
    referenced = db.scalar(select(exists().where(OrderItemAddon.addon_id == addon.id)))
    if referenced:
        raise Conflict("Cannot delete add-on with associated orders.")
