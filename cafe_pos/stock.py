"""Per-resource stock counters for ingredients, materials and add-ons.

Restock edits set a quantity absolutely; sales decrement it relatively with a
single ``UPDATE ... SET quantity = quantity - n`` so concurrent orders never
lose an update. Nothing stops a counter from going negative.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from cafe_pos.models import Addon, Ingredient, Material, Stock

logger = logging.getLogger(__name__)

_OWNER_COLUMNS = {
    "ingredient": Stock.ingredient_id,
    "material": Stock.material_id,
    "addon": Stock.addon_id,
}


def open_stock(owner: Ingredient | Material | Addon, quantity: int = 0) -> Stock:
    stock = Stock(quantity=quantity)
    owner.stock = stock
    return stock


def set_quantity(owner: Ingredient | Material | Addon, quantity: Optional[int]) -> Stock:
    """Restock: overwrite the on-hand quantity, creating the row if it is missing.

    ``None`` leaves an existing quantity untouched.
    """
    if owner.stock is None:
        return open_stock(owner, quantity or 0)
    if quantity is not None:
        owner.stock.quantity = quantity
    return owner.stock


def decrement(db: Session, owner_kind: str, owner_id: int, amount: int) -> bool:
    """Subtract ``amount`` from the stock row of one resource.

    Returns False when the resource has no stock row; the decrement is then
    skipped and logged rather than failing the sale.
    """
    column = _OWNER_COLUMNS[owner_kind]
    result = db.execute(
        update(Stock)
        .where(column == owner_id)
        .values(quantity=Stock.quantity - amount)
    )
    if result.rowcount == 0:
        logger.warning("no stock row for %s %s; skipped decrement of %s", owner_kind, owner_id, amount)
        return False
    return True


def quantity_of(owner: Ingredient | Material | Addon) -> int:
    return owner.stock.quantity if owner.stock is not None else 0
