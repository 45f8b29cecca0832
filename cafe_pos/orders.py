from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from cafe_pos import stock
from cafe_pos.errors import InvalidInput
from cafe_pos.models import Addon, Order, OrderItem, OrderItemAddon, Product, Receipt, Variant

logger = logging.getLogger(__name__)

ORDER_FILTERS = ("all", "today", "month", "range", "custom")


class CartAddon(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    addon_id: int = Field(validation_alias=AliasChoices("addon_id", "addonId", "id"))
    quantity: int = Field(default=1, ge=1)


class CartLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(validation_alias=AliasChoices("product_id", "productId"))
    variant_id: int = Field(validation_alias=AliasChoices("variant_id", "variantId"))
    quantity: int = Field(ge=1)
    addons: list[CartAddon] = Field(default_factory=list)


class Cart(BaseModel):
    """The lines a cashier has rung up, handed to :func:`place_order` as one value."""

    items: list[CartLine] = Field(min_length=1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Decimal) -> float:
    return float(value)


def _resolve_cart(db: Session, cart: Cart) -> tuple[dict[int, Product], dict[int, Variant], dict[int, Addon]]:
    product_ids = {line.product_id for line in cart.items}
    variant_ids = {line.variant_id for line in cart.items}
    addon_ids = {addon.addon_id for line in cart.items for addon in line.addons}

    products = {p.id: p for p in db.scalars(select(Product).where(Product.id.in_(product_ids)))}
    variants = {v.id: v for v in db.scalars(select(Variant).where(Variant.id.in_(variant_ids)))}
    addons = {a.id: a for a in db.scalars(select(Addon).where(Addon.id.in_(addon_ids)))} if addon_ids else {}

    for line in cart.items:
        if line.product_id not in products:
            raise InvalidInput(f"unknown product id: {line.product_id}")
        variant = variants.get(line.variant_id)
        if variant is None:
            raise InvalidInput(f"unknown variant id: {line.variant_id}")
        if variant.product_id != line.product_id:
            raise InvalidInput(f"variant {line.variant_id} does not belong to product {line.product_id}")
        for addon in line.addons:
            if addon.addon_id not in addons:
                raise InvalidInput(f"unknown add-on id: {addon.addon_id}")
    return products, variants, addons


def build_order(
    db: Session,
    cart: Cart,
    paid: Decimal,
    order_type: str = "DINE_IN",
    order_status: str = "QUEUING",
) -> Order:
    products, variants, addons = _resolve_cart(db, cart)
    order = Order(
        paid=paid,
        order_type=order_type,
        order_status=order_status,
        created_at=_now(),
    )
    total = Decimal("0")
    for line in cart.items:
        variant = variants[line.variant_id]
        item = OrderItem(
            product=products[line.product_id],
            variant=variant,
            quantity=line.quantity,
            unit_price=variant.price,
        )
        total += Decimal(variant.price) * line.quantity
        for chosen in line.addons:
            addon = addons[chosen.addon_id]
            item.addons.append(OrderItemAddon(addon=addon, quantity=chosen.quantity, unit_price=addon.price))
            total += Decimal(addon.price) * chosen.quantity
        order.items.append(item)
    order.total = total
    order.change_amount = Decimal(paid) - total
    return order


def deduct_stock(db: Session, order: Order) -> None:
    for item in order.items:
        for usage in item.variant.ingredients:
            stock.decrement(db, "ingredient", usage.ingredient_id, usage.quantity_used * item.quantity)
        for usage in item.variant.materials:
            stock.decrement(db, "material", usage.material_id, usage.quantity_used * item.quantity)
        for chosen in item.addons:
            stock.decrement(db, "addon", chosen.addon_id, chosen.quantity)


def snapshot_receipt(db: Session, order: Order) -> Receipt:
    content = {
        "id": order.id,
        "total": _money(order.total),
        "paid": _money(order.paid),
        "change": _money(order.change_amount),
        "order_type": order.order_type,
        "created_at": order.created_at.isoformat(),
        "items": [
            {
                "product": item.product.name,
                "variant": item.variant.name,
                "quantity": item.quantity,
                "unit_price": _money(item.unit_price),
                "addons": [
                    {"name": chosen.addon.name, "quantity": chosen.quantity}
                    for chosen in item.addons
                ],
            }
            for item in order.items
        ],
    }
    receipt = Receipt(order=order, content=content, created_at=_now())
    db.add(receipt)
    return receipt


def place_order(
    db: Session,
    cart: Cart,
    paid: Decimal,
    order_type: str = "DINE_IN",
    order_status: str = "QUEUING",
) -> Order:
    """Persist an order, consume its stock and write its receipt.

    All three steps share the caller's transaction: nothing is committed here,
    so a failure in any step leaves no partial order behind once the caller
    rolls back.
    """
    order = build_order(db, cart, paid, order_type=order_type, order_status=order_status)
    db.add(order)
    db.flush()
    deduct_stock(db, order)
    snapshot_receipt(db, order)
    db.flush()
    logger.info("order %s placed: %s lines, total %s", order.id, len(order.items), order.total)
    return order


def _parse_instant(value: str, tz: ZoneInfo, end_of_day: bool = False) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise InvalidInput(f"invalid date: {value}") from exc
    if end_of_day and len(value) == 10:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def _day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    starts_at = datetime.combine(day, time.min, tzinfo=tz)
    ends_at = starts_at + timedelta(days=1) - timedelta(microseconds=1)
    return starts_at.astimezone(timezone.utc), ends_at.astimezone(timezone.utc)


def order_window(
    filter_name: str,
    tz: ZoneInfo,
    start: Optional[str] = None,
    end: Optional[str] = None,
    day: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Translate a dashboard/order-list filter into inclusive UTC bounds."""
    if filter_name not in ORDER_FILTERS:
        raise InvalidInput(f"unknown filter: {filter_name}")
    local_now = (now or _now()).astimezone(tz)
    if filter_name == "all":
        return None, None
    if filter_name == "today":
        return _day_bounds(local_now.date(), tz)
    if filter_name == "month":
        month_start = datetime.combine(local_now.date().replace(day=1), time.min, tzinfo=tz)
        return month_start.astimezone(timezone.utc), None
    if filter_name == "range":
        if not start or not end:
            raise InvalidInput("start and end are required for the range filter")
        return _parse_instant(start, tz), _parse_instant(end, tz, end_of_day=True)
    if not day:
        raise InvalidInput("date is required for the custom filter")
    try:
        custom_day = datetime.fromisoformat(day).date()
    except ValueError as exc:
        raise InvalidInput(f"invalid date: {day}") from exc
    return _day_bounds(custom_day, tz)


def apply_window(query, bounds: tuple[Optional[datetime], Optional[datetime]]):
    starts_at, ends_at = bounds
    if starts_at is not None:
        query = query.filter(Order.created_at >= starts_at)
    if ends_at is not None:
        query = query.filter(Order.created_at <= ends_at)
    return query
