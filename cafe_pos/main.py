from __future__ import annotations

import logging
import shutil
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from cafe_pos import catalog, orders, stock
from cafe_pos.config import settings
from cafe_pos.db import SessionLocal, init_db
from cafe_pos.errors import CafeError, NotFound
from cafe_pos.logging import setup_json_logging
from cafe_pos.models import (
    Addon,
    Ingredient,
    Material,
    Order,
    OrderItem,
    Product,
    Receipt,
    Variant,
)
from cafe_pos.reporting import as_utc, build_dashboard
from cafe_pos.request_id import (
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    bind_request_id,
    get_request_id,
    request_id_for,
)

logger = logging.getLogger("cafe_pos.api")

ALLOWED_UPLOAD_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}

Category = Literal["InsideMeals", "OutsideSnacks", "InsideBeverages"]
OrderType = Literal["DINE_IN", "TAKE_OUT"]
OrderStatus = Literal["QUEUING", "SERVED", "CANCELLED", "WRONG"]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.create_tables_on_startup:
        init_db()
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    yield


setup_json_logging()
app = FastAPI(title="Cafe POS", lifespan=lifespan)
app.add_middleware(RequestIDMiddleware)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


def _meta(warnings: Optional[list[str]] = None) -> dict:
    return {
        "request_id": get_request_id(),
        "warnings": warnings or [],
    }


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return as_utc(moment).isoformat() if moment is not None else None


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _cafe_tz() -> ZoneInfo:
    return ZoneInfo(settings.cafe_timezone)


def _paginate_by_id(
    query, model, limit: int, cursor: Optional[int], descending: bool = False
) -> tuple[list[Any], Optional[int]]:
    if cursor is not None:
        query = query.filter(model.id < cursor if descending else model.id > cursor)
    order_by = model.id.desc() if descending else model.id
    rows = query.order_by(order_by).limit(limit + 1).all()
    next_cursor = None
    if len(rows) > limit:
        next_cursor = rows[limit - 1].id
        rows = rows[:limit]
    return rows, next_cursor


def _list_meta(limit: int, cursor: Optional[int], next_cursor: Optional[int]) -> dict:
    meta = _meta()
    if next_cursor is not None:
        meta["page"] = {"limit": limit, "cursor": str(next_cursor)}
    elif cursor is not None:
        meta["page"] = {"limit": limit, "cursor": str(cursor)}
    else:
        meta["page"] = {"limit": limit, "cursor": None}
    return meta


def _describe_validation(errors: list[dict]) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "invalid request"


@app.exception_handler(CafeError)
async def _cafe_error_handler(request: Request, exc: CafeError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": _describe_validation(exc.errors())})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    # runs outside RequestIDMiddleware, so the context variable is already reset
    rid = request_id_for(request)
    bind_request_id(rid)
    logger.exception("unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "internal error", "request_id": rid},
        headers={REQUEST_ID_HEADER: rid},
    )


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to %s", action)
        raise HTTPException(status_code=500, detail=f"Failed to {action}")


@app.get("/", tags=["root"])
def read_root() -> dict:
    return {"status": "ok"}


@app.get("/health", tags=["health"])
def health_check() -> dict:
    return {"status": "healthy"}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResourceUsage(CamelModel):
    id: int
    quantity: int = Field(ge=0)


class VariantInput(CamelModel):
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    ingredients: list[ResourceUsage] = Field(default_factory=list)
    materials: list[ResourceUsage] = Field(default_factory=list)


class ProductWrite(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "Milk Tea",
                "category": "InsideBeverages",
                "image_url": "/uploads/milk-tea.jpg",
                "variants": [
                    {
                        "name": "large",
                        "price": 12.0,
                        "ingredients": [{"id": 1, "quantity": 2}],
                        "materials": [{"id": 1, "quantity": 1}],
                    }
                ],
            }
        },
    )
    name: str = Field(min_length=1)
    category: Category
    image_url: Optional[str] = None
    variants: list[VariantInput] = Field(min_length=1)


def _variant_data(variant: Variant) -> dict:
    return {
        "variant_id": variant.id,
        "name": variant.name,
        "price": _num(variant.price),
        "ingredients": [
            {
                "ingredient_id": usage.ingredient_id,
                "name": usage.ingredient.name,
                "quantity_used": usage.quantity_used,
            }
            for usage in variant.ingredients
        ],
        "materials": [
            {
                "material_id": usage.material_id,
                "name": usage.material.name,
                "quantity_used": usage.quantity_used,
            }
            for usage in variant.materials
        ],
    }


def _product_data(product: Product) -> dict:
    return {
        "product_id": product.id,
        "name": product.name,
        "category": product.category,
        "image_url": product.image_url,
        "created_at": _iso(product.created_at),
        "variants": [_variant_data(variant) for variant in product.variants],
    }


def _get_or_404(db: Session, model, object_id: int, label: str):
    row = db.get(model, object_id)
    if not row:
        raise NotFound(f"{label} not found")
    return row


@app.post("/products", tags=["Products"])
def create_product(payload: ProductWrite, db: Session = Depends(get_db)) -> dict:
    product = Product(name=payload.name, category=payload.category, image_url=payload.image_url)
    catalog.build_variants(db, product, payload.variants)
    db.add(product)
    _commit(db, "create product")
    db.refresh(product)
    return {"data": _product_data(product), "meta": _meta()}


@app.get("/products/{product_id}", tags=["Products"])
def get_product(product_id: int, db: Session = Depends(get_db)) -> dict:
    product = _get_or_404(db, Product, product_id, "product")
    return {"data": _product_data(product), "meta": _meta()}


@app.get("/products", tags=["Products"])
def list_products(
    category: Optional[Category] = Query(default=None),
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    cursor: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(Product)
    if category is not None:
        query = query.filter(Product.category == category)
    if q is not None:
        query = query.filter(Product.name.ilike(f"%{q}%"))
    rows, next_cursor = _paginate_by_id(query, Product, limit, cursor)
    data = [_product_data(row) for row in rows]
    return {"data": data, "meta": _list_meta(limit, cursor, next_cursor)}


@app.put("/products/{product_id}", tags=["Products"])
def update_product(product_id: int, payload: ProductWrite, db: Session = Depends(get_db)) -> dict:
    product = _get_or_404(db, Product, product_id, "product")
    catalog.reconcile_variants(db, product, payload.variants)
    product.name = payload.name
    product.category = payload.category
    product.image_url = payload.image_url
    _commit(db, "update product")
    db.refresh(product)
    return {"data": _product_data(product), "meta": _meta()}


@app.delete("/products/{product_id}", tags=["Products"])
def delete_product(product_id: int, db: Session = Depends(get_db)) -> dict:
    product = _get_or_404(db, Product, product_id, "product")
    catalog.ensure_product_deletable(db, product)
    db.delete(product)
    _commit(db, "delete product")
    return {"data": {"product_id": product_id, "deleted": True}, "meta": _meta()}


class IngredientWrite(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "Coffee Beans",
                "measurement_unit": "g",
                "purchase_unit": "pack",
                "units_per_purchase": 500,
                "price_per_purchase": 250.0,
                "stock_quantity": 2000,
            }
        },
    )
    name: str = Field(min_length=1)
    measurement_unit: str = Field(min_length=1)
    purchase_unit: Optional[str] = None
    units_per_purchase: Optional[Decimal] = Field(default=None, ge=0)
    price_per_purchase: Decimal = Field(ge=0)
    stock_quantity: Optional[int] = None


def _ingredient_data(ingredient: Ingredient) -> dict:
    return {
        "ingredient_id": ingredient.id,
        "name": ingredient.name,
        "measurement_unit": ingredient.measurement_unit,
        "purchase_unit": ingredient.purchase_unit,
        "units_per_purchase": _num(ingredient.units_per_purchase),
        "price_per_purchase": _num(ingredient.price_per_purchase),
        "price_per_unit": _num(ingredient.price_per_unit),
        "stock_quantity": stock.quantity_of(ingredient),
        "created_at": _iso(ingredient.created_at),
    }


@app.post("/ingredients", tags=["Ingredients"])
def create_ingredient(payload: IngredientWrite, db: Session = Depends(get_db)) -> dict:
    ingredient = Ingredient(
        name=payload.name,
        measurement_unit=payload.measurement_unit,
        purchase_unit=payload.purchase_unit,
        units_per_purchase=payload.units_per_purchase,
        price_per_purchase=payload.price_per_purchase,
        price_per_unit=catalog.ingredient_price_per_unit(
            payload.price_per_purchase, payload.units_per_purchase
        ),
    )
    stock.open_stock(ingredient, payload.stock_quantity or 0)
    db.add(ingredient)
    _commit(db, "create ingredient")
    db.refresh(ingredient)
    return {"data": _ingredient_data(ingredient), "meta": _meta()}


@app.get("/ingredients/{ingredient_id}", tags=["Ingredients"])
def get_ingredient(ingredient_id: int, db: Session = Depends(get_db)) -> dict:
    ingredient = _get_or_404(db, Ingredient, ingredient_id, "ingredient")
    return {"data": _ingredient_data(ingredient), "meta": _meta()}


@app.get("/ingredients", tags=["Ingredients"])
def list_ingredients(
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    cursor: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(Ingredient)
    if q is not None:
        query = query.filter(Ingredient.name.ilike(f"%{q}%"))
    rows, next_cursor = _paginate_by_id(query, Ingredient, limit, cursor)
    data = [_ingredient_data(row) for row in rows]
    return {"data": data, "meta": _list_meta(limit, cursor, next_cursor)}


@app.put("/ingredients/{ingredient_id}", tags=["Ingredients"])
def update_ingredient(ingredient_id: int, payload: IngredientWrite, db: Session = Depends(get_db)) -> dict:
    ingredient = _get_or_404(db, Ingredient, ingredient_id, "ingredient")
    ingredient.name = payload.name
    ingredient.measurement_unit = payload.measurement_unit
    ingredient.purchase_unit = payload.purchase_unit
    ingredient.units_per_purchase = payload.units_per_purchase
    ingredient.price_per_purchase = payload.price_per_purchase
    ingredient.price_per_unit = catalog.ingredient_price_per_unit(
        payload.price_per_purchase, payload.units_per_purchase
    )
    stock.set_quantity(ingredient, payload.stock_quantity)
    _commit(db, "update ingredient")
    db.refresh(ingredient)
    return {"data": _ingredient_data(ingredient), "meta": _meta()}


@app.delete("/ingredients/{ingredient_id}", tags=["Ingredients"])
def delete_ingredient(ingredient_id: int, db: Session = Depends(get_db)) -> dict:
    ingredient = _get_or_404(db, Ingredient, ingredient_id, "ingredient")
    db.delete(ingredient)
    _commit(db, "delete ingredient")
    return {"data": {"ingredient_id": ingredient_id, "deleted": True}, "meta": _meta()}


class MaterialWrite(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "Plastic Cup",
                "is_package": True,
                "package_price": 100.0,
                "units_per_package": 4,
                "stock_quantity": 40,
            }
        },
    )
    name: str = Field(min_length=1)
    is_package: bool
    package_price: Optional[Decimal] = Field(default=None, ge=0)
    units_per_package: Optional[int] = Field(default=None, ge=0)
    price_per_piece: Optional[Decimal] = Field(default=None, ge=0)
    stock_quantity: Optional[int] = None


def _material_data(material: Material) -> dict:
    return {
        "material_id": material.id,
        "name": material.name,
        "is_package": material.is_package,
        "package_price": _num(material.package_price),
        "units_per_package": material.units_per_package,
        "price_per_piece": _num(material.price_per_piece),
        "stock_quantity": stock.quantity_of(material),
        "created_at": _iso(material.created_at),
    }


def _apply_material(material: Material, payload: MaterialWrite) -> None:
    material.name = payload.name
    material.is_package = payload.is_package
    material.package_price = payload.package_price if payload.is_package else None
    material.units_per_package = payload.units_per_package if payload.is_package else None
    material.price_per_piece = catalog.material_price_per_piece(
        payload.is_package,
        payload.package_price,
        payload.units_per_package,
        payload.price_per_piece,
    )


@app.post("/materials", tags=["Materials"])
def create_material(payload: MaterialWrite, db: Session = Depends(get_db)) -> dict:
    material = Material()
    _apply_material(material, payload)
    stock.open_stock(material, payload.stock_quantity or 0)
    db.add(material)
    _commit(db, "create material")
    db.refresh(material)
    return {"data": _material_data(material), "meta": _meta()}


@app.get("/materials/{material_id}", tags=["Materials"])
def get_material(material_id: int, db: Session = Depends(get_db)) -> dict:
    material = _get_or_404(db, Material, material_id, "material")
    return {"data": _material_data(material), "meta": _meta()}


@app.get("/materials", tags=["Materials"])
def list_materials(
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    cursor: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(Material)
    if q is not None:
        query = query.filter(Material.name.ilike(f"%{q}%"))
    rows, next_cursor = _paginate_by_id(query, Material, limit, cursor)
    data = [_material_data(row) for row in rows]
    return {"data": data, "meta": _list_meta(limit, cursor, next_cursor)}


@app.put("/materials/{material_id}", tags=["Materials"])
def update_material(material_id: int, payload: MaterialWrite, db: Session = Depends(get_db)) -> dict:
    material = _get_or_404(db, Material, material_id, "material")
    _apply_material(material, payload)
    stock.set_quantity(material, payload.stock_quantity)
    _commit(db, "update material")
    db.refresh(material)
    return {"data": _material_data(material), "meta": _meta()}


@app.delete("/materials/{material_id}", tags=["Materials"])
def delete_material(material_id: int, db: Session = Depends(get_db)) -> dict:
    material = _get_or_404(db, Material, material_id, "material")
    db.delete(material)
    _commit(db, "delete material")
    return {"data": {"material_id": material_id, "deleted": True}, "meta": _meta()}


class AddonWrite(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"name": "Extra Pearls", "price": 15.0, "stock_quantity": 100}},
    )
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    stock_quantity: Optional[int] = None


def _addon_data(addon: Addon) -> dict:
    return {
        "addon_id": addon.id,
        "name": addon.name,
        "price": _num(addon.price),
        "stock_quantity": stock.quantity_of(addon),
        "created_at": _iso(addon.created_at),
    }


@app.post("/addons", tags=["Add-ons"])
def create_addon(payload: AddonWrite, db: Session = Depends(get_db)) -> dict:
    addon = Addon(name=payload.name, price=payload.price)
    stock.open_stock(addon, payload.stock_quantity or 0)
    db.add(addon)
    _commit(db, "create add-on")
    db.refresh(addon)
    return {"data": _addon_data(addon), "meta": _meta()}


@app.get("/addons/{addon_id}", tags=["Add-ons"])
def get_addon(addon_id: int, db: Session = Depends(get_db)) -> dict:
    addon = _get_or_404(db, Addon, addon_id, "add-on")
    return {"data": _addon_data(addon), "meta": _meta()}


@app.get("/addons", tags=["Add-ons"])
def list_addons(
    limit: int = Query(default=100, ge=1, le=500),
    cursor: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    rows, next_cursor = _paginate_by_id(db.query(Addon), Addon, limit, cursor)
    data = [_addon_data(row) for row in rows]
    return {"data": data, "meta": _list_meta(limit, cursor, next_cursor)}


@app.put("/addons/{addon_id}", tags=["Add-ons"])
def update_addon(addon_id: int, payload: AddonWrite, db: Session = Depends(get_db)) -> dict:
    addon = _get_or_404(db, Addon, addon_id, "add-on")
    addon.name = payload.name
    addon.price = payload.price
    stock.set_quantity(addon, payload.stock_quantity)
    _commit(db, "update add-on")
    db.refresh(addon)
    return {"data": _addon_data(addon), "meta": _meta()}


@app.delete("/addons/{addon_id}", tags=["Add-ons"])
def delete_addon(addon_id: int, db: Session = Depends(get_db)) -> dict:
    addon = _get_or_404(db, Addon, addon_id, "add-on")
    catalog.ensure_addon_deletable(db, addon)
    db.delete(addon)
    _commit(db, "delete add-on")
    return {"data": {"addon_id": addon_id, "deleted": True}, "meta": _meta()}


class OrderCreate(orders.Cart):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "items": [
                    {
                        "product_id": 1,
                        "variant_id": 2,
                        "quantity": 3,
                        "addons": [{"addon_id": 1, "quantity": 1}],
                    }
                ],
                "total": 51.0,
                "paid": 100.0,
                "change": 49.0,
                "order_type": "DINE_IN",
            }
        },
    )
    paid: Decimal = Field(ge=0)
    total: Optional[Decimal] = None
    change: Optional[Decimal] = None
    order_type: Optional[OrderType] = Field(
        default=None, validation_alias=AliasChoices("order_type", "orderType")
    )
    order_status: Optional[OrderStatus] = Field(
        default=None, validation_alias=AliasChoices("order_status", "orderStatus")
    )


class OrderStatusUpdate(BaseModel):
    order_status: OrderStatus = Field(validation_alias=AliasChoices("order_status", "orderStatus"))


def _order_data(order: Order) -> dict:
    return {
        "order_id": order.id,
        "total": _num(order.total),
        "paid": _num(order.paid),
        "change": _num(order.change_amount),
        "order_type": order.order_type,
        "order_status": order.order_status,
        "created_at": _iso(order.created_at),
        "items": [
            {
                "order_item_id": item.id,
                "product_id": item.product_id,
                "product_name": item.product.name,
                "variant_id": item.variant_id,
                "variant_name": item.variant.name,
                "quantity": item.quantity,
                "unit_price": _num(item.unit_price),
                "addons": [
                    {
                        "addon_id": chosen.addon_id,
                        "name": chosen.addon.name,
                        "quantity": chosen.quantity,
                        "unit_price": _num(chosen.unit_price),
                    }
                    for chosen in item.addons
                ],
            }
            for item in order.items
        ],
    }


def _with_order_graph(query):
    return query.options(
        selectinload(Order.items).selectinload(OrderItem.product),
        selectinload(Order.items).selectinload(OrderItem.variant),
        selectinload(Order.items).selectinload(OrderItem.addons),
    )


@app.post("/orders", tags=["Orders"])
def create_order(payload: OrderCreate, db: Session = Depends(get_db)) -> dict:
    warnings: list[str] = []
    try:
        order = orders.place_order(
            db,
            payload,
            payload.paid,
            order_type=payload.order_type or "DINE_IN",
            order_status=payload.order_status or "QUEUING",
        )
        if payload.total is not None and payload.total != order.total:
            warnings.append("total_mismatch")
        db.commit()
    except CafeError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("order creation failed")
        raise HTTPException(status_code=500, detail="Failed to create order")
    db.refresh(order)
    return {"data": _order_data(order), "meta": _meta(warnings)}


@app.get("/orders", tags=["Orders"])
def list_orders(
    filter_name: str = Query(default="all", alias="filter"),
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    day: Optional[str] = Query(default=None, alias="date"),
    status: Optional[OrderStatus] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    cursor: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    bounds = orders.order_window(filter_name, _cafe_tz(), start=start, end=end, day=day)
    query = orders.apply_window(_with_order_graph(db.query(Order)), bounds)
    if status is not None:
        query = query.filter(Order.order_status == status)
    rows, next_cursor = _paginate_by_id(query, Order, limit, cursor, descending=True)
    data = [_order_data(row) for row in rows]
    return {"data": data, "meta": _list_meta(limit, cursor, next_cursor)}


@app.get("/orders/{order_id}", tags=["Orders"])
def get_order(order_id: int, db: Session = Depends(get_db)) -> dict:
    order = _get_or_404(db, Order, order_id, "order")
    data = _order_data(order)
    data["receipt"] = order.receipt.content if order.receipt is not None else None
    return {"data": data, "meta": _meta()}


@app.patch("/orders/{order_id}", tags=["Orders"])
def update_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)) -> dict:
    order = _get_or_404(db, Order, order_id, "order")
    order.order_status = payload.order_status
    _commit(db, "update order")
    db.refresh(order)
    return {"data": _order_data(order), "meta": _meta()}


@app.get("/receipts", tags=["Receipts"])
def list_receipts(
    limit: int = Query(default=100, ge=1, le=1000),
    cursor: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(Receipt).options(selectinload(Receipt.order))
    rows, next_cursor = _paginate_by_id(query, Receipt, limit, cursor, descending=True)
    data = [
        {
            "receipt_id": row.id,
            "order_id": row.order_id,
            "content": row.content,
            "created_at": _iso(row.created_at),
            "order": _order_data(row.order),
        }
        for row in rows
    ]
    return {"data": data, "meta": _list_meta(limit, cursor, next_cursor)}


@app.get("/dashboard", tags=["Dashboard"])
def get_dashboard(
    filter_name: str = Query(default="all", alias="filter"),
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    day: Optional[str] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
) -> dict:
    tz = _cafe_tz()
    bounds = orders.order_window(filter_name, tz, start=start, end=end, day=day)
    query = orders.apply_window(
        db.query(Order).options(selectinload(Order.items).selectinload(OrderItem.product)),
        bounds,
    )
    return {"data": build_dashboard(query.all(), tz), "meta": _meta()}


@app.post("/upload", tags=["Upload"])
def upload_file(file: UploadFile = File(...)) -> dict:
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in ALLOWED_UPLOAD_EXTS:
        raise HTTPException(status_code=400, detail="Invalid file")
    name = f"{uuid4().hex}{suffix}"
    target = Path(settings.upload_dir) / name
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as out:
            shutil.copyfileobj(file.file, out)
    except OSError:
        logger.exception("upload to %s failed", target)
        raise HTTPException(status_code=500, detail="Upload failed")
    return {"data": {"image_url": f"/uploads/{name}"}, "meta": _meta()}
