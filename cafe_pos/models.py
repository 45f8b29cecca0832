from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cafe_pos.db import Base

ID_TYPE = BigInteger().with_variant(Integer, "sqlite")
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")

PRODUCT_CATEGORIES = ("InsideMeals", "OutsideSnacks", "InsideBeverages")
ORDER_TYPES = ("DINE_IN", "TAKE_OUT")
ORDER_STATUSES = ("QUEUING", "SERVED", "CANCELLED", "WRONG")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _in_check(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class Product(Base):
    __tablename__ = "product"
    __table_args__ = (CheckConstraint(_in_check("category", PRODUCT_CATEGORIES), name="ck_product_category"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    variants: Mapped[list["Variant"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", order_by="Variant.id"
    )


class Variant(Base):
    __tablename__ = "variant"
    __table_args__ = (UniqueConstraint("product_id", "name", name="uq_variant_product_name"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)

    product: Mapped[Product] = relationship(back_populates="variants")
    ingredients: Mapped[list["VariantIngredient"]] = relationship(
        back_populates="variant", cascade="all, delete-orphan", order_by="VariantIngredient.id"
    )
    materials: Mapped[list["VariantMaterial"]] = relationship(
        back_populates="variant", cascade="all, delete-orphan", order_by="VariantMaterial.id"
    )


class VariantIngredient(Base):
    __tablename__ = "variant_ingredient"
    __table_args__ = (CheckConstraint("quantity_used >= 0", name="ck_variant_ingredient_qty"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    variant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("variant.id"), nullable=False
    )
    ingredient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ingredient.id"), nullable=False
    )
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    variant: Mapped[Variant] = relationship(back_populates="ingredients")
    ingredient: Mapped["Ingredient"] = relationship(back_populates="variant_links")


class VariantMaterial(Base):
    __tablename__ = "variant_material"
    __table_args__ = (CheckConstraint("quantity_used >= 0", name="ck_variant_material_qty"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    variant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("variant.id"), nullable=False
    )
    material_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("material.id"), nullable=False
    )
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    variant: Mapped[Variant] = relationship(back_populates="materials")
    material: Mapped["Material"] = relationship(back_populates="variant_links")


class Ingredient(Base):
    __tablename__ = "ingredient"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    measurement_unit: Mapped[str] = mapped_column(Text, nullable=False)
    purchase_unit: Mapped[str | None] = mapped_column(Text)
    units_per_purchase: Mapped[Decimal | None] = mapped_column(Numeric)
    price_per_purchase: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    stock: Mapped["Stock | None"] = relationship(
        back_populates="ingredient", cascade="all", uselist=False
    )
    variant_links: Mapped[list[VariantIngredient]] = relationship(
        back_populates="ingredient", cascade="all"
    )


class Material(Base):
    __tablename__ = "material"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_package: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    package_price: Mapped[Decimal | None] = mapped_column(Numeric)
    units_per_package: Mapped[int | None] = mapped_column(Integer)
    price_per_piece: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    stock: Mapped["Stock | None"] = relationship(
        back_populates="material", cascade="all", uselist=False
    )
    variant_links: Mapped[list[VariantMaterial]] = relationship(
        back_populates="material", cascade="all"
    )


class Addon(Base):
    __tablename__ = "addon"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    stock: Mapped["Stock | None"] = relationship(
        back_populates="addon", cascade="all", uselist=False
    )


class Stock(Base):
    __tablename__ = "stock"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN ingredient_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN material_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN addon_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_stock_single_owner",
        ),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    ingredient_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("ingredient.id"), unique=True
    )
    material_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("material.id"), unique=True
    )
    addon_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("addon.id"), unique=True
    )
    # no floor: order-driven decrements may take this below zero
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    ingredient: Mapped[Ingredient | None] = relationship(back_populates="stock")
    material: Mapped[Material | None] = relationship(back_populates="stock")
    addon: Mapped[Addon | None] = relationship(back_populates="stock")


class Order(Base):
    __tablename__ = "customer_order"
    __table_args__ = (
        CheckConstraint(_in_check("order_type", ORDER_TYPES), name="ck_order_type"),
        CheckConstraint(_in_check("order_status", ORDER_STATUSES), name="ck_order_status"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    total: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    paid: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    change_amount: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    order_type: Mapped[str] = mapped_column(Text, nullable=False, default="DINE_IN")
    order_status: Mapped[str] = mapped_column(Text, nullable=False, default="QUEUING")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    receipt: Mapped["Receipt | None"] = relationship(back_populates="order", uselist=False)


class OrderItem(Base):
    __tablename__ = "order_item"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_item_qty"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False
    )
    variant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("variant.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)

    order: Mapped[Order] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()
    variant: Mapped[Variant] = relationship()
    addons: Mapped[list["OrderItemAddon"]] = relationship(
        back_populates="order_item", cascade="all, delete-orphan", order_by="OrderItemAddon.id"
    )


class OrderItemAddon(Base):
    __tablename__ = "order_item_addon"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_item_addon_qty"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_item.id"), nullable=False
    )
    addon_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("addon.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric, nullable=False, default=0)

    order_item: Mapped[OrderItem] = relationship(back_populates="addons")
    addon: Mapped[Addon] = relationship()


class Receipt(Base):
    __tablename__ = "receipt"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, unique=True
    )
    content: Mapped[dict] = mapped_column(JSON_TYPE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    order: Mapped[Order] = relationship(back_populates="receipt")
