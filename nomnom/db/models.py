"""SQLAlchemy async database models for NomNom.

All rows are scoped by business_id; menu items, ingredient products,
inventory, orders and remembered product mappings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class MenuItemModel(Base):
    """Sellable menu item."""

    __tablename__ = "menu_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="Other")
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    prep_time: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    allergens: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<MenuItemModel(id={self.id}, name={self.name!r}, price={self.price})>"


class MenuItemIngredientModel(Base):
    """Recipe line linking a menu item to the products it consumes."""

    __tablename__ = "menu_item_ingredients"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    menu_item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("menu_items.id", ondelete="CASCADE"), index=True
    )
    product_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(50))


class ProductModel(Base):
    """Ingredient product bought from a supplier."""

    __tablename__ = "products"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    cost_per_unit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Packaging
    units_per_package: Mapped[int | None] = mapped_column(Integer)
    package_type: Mapped[str | None] = mapped_column(String(50))
    minimum_order_quantity: Mapped[int | None] = mapped_column(Integer)
    order_by_package: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class InventoryItemModel(Base):
    """Stock on hand, matched to products by name."""

    __tablename__ = "inventory_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    current_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0)
    reserved_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3), nullable=False, default=0
    )
    min_threshold: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=5)


class OrderModel(Base):
    """Customer order header."""

    __tablename__ = "orders"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False)

    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    tip_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    order_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    completed_time: Mapped[datetime | None] = mapped_column(DateTime)
    location: Mapped[str] = mapped_column(Text, nullable=False, default="Main Location")
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="card")
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")
    external_source: Mapped[str] = mapped_column(String(64), nullable=False, default="manual")

    __table_args__ = (
        UniqueConstraint(
            "business_id", "order_number", name="uq_orders_business_order_number"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OrderModel(order_number={self.order_number!r}, "
            f"status={self.status}, total={self.total})>"
        )


class OrderItemModel(Base):
    """Order line with a snapshot of the menu item at order time."""

    __tablename__ = "order_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    menu_item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    special_instructions: Mapped[str | None] = mapped_column(Text)


class ProductMappingModel(Base):
    """Remembered report product name -> menu item decision."""

    __tablename__ = "product_mappings"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    original_name: Mapped[str] = mapped_column(Text, nullable=False)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    menu_item_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("menu_items.id", ondelete="SET NULL")
    )
    confidence: Mapped[Decimal] = mapped_column(Numeric(4, 3), nullable=False, default=1)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "business_id",
            "original_name",
            "source_type",
            name="uq_product_mappings_business_name_source",
        ),
    )
