"""NomNom Pydantic models for the persisted back-office entities.

These are the shapes the persistence gateway hands out and accepts.
Pipeline-internal values (parsed rows, mappings, generated orders) live
in the dataclass modules of their own stage.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Lifecycle states of a customer order."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class MenuItemIngredient(BaseModel):
    """Recipe line: how much of a product one menu item consumes."""

    product_id: UUID
    quantity: float
    unit: str | None = None


class MenuItem(BaseModel):
    """Sellable catalog item (the matcher's CatalogItem)."""

    id: UUID = Field(default_factory=uuid4)
    business_id: str | None = None
    name: str
    description: str = ""
    price: float
    category: str = "Other"
    is_available: bool = True
    prep_time: int = 5  # minutes
    allergens: list[str] = Field(default_factory=list)
    ingredients: list[MenuItemIngredient] = Field(default_factory=list)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("price must be non-negative")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "הפוך גדול",
                "description": "Large cappuccino",
                "price": 14.0,
                "category": "Coffee",
                "is_available": True,
                "prep_time": 3,
            }
        }
    )


class Product(BaseModel):
    """Ingredient / supply product bought from a supplier."""

    id: UUID = Field(default_factory=uuid4)
    business_id: str | None = None
    name: str
    cost_per_unit: float
    unit: str  # "lbs", "oz", "pieces", ...
    supplier: str = ""
    category: str
    is_available: bool = True
    last_updated: datetime | None = None

    # Packaging
    units_per_package: int | None = None
    package_type: str | None = None  # "box", "case", "crate"
    minimum_order_quantity: int | None = None
    order_by_package: bool = False

    @field_validator("cost_per_unit")
    @classmethod
    def validate_cost(cls, v: float) -> float:
        if v < 0:
            raise ValueError("cost_per_unit must be non-negative")
        return v


class OrderItem(BaseModel):
    """Order line with a display snapshot of the menu item."""

    menu_item_id: UUID
    name: str
    description: str = ""
    price: float
    quantity: int = 1
    unit_price: float
    total_price: float
    special_instructions: str | None = None


class Order(BaseModel):
    """Customer order as stored by the order gateway."""

    id: UUID = Field(default_factory=uuid4)
    business_id: str | None = None
    order_number: str
    items: list[OrderItem] = Field(default_factory=list)
    total: float
    subtotal: float
    tax_amount: float = 0.0
    tip_amount: float = 0.0
    discount_amount: float = 0.0
    status: OrderStatus = OrderStatus.PENDING
    order_time: datetime
    completed_time: datetime | None = None
    location: str = "Main Location"
    payment_method: Literal["cash", "card", "mobile", "online", "other"] = "card"
    payment_status: Literal["pending", "completed", "failed", "refunded"] = "completed"
    external_source: str = "manual"


class SavedProductMapping(BaseModel):
    """Remembered decision: report product name -> menu item."""

    id: UUID = Field(default_factory=uuid4)
    business_id: str | None = None
    original_name: str
    source_type: str = "payment_provider"
    menu_item_id: UUID | None = None
    confidence: float = 1.0
    is_manual: bool = True
    last_used_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("confidence must be between 0 and 1")
        return v


class InventoryItem(BaseModel):
    """Stock on hand for one ingredient, matched to products by name."""

    id: UUID = Field(default_factory=uuid4)
    business_id: str | None = None
    name: str
    unit: str = ""
    current_stock: float = 0.0
    reserved_quantity: float = 0.0
    min_threshold: float = 5.0

    @property
    def available(self) -> float:
        return self.current_stock - self.reserved_quantity
