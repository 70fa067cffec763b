"""Type definitions for synthetic order generation and commit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from nomnom.importing.types import ImportStatus
from nomnom.models import Order

QUICK_CUSTOMER = "Quick Customer"
REGULAR_CUSTOMER = "Regular Customer"
FAMILY_GROUP = "Family/Group"


def customer_type(line_count: int) -> str:
    """Label an order by how many lines it has."""
    if line_count == 1:
        return QUICK_CUSTOMER
    if line_count >= 3:
        return FAMILY_GROUP
    return REGULAR_CUSTOMER


@dataclass
class GenerationSettings:
    """Knobs for turning aggregate sales into discrete orders."""

    average_items_per_order: float = 2.5
    order_distribution_hours: int = 8
    apply_discounts: bool = True
    order_date: date = field(default_factory=date.today)

    def __post_init__(self):
        if self.average_items_per_order <= 0:
            raise ValueError("average_items_per_order must be positive")
        if self.order_distribution_hours <= 0:
            raise ValueError("order_distribution_hours must be positive")


@dataclass(frozen=True)
class OrderLine:
    """One unit of a menu item on a generated order."""

    menu_item_id: UUID
    name: str
    description: str
    price: float  # catalog price snapshot
    unit_price: float  # after discount share
    total_price: float
    quantity: int = 1


@dataclass
class GeneratedOrder:
    items: list[OrderLine]
    total: float
    order_time: datetime
    estimated_customer_type: str


@dataclass(frozen=True)
class ExcludedProduct:
    name: str
    quantity: float
    reason: str


@dataclass
class GenerationDebug:
    """Bookkeeping of what went into the item pool and what did not."""

    total_products_parsed: int = 0
    products_with_mappings: int = 0
    products_excluded: int = 0
    excluded_products: list[ExcludedProduct] = field(default_factory=list)
    total_items_in_report: float = 0.0
    items_included_in_orders: float = 0.0
    estimated_order_count: int = 0
    pool_size: int = 0
    lines_generated: int = 0


@dataclass
class CommitResult:
    """Outcome of submitting generated orders to the order gateway."""

    status: ImportStatus
    committed: list[Order] = field(default_factory=list)
    total_orders: int = 0
    failed_index: Optional[int] = None
    error_kind: Optional[str] = None  # "duplicate", "inventory", "error"
    message: str = ""
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == ImportStatus.SUCCESS

    @property
    def committed_count(self) -> int:
        return len(self.committed)
