"""Sales-import outcome: mapped per-product sales without generated orders."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from nomnom.importing.types import ParseReport
from nomnom.matching.models import ProductMapping
from nomnom.models import MenuItem


@dataclass(frozen=True)
class ProcessedSale:
    """One report product resolved to a menu item."""

    product_name: str
    menu_item: MenuItem
    quantity: float
    unit_price: float
    total_revenue: float


@dataclass(frozen=True)
class SalesSummary:
    total_revenue: float
    total_quantity: float
    date_range: str
    business_name: str


def build_processed_sales(
    mappings: Sequence[ProductMapping], report: ParseReport
) -> tuple[list[ProcessedSale], SalesSummary]:
    """Pair each mapped record with its menu item.

    Records whose mapping has no effective item are left out; the summary
    always reflects the whole report.
    """
    sales = [
        ProcessedSale(
            product_name=record.product_name,
            menu_item=mapping.effective_item,
            quantity=record.quantity_sold,
            unit_price=record.average_price,
            total_revenue=record.total_revenue,
        )
        for mapping, record in zip(mappings, report.records)
        if mapping.effective_item is not None
    ]
    summary = SalesSummary(
        total_revenue=report.total_revenue,
        total_quantity=report.total_quantity,
        date_range=report.date_range,
        business_name=report.business_name,
    )
    return sales, summary
