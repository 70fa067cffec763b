"""Expands aggregate per-product sales into discrete historical orders.

Every unit sold becomes one entry in an item pool; the pool is shuffled and
dealt out sequentially into orders of roughly `average_items_per_order`
lines, each stamped with a synthetic time of day.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

from nomnom.importing.types import SalesRecord
from nomnom.matching.models import ProductMapping
from nomnom.models import MenuItem
from nomnom.synthesis.order_times import generate_order_times
from nomnom.synthesis.types import (
    ExcludedProduct,
    GeneratedOrder,
    GenerationDebug,
    GenerationSettings,
    OrderLine,
    customer_type,
)

logger = logging.getLogger(__name__)

MIN_PRICE_FRACTION = 0.1

REASON_NO_MAPPING = "No mapping found"
REASON_CREATING_NEW = "Creating new item (excluded from orders)"


@dataclass(frozen=True)
class PoolEntry:
    item: MenuItem
    record: SalesRecord


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def line_price(item: MenuItem, record: SalesRecord, apply_discounts: bool) -> float:
    """Catalog price less the record's per-unit discount share, floored at 10%."""
    base_price = item.price
    discount_share = (
        record.discount_amount / record.quantity_sold
        if apply_discounts and record.quantity_sold
        else 0.0
    )
    return max(base_price - discount_share, base_price * MIN_PRICE_FRACTION)


class OrderSynthesizer:
    """Generates plausible orders from finalized product mappings."""

    def __init__(self, rng: random.Random | None = None):
        """Initialize synthesizer.

        Args:
            rng: Random source; pass a seeded Random for reproducible output
        """
        self.rng = rng or random.Random()

    def build_pool(
        self,
        mappings: Sequence[ProductMapping],
        records: Sequence[SalesRecord],
        debug: GenerationDebug,
    ) -> list[PoolEntry]:
        """One pool entry per unit sold of every usable mapping."""
        pool: list[PoolEntry] = []
        for mapping, record in zip(mappings, records):
            item = mapping.effective_item
            if item is None or mapping.should_create_new_item:
                reason = REASON_NO_MAPPING if item is None else REASON_CREATING_NEW
                debug.excluded_products.append(
                    ExcludedProduct(
                        name=mapping.original_name,
                        quantity=record.quantity_sold,
                        reason=reason,
                    )
                )
                continue

            debug.products_with_mappings += 1
            debug.items_included_in_orders += record.quantity_sold
            pool.extend(
                PoolEntry(item=item, record=record)
                for _ in range(math.ceil(record.quantity_sold))
            )

        debug.products_excluded = len(debug.excluded_products)
        return pool

    def generate(
        self,
        mappings: Sequence[ProductMapping],
        records: Sequence[SalesRecord],
        settings: GenerationSettings,
    ) -> tuple[list[GeneratedOrder], GenerationDebug]:
        """Generate orders.

        Args:
            mappings: Reviewed mappings, index-aligned with records
            records: Parsed sales records
            settings: Generation settings

        Returns:
            Tuple of (orders sorted by time, generation debug info)

        Raises:
            ValueError: If mappings and records are not index-aligned
        """
        if len(mappings) != len(records):
            raise ValueError(
                f"mappings ({len(mappings)}) and records ({len(records)}) must align"
            )

        debug = GenerationDebug(
            total_products_parsed=len(mappings),
            total_items_in_report=sum(r.quantity_sold for r in records),
        )

        pool = self.build_pool(mappings, records, debug)
        self.rng.shuffle(pool)
        debug.pool_size = len(pool)

        order_count = math.ceil(
            debug.items_included_in_orders / settings.average_items_per_order
        )
        debug.estimated_order_count = order_count

        order_times = generate_order_times(
            order_count, settings.order_date, settings.order_distribution_hours, self.rng
        )

        orders: list[GeneratedOrder] = []
        cursor = 0
        for order_index in range(order_count):
            if cursor >= len(pool):
                break

            size = max(
                1,
                round_half_up(settings.average_items_per_order + (self.rng.random() - 0.5)),
            )
            lines: list[OrderLine] = []
            for entry in pool[cursor : cursor + size]:
                price = line_price(entry.item, entry.record, settings.apply_discounts)
                lines.append(
                    OrderLine(
                        menu_item_id=entry.item.id,
                        name=entry.item.name,
                        description=entry.item.description,
                        price=entry.item.price,
                        unit_price=price,
                        total_price=price,
                    )
                )
            cursor += len(lines)

            if lines:
                orders.append(
                    GeneratedOrder(
                        items=lines,
                        total=sum(line.total_price for line in lines),
                        order_time=order_times[order_index],
                        estimated_customer_type=customer_type(len(lines)),
                    )
                )

        debug.lines_generated = cursor
        logger.info(
            f"Generated {len(orders)} orders from {len(pool)} pooled units "
            f"({debug.products_excluded} products excluded, {len(pool) - cursor} units left over)"
        )
        return orders, debug


def generate_orders(
    mappings: Sequence[ProductMapping],
    records: Sequence[SalesRecord],
    settings: GenerationSettings,
    rng: random.Random | None = None,
) -> tuple[list[GeneratedOrder], GenerationDebug]:
    """Convenience function: generate orders with a fresh synthesizer."""
    return OrderSynthesizer(rng).generate(mappings, records, settings)
