"""Integration tests for the sales report import workflow.

Tests:
1. Parse -> match -> review -> generate -> commit against SQLite repositories
2. Remembered mappings apply on the next import of the same report
3. Inventory shortfall stops the commit and leaves the order pending
"""

from __future__ import annotations

import random

import pytest
import pytest_asyncio

from nomnom.db.repositories import (
    MenuItemRepository,
    OrderRepository,
    ProductMappingRepository,
    ProductRepository,
)
from nomnom.gateway import ChangeFeed
from nomnom.importing.session import ImportSession
from nomnom.importing.types import ImportStatus
from nomnom.models import MenuItem, MenuItemIngredient, OrderStatus, Product


async def _no_sleep(seconds: float) -> None:
    return None


@pytest_asyncio.fixture
async def seeded(db_session, business_id, catalog):
    """Catalog stored through the repository, plus a shared change feed."""
    feed = ChangeFeed()
    menu = MenuItemRepository(db_session, business_id, feed)
    for item in catalog:
        await menu.create(item)
    return menu, feed


class TestImportPipeline:
    """Full workflow on in-memory SQLite."""

    @pytest.mark.asyncio
    async def test_review_generate_and_commit(
        self, db_session, business_id, seeded, sample_report_text
    ):
        menu, feed = seeded
        mappings_repo = ProductMappingRepository(db_session, business_id, feed)
        orders_repo = OrderRepository(db_session, business_id, feed)
        session = ImportSession(menu, mappings_repo)
        await session.load_catalog()
        session.watch_catalog(feed)

        session.parse(sample_report_text)
        session.match(await session.load_saved_mappings())
        await session.set_manual_override(0, session.catalog[0])
        created = await session.promote_new_item(4)

        assert [m.status for m in session.mappings] == ["manual", "auto", "auto", "auto", "auto"]
        assert [i.id for i in session.catalog].count(created.id) == 1

        orders, debug = session.generate_orders(random.Random(21))
        result = await session.commit(orders_repo, sleep=_no_sleep)

        assert debug.products_excluded == 0
        assert debug.pool_size == 30
        assert result.status == ImportStatus.SUCCESS
        stored = await orders_repo.get_all()
        assert len(stored) == len(orders) == result.committed_count
        assert sum(len(o.items) for o in stored) == debug.lines_generated
        assert all(o.external_source == "payment_provider_import" for o in stored)
        assert len({o.order_number for o in stored}) == len(stored)
        session.close()

    @pytest.mark.asyncio
    async def test_decisions_are_remembered_for_next_import(
        self, db_session, business_id, seeded, sample_report_text
    ):
        menu, _ = seeded
        mappings_repo = ProductMappingRepository(db_session, business_id)

        first = ImportSession(menu, mappings_repo)
        await first.load_catalog()
        first.parse(sample_report_text)
        first.match()
        target = first.catalog[1]
        await first.set_manual_override(0, target)

        second = ImportSession(menu, mappings_repo)
        await second.load_catalog()
        second.parse(sample_report_text)
        mappings = second.match(await second.load_saved_mappings())

        assert mappings[0].status == "manual"
        assert mappings[0].effective_item.id == target.id
        assert mappings[0].confidence == 1.0

    @pytest.mark.asyncio
    async def test_inventory_shortfall_stops_commit(
        self, db_session, business_id, seeded, sample_report_text
    ):
        menu, _ = seeded
        milk = await ProductRepository(db_session, business_id).create(
            Product(name="Milk", cost_per_unit=5.0, unit="l", category="Dairy")
        )
        await menu.create(
            MenuItem(
                name="הפוך",
                price=13.0,
                ingredients=[MenuItemIngredient(product_id=milk.id, quantity=0.2, unit="l")],
            )
        )
        orders_repo = OrderRepository(db_session, business_id)
        session = ImportSession(menu)
        await session.load_catalog()
        session.parse(sample_report_text)
        session.match()
        latte = next(item for item in session.catalog if item.name == "הפוך")
        for index in range(len(session.mappings)):
            await session.set_manual_override(index, latte)

        session.generate_orders(random.Random(2))
        result = await session.commit(orders_repo, sleep=_no_sleep)

        assert result.status == ImportStatus.FAILED
        assert result.error_kind == "inventory"
        assert result.failed_index == 0
        assert "Milk (need" in result.message
        stored = await orders_repo.get_all()
        assert len(stored) == 1
        assert stored[0].status == OrderStatus.PENDING
