"""Unit tests for the interactive import session."""

from __future__ import annotations

import logging
import random

import pytest
import pytest_asyncio

from nomnom.config import get_config
from nomnom.gateway import ChangeEvent, ChangeFeed, GatewayError
from nomnom.importing.session import ImportSession, ImportSessionError
from nomnom.importing.types import ImportStatus
from nomnom.models import MenuItem, Order, SavedProductMapping


class FakeMenuGateway:
    def __init__(self, items: list[MenuItem]):
        self.items = list(items)
        self.created: list[MenuItem] = []

    async def get_all(self) -> list[MenuItem]:
        return list(self.items)

    async def create(self, item: MenuItem) -> MenuItem:
        self.items.append(item)
        self.created.append(item)
        return item


class FakeMappingStore:
    def __init__(self, saved: list[SavedProductMapping] | None = None, fail: bool = False):
        self.saved = saved or []
        self.fail = fail
        self.upserts: list[SavedProductMapping] = []
        self.requested_sources: list[str | None] = []

    async def get_all(self, source_type: str | None = None):
        self.requested_sources.append(source_type)
        return list(self.saved)

    async def upsert(self, mapping: SavedProductMapping) -> SavedProductMapping:
        if self.fail:
            raise GatewayError("mapping table unavailable")
        self.upserts.append(mapping)
        return mapping


class FakeOrderGateway:
    def __init__(self):
        self.created: list[Order] = []

    async def create(self, order: Order) -> Order:
        self.created.append(order)
        return order


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def store() -> FakeMappingStore:
    return FakeMappingStore()


@pytest_asyncio.fixture
async def session(catalog, store, sample_report_text) -> ImportSession:
    session = ImportSession(FakeMenuGateway(catalog), store)
    await session.load_catalog()
    session.parse(sample_report_text)
    session.match()
    return session


class TestMatchingStage:
    """Catalog loading, parsing and matching."""

    @pytest.mark.asyncio
    async def test_pipeline_up_to_matching(self, catalog, store, sample_report_text):
        session = ImportSession(FakeMenuGateway(catalog), store)

        assert len(await session.load_catalog()) == 5
        report = session.parse(sample_report_text)
        mappings = session.match(await session.load_saved_mappings())

        assert report.product_count == 5
        assert len(mappings) == 5
        assert store.requested_sources == ["payment_provider"]

    @pytest.mark.asyncio
    async def test_saved_mappings_empty_without_store(self, catalog):
        session = ImportSession(FakeMenuGateway(catalog))

        assert await session.load_saved_mappings() == []

    def test_match_requires_report(self, catalog):
        session = ImportSession(FakeMenuGateway(catalog))

        with pytest.raises(ImportSessionError):
            session.match()

    def test_settings_follow_config(self, catalog):
        session = ImportSession(FakeMenuGateway(catalog), config=get_config())

        assert session.settings.average_items_per_order == 2.5
        assert session.settings.order_distribution_hours == 8


class TestReview:
    """Manual overrides and new-item promotion."""

    @pytest.mark.asyncio
    async def test_manual_override_is_remembered(self, session, store, catalog):
        mapping = await session.set_manual_override(0, catalog[0])

        assert mapping.status == "manual"
        assert mapping.effective_item == catalog[0]
        assert len(store.upserts) == 1
        saved = store.upserts[0]
        assert saved.original_name == "קפה הפוך גדול"
        assert saved.menu_item_id == catalog[0].id
        assert saved.is_manual is True
        assert saved.confidence == 1.0

    @pytest.mark.asyncio
    async def test_override_cancels_create_new(self, session, catalog):
        mapping = await session.set_manual_override(4, catalog[1])

        assert mapping.should_create_new_item is False
        assert mapping.status == "manual"

    @pytest.mark.asyncio
    async def test_clearing_override_is_not_remembered(self, session, store, catalog):
        await session.set_manual_override(1, catalog[1])
        mapping = await session.set_manual_override(1, None)

        assert mapping.manual_override is None
        assert mapping.status == "auto"
        assert len(store.upserts) == 1

    @pytest.mark.asyncio
    async def test_storage_failure_is_logged_not_raised(
        self, catalog, sample_report_text, caplog
    ):
        session = ImportSession(FakeMenuGateway(catalog), FakeMappingStore(fail=True))
        await session.load_catalog()
        session.parse(sample_report_text)
        session.match()

        with caplog.at_level(logging.ERROR, logger="nomnom.importing.session"):
            mapping = await session.set_manual_override(0, catalog[0])

        assert mapping.manual_override == catalog[0]
        assert "Failed to save product mapping" in caplog.text

    @pytest.mark.asyncio
    async def test_promote_new_item(self, session, store):
        created = await session.promote_new_item(4)

        assert created.name == "מיץ תפוזים טבעי"
        assert created.category == "Beverages"
        assert created.price == 15.0
        assert created.prep_time == 5
        assert created in session.catalog
        mapping = session.mappings[4]
        assert mapping.mapped_menu_item == created
        assert mapping.confidence == 1.0
        assert mapping.status == "auto"
        assert mapping.new_item_data is not None
        assert store.upserts[-1].menu_item_id == created.id

    @pytest.mark.asyncio
    async def test_promote_without_draft_does_nothing(self, session):
        assert await session.promote_new_item(1) is None
        assert len(session.catalog) == 5


class TestCatalogFeed:
    """Live catalog updates."""

    @pytest.mark.asyncio
    async def test_insert_update_delete(self, catalog):
        session = ImportSession(FakeMenuGateway(catalog))
        await session.load_catalog()
        feed = ChangeFeed()
        session.watch_catalog(feed)

        added = MenuItem(name="Espresso", price=8.0)
        feed.publish(ChangeEvent("menu_items", "INSERT", added))
        renamed = catalog[0].model_copy(update={"price": 15.0})
        feed.publish(ChangeEvent("menu_items", "UPDATE", renamed))
        feed.publish(ChangeEvent("menu_items", "DELETE", {"id": catalog[4].id}))

        names = [item.name for item in session.catalog]
        assert names == ["הפוך גדול", "Iced Latte", "אמריקנו", "Chocolate Muffin", "Espresso"]
        assert session.catalog[0].price == 15.0

    def test_rewatch_replaces_subscription(self, catalog):
        session = ImportSession(FakeMenuGateway(catalog))
        feed = ChangeFeed()

        first = session.watch_catalog(feed)
        session.watch_catalog(feed)

        assert first.active is False
        assert feed.subscriber_count("menu_items") == 1

        session.close()
        assert feed.subscriber_count("menu_items") == 0


class TestOutcomes:
    """Processed sales, order generation and commit."""

    @pytest.mark.asyncio
    async def test_processed_sales(self, session):
        sales, summary = session.processed_sales()

        assert [s.product_name for s in sales] == ["הפוך גדול", "אמריקנו", "Chocolate Muffin"]
        assert sales[0].quantity == 10
        assert sales[0].unit_price == 14.0
        assert summary.total_revenue == 371.0
        assert summary.total_quantity == 30
        assert summary.business_name == "קפה הדרך"
        assert summary.date_range == "01/03/2024 - 01/03/2024"

    @pytest.mark.asyncio
    async def test_generate_and_commit(self, session):
        orders, debug = session.generate_orders(random.Random(4))
        gateway = FakeOrderGateway()

        result = await session.commit(gateway, sleep=_no_sleep)

        assert debug.pool_size == 19
        assert result.status == ImportStatus.SUCCESS
        assert result.committed_count == len(orders) == len(gateway.created)
        assert all(o.order_number.startswith("IMP-") for o in gateway.created)

    @pytest.mark.asyncio
    async def test_commit_requires_orders(self, session):
        with pytest.raises(ImportSessionError):
            await session.commit(FakeOrderGateway(), sleep=_no_sleep)

    def test_generate_requires_matching(self, catalog, sample_report_text):
        session = ImportSession(FakeMenuGateway(catalog))
        session.parse(sample_report_text)

        with pytest.raises(ImportSessionError):
            session.generate_orders()

    @pytest.mark.asyncio
    async def test_reset_keeps_catalog(self, session):
        session.generate_orders(random.Random(1))

        session.reset()

        assert session.report is None
        assert session.mappings == []
        assert session.orders == []
        assert session.debug is None
        assert len(session.catalog) == 5
