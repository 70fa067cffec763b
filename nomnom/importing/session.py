"""Human-in-the-loop state for one sales report import.

An ImportSession carries a report through parse -> match -> review ->
(processed sales | generated orders -> commit). Review operations mutate
the session's mappings in place; anything that touches storage is async.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError

from nomnom.config import AppConfig, get_config
from nomnom.gateway import (
    ChangeEvent,
    ChangeFeed,
    EntityGateway,
    GatewayError,
    MappingStore,
    Subscription,
)
from nomnom.importing.report_parser import parse_sales_report
from nomnom.importing.sales import ProcessedSale, SalesSummary, build_processed_sales
from nomnom.importing.types import ParseReport
from nomnom.matching.matcher import ProductMatcher
from nomnom.matching.models import ProductMapping
from nomnom.models import MenuItem, Order, SavedProductMapping
from nomnom.synthesis.commit import commit_orders
from nomnom.synthesis.synthesizer import OrderSynthesizer
from nomnom.synthesis.types import (
    CommitResult,
    GeneratedOrder,
    GenerationDebug,
    GenerationSettings,
)

logger = logging.getLogger(__name__)

CATALOG_ENTITY = "menu_items"
NEW_ITEM_PREP_TIME = 5


class ImportSessionError(RuntimeError):
    """Operation called before the stage it depends on has run."""


class ImportSession:
    """State of a single report import."""

    def __init__(
        self,
        menu_items: EntityGateway[MenuItem],
        saved_mappings: MappingStore | None = None,
        config: AppConfig | None = None,
        matcher: ProductMatcher | None = None,
    ):
        self.config = config or get_config()
        self.menu_items = menu_items
        self.saved_mappings = saved_mappings
        self.matcher = matcher or ProductMatcher(self.config.matching)

        synthesis = self.config.synthesis
        self.settings = GenerationSettings(
            average_items_per_order=synthesis.average_items_per_order,
            order_distribution_hours=synthesis.order_distribution_hours,
            apply_discounts=synthesis.apply_discounts,
        )

        self.catalog: list[MenuItem] = []
        self.report: ParseReport | None = None
        self.mappings: list[ProductMapping] = []
        self.orders: list[GeneratedOrder] = []
        self.debug: GenerationDebug | None = None
        self._subscription: Subscription | None = None

    # -- catalog -----------------------------------------------------------

    async def load_catalog(self) -> list[MenuItem]:
        self.catalog = list(await self.menu_items.get_all())
        logger.info(f"Loaded {len(self.catalog)} menu items")
        return self.catalog

    def watch_catalog(self, feed: ChangeFeed) -> Subscription:
        """Keep the session catalog current with menu item changes.

        Replaces any previous subscription of this session.
        """
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._subscription = feed.subscribe(CATALOG_ENTITY, self._on_catalog_change)
        return self._subscription

    def _on_catalog_change(self, event: ChangeEvent) -> None:
        if event.action == "DELETE":
            removed_id = event.payload["id"]
            self.catalog = [item for item in self.catalog if item.id != removed_id]
            return

        item: MenuItem = event.payload
        for position, existing in enumerate(self.catalog):
            if existing.id == item.id:
                self.catalog[position] = item
                return
        self.catalog.append(item)

    def close(self) -> None:
        """Release the catalog subscription, if any."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # -- parse & match -----------------------------------------------------

    def parse(self, text: str) -> ParseReport:
        self.report = parse_sales_report(text, self.config.parsing.total_tolerance)
        self.mappings = []
        self.orders = []
        self.debug = None
        return self.report

    async def load_saved_mappings(self) -> list[SavedProductMapping]:
        """Remembered decisions for this report source (empty without a store)."""
        if self.saved_mappings is None:
            return []
        return list(
            await self.saved_mappings.get_all(self.config.matching.mapping_source_type)
        )

    def match(self, saved: list[SavedProductMapping] | None = None) -> list[ProductMapping]:
        report = self._require_report()
        self.mappings = self.matcher.match_all(report.records, self.catalog, saved)
        return self.mappings

    # -- review ------------------------------------------------------------

    async def set_manual_override(self, index: int, item: MenuItem | None) -> ProductMapping:
        """Point a product at a menu item chosen by the user (None clears it).

        Picking an item always cancels the create-new-item suggestion and is
        remembered for future imports. Failing to remember it is logged only;
        the override still applies to this session.
        """
        mapping = self.mappings[index]
        mapping.manual_override = item
        mapping.should_create_new_item = False

        if item is not None:
            await self._remember(mapping.original_name, item)
        return mapping

    async def promote_new_item(self, index: int) -> MenuItem | None:
        """Create the drafted menu item for a product and map the product to it.

        Returns:
            The created MenuItem, or None when the product has no draft

        Raises:
            GatewayError: If the catalog gateway rejects the new item
        """
        mapping = self.mappings[index]
        draft = mapping.new_item_data
        if draft is None:
            return None

        created = await self.menu_items.create(
            MenuItem(
                name=draft.name,
                description=draft.description,
                price=draft.price,
                category=draft.category,
                is_available=True,
                prep_time=NEW_ITEM_PREP_TIME,
            )
        )
        if all(existing.id != created.id for existing in self.catalog):
            self.catalog.append(created)

        mapping.mapped_menu_item = created
        mapping.should_create_new_item = False
        mapping.confidence = 1.0
        logger.info(f"Created menu item {created.name!r} for report product")

        await self._remember(mapping.original_name, created)
        return created

    async def _remember(self, original_name: str, item: MenuItem) -> None:
        if self.saved_mappings is None:
            return
        try:
            await self.saved_mappings.upsert(
                SavedProductMapping(
                    original_name=original_name,
                    source_type=self.config.matching.mapping_source_type,
                    menu_item_id=item.id,
                    confidence=1.0,
                    is_manual=True,
                )
            )
        except (GatewayError, SQLAlchemyError) as e:
            logger.error(f"Failed to save product mapping for {original_name!r}: {e}")

    # -- outcomes ----------------------------------------------------------

    def processed_sales(self) -> tuple[list[ProcessedSale], SalesSummary]:
        return build_processed_sales(self.mappings, self._require_report())

    def generate_orders(
        self, rng: random.Random | None = None
    ) -> tuple[list[GeneratedOrder], GenerationDebug]:
        report = self._require_report()
        if len(self.mappings) != len(report.records):
            raise ImportSessionError("Products must be matched before generating orders")

        self.orders, self.debug = OrderSynthesizer(rng).generate(
            self.mappings, report.records, self.settings
        )
        return self.orders, self.debug

    async def commit(
        self,
        orders: EntityGateway[Order],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> CommitResult:
        if not self.orders:
            raise ImportSessionError("No generated orders to commit")
        return await commit_orders(orders, self.orders, self.config.commit, sleep=sleep)

    def reset(self) -> None:
        """Forget the report and everything derived from it (the catalog stays)."""
        self.report = None
        self.mappings = []
        self.orders = []
        self.debug = None

    def _require_report(self) -> ParseReport:
        if self.report is None:
            raise ImportSessionError("No report has been parsed")
        return self.report
