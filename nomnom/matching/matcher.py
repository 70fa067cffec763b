"""Maps parsed report products onto existing menu items.

Per product: remembered manual decision first, otherwise heuristic
similarity against the whole catalog. High-confidence hits are accepted
automatically; products nothing resembles are drafted as new menu items.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from uuid import UUID

from nomnom.config import MatchingConfig, get_config
from nomnom.importing.types import SalesRecord
from nomnom.matching.models import NewItemData, ProductMapping, Suggestion
from nomnom.matching.similarity import calculate_similarity, infer_category
from nomnom.models import MenuItem, SavedProductMapping

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    return name.lower().strip()


def new_item_description(product_name: str) -> str:
    return f"Imported from sales data - {product_name}"


class ProductMatcher:
    """Heuristic product-name → menu-item matcher."""

    def __init__(self, config: MatchingConfig | None = None):
        """Initialize matcher with thresholds.

        Args:
            config: Matching thresholds (defaults to application config)
        """
        self.config = config or get_config().matching

    def rank(self, product_name: str, catalog: Sequence[MenuItem]) -> list[Suggestion]:
        """Score every catalog item and keep the best few above the floor.

        Returns:
            Up to max_suggestions Suggestions, sorted descending by score
        """
        normalized = normalize_name(product_name)
        scored = [
            Suggestion(item=item, score=calculate_similarity(normalized, item.name.lower()))
            for item in catalog
        ]
        kept = [s for s in scored if s.score > self.config.suggestion_min_score]
        kept.sort(key=lambda s: s.score, reverse=True)
        return kept[: self.config.max_suggestions]

    def match(
        self,
        record: SalesRecord,
        catalog: Sequence[MenuItem],
        saved: dict[str, UUID] | None = None,
    ) -> ProductMapping:
        """Build the mapping for a single parsed product.

        Args:
            record: Parsed sales record
            catalog: Current menu items
            saved: Remembered original_name -> menu item id decisions

        Returns:
            ProductMapping for the record
        """
        product_name = record.product_name

        if saved:
            saved_id = saved.get(product_name)
            saved_item = _find_item(catalog, saved_id) if saved_id else None
            if saved_item is not None:
                logger.debug(f"Saved mapping hit: {product_name!r} -> {saved_item.name!r}")
                return ProductMapping(
                    original_name=product_name,
                    confidence=1.0,
                    suggestions=[Suggestion(item=saved_item, score=1.0)],
                    mapped_menu_item=saved_item,
                    manual_override=saved_item,
                )

        suggestions = self.rank(product_name, catalog)
        confidence = suggestions[0].score if suggestions else 0.0

        mapped = (
            suggestions[0].item
            if suggestions and confidence > self.config.auto_accept_min_confidence
            else None
        )

        should_create = (
            confidence < self.config.create_new_max_confidence and not suggestions
        )
        new_item_data = None
        if should_create:
            new_item_data = NewItemData(
                name=product_name,
                price=record.average_price or 0.0,
                category=infer_category(product_name),
                description=new_item_description(product_name),
            )

        return ProductMapping(
            original_name=product_name,
            confidence=confidence,
            suggestions=suggestions,
            mapped_menu_item=mapped,
            should_create_new_item=should_create,
            new_item_data=new_item_data,
        )

    def match_all(
        self,
        records: Sequence[SalesRecord],
        catalog: Sequence[MenuItem],
        saved: Iterable[SavedProductMapping] | None = None,
    ) -> list[ProductMapping]:
        """Match every record, preserving order (mappings[i] belongs to records[i])."""
        saved_index = saved_mapping_index(saved or [])

        mappings = [self.match(record, catalog, saved_index) for record in records]

        auto = sum(1 for m in mappings if m.status in ("auto", "manual"))
        create = sum(1 for m in mappings if m.should_create_new_item)
        logger.info(
            f"Matched {len(mappings)} products: {auto} mapped, "
            f"{create} new-item candidates, {len(mappings) - auto - create} unmapped"
        )
        return mappings


def saved_mapping_index(saved: Iterable[SavedProductMapping]) -> dict[str, UUID]:
    """original_name -> menu_item_id for saved mappings that point somewhere."""
    return {m.original_name: m.menu_item_id for m in saved if m.menu_item_id}


def _find_item(catalog: Sequence[MenuItem], item_id: UUID) -> MenuItem | None:
    for item in catalog:
        if item.id == item_id:
            return item
    return None


def match_products(
    records: Sequence[SalesRecord],
    catalog: Sequence[MenuItem],
    saved: Iterable[SavedProductMapping] | None = None,
) -> list[ProductMapping]:
    """Convenience function: match records with the configured thresholds."""
    return ProductMatcher().match_all(records, catalog, saved)
