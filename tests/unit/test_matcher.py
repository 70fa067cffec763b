"""Unit tests for ProductMatcher."""

from __future__ import annotations

from uuid import uuid4

import pytest

from nomnom.config import MatchingConfig
from nomnom.importing.report_parser import parse_sales_report
from nomnom.importing.types import SalesRecord
from nomnom.matching.matcher import ProductMatcher, match_products, saved_mapping_index
from nomnom.models import SavedProductMapping


def _record(name: str, price: float = 10.0, quantity: float = 1.0) -> SalesRecord:
    return SalesRecord(
        product_name=name,
        average_price=price,
        discount=0.0,
        discount_amount=0.0,
        quantity_sold=quantity,
        total_revenue=price * quantity,
    )


@pytest.fixture
def matcher() -> ProductMatcher:
    return ProductMatcher(MatchingConfig())


class TestRank:
    """Suggestion ranking."""

    def test_keeps_scores_above_floor_sorted(self, matcher, catalog):
        suggestions = matcher.rank("קפה הפוך גדול", catalog)

        assert [s.item.name for s in suggestions] == ["הפוך גדול", "Iced Latte"]
        assert all(s.score == pytest.approx(2 / 3) for s in suggestions)

    def test_limits_to_max_suggestions(self, catalog):
        matcher = ProductMatcher(MatchingConfig(max_suggestions=1))

        assert len(matcher.rank("קפה הפוך גדול", catalog)) == 1

    def test_name_is_normalized(self, matcher, catalog):
        suggestions = matcher.rank("  CHOCOLATE Muffin ", catalog)

        assert suggestions[0].item.name == "Chocolate Muffin"
        assert suggestions[0].score == 1.0


class TestMatch:
    """Single-product mapping decisions."""

    def test_high_confidence_is_auto_mapped(self, matcher, catalog):
        mapping = matcher.match(_record("אמריקנו"), catalog)

        assert mapping.confidence == 1.0
        assert mapping.mapped_menu_item.name == "אמריקנו"
        assert mapping.status == "auto"
        assert not mapping.should_create_new_item

    def test_ties_keep_catalog_order(self, matcher, catalog):
        mapping = matcher.match(_record("הפוך גדול"), catalog)

        assert mapping.mapped_menu_item.name == "הפוך גדול"
        assert [s.item.name for s in mapping.suggestions] == ["הפוך גדול", "Iced Latte"]

    def test_medium_confidence_needs_review(self, matcher, catalog):
        mapping = matcher.match(_record("קפה הפוך גדול"), catalog)

        assert mapping.confidence == pytest.approx(2 / 3)
        assert mapping.mapped_menu_item is None
        assert not mapping.should_create_new_item
        assert mapping.status == "unmapped"

    def test_keyword_bonus_produces_suggestion(self, matcher, catalog):
        mapping = matcher.match(_record("הפוך קר"), catalog)

        names = [s.item.name for s in mapping.suggestions]
        assert "Iced Latte" in names

    def test_no_suggestions_drafts_new_item(self, matcher, catalog):
        mapping = matcher.match(_record("מיץ תפוזים טבעי", price=15.0), catalog)

        assert mapping.suggestions == []
        assert mapping.confidence == 0.0
        assert mapping.should_create_new_item
        assert mapping.status == "create-new"
        draft = mapping.new_item_data
        assert draft.name == "מיץ תפוזים טבעי"
        assert draft.price == 15.0
        assert draft.category == "Beverages"
        assert draft.description == "Imported from sales data - מיץ תפוזים טבעי"

    def test_empty_catalog(self, matcher):
        mapping = matcher.match(_record("Espresso"), [])

        assert mapping.should_create_new_item
        assert mapping.new_item_data.category == "Coffee"

    def test_saved_mapping_short_circuits(self, matcher, catalog):
        target = catalog[1]
        mapping = matcher.match(_record("קפה הפוך גדול"), catalog, {"קפה הפוך גדול": target.id})

        assert mapping.confidence == 1.0
        assert [s.item for s in mapping.suggestions] == [target]
        assert mapping.mapped_menu_item == target
        assert mapping.manual_override == target
        assert mapping.status == "manual"

    def test_saved_mapping_to_deleted_item_is_ignored(self, matcher, catalog):
        mapping = matcher.match(_record("אמריקנו"), catalog, {"אמריקנו": uuid4()})

        assert mapping.manual_override is None
        assert mapping.mapped_menu_item.name == "אמריקנו"


class TestMatchAll:
    """Whole-report matching."""

    def test_one_mapping_per_record_in_order(self, matcher, catalog, sample_report_text):
        report = parse_sales_report(sample_report_text)

        mappings = matcher.match_all(report.records, catalog)

        assert [m.original_name for m in mappings] == [r.product_name for r in report.records]
        assert [m.status for m in mappings] == [
            "unmapped",
            "auto",
            "auto",
            "auto",
            "create-new",
        ]

    def test_duplicate_names_get_separate_mappings(self, matcher, catalog):
        mappings = matcher.match_all([_record("אמריקנו"), _record("אמריקנו")], catalog)

        assert len(mappings) == 2
        assert mappings[0] is not mappings[1]

    def test_saved_mappings_are_applied(self, matcher, catalog):
        saved = [
            SavedProductMapping(original_name="קפה הפוך גדול", menu_item_id=catalog[0].id),
        ]

        mappings = matcher.match_all([_record("קפה הפוך גדול")], catalog, saved)

        assert mappings[0].effective_item == catalog[0]

    def test_convenience_function_uses_configured_thresholds(self, catalog):
        mappings = match_products([_record("אמריקנו")], catalog)

        assert mappings[0].status == "auto"


def test_saved_mapping_index_skips_empty_targets():
    target = uuid4()
    saved = [
        SavedProductMapping(original_name="a", menu_item_id=target),
        SavedProductMapping(original_name="b", menu_item_id=None),
    ]

    assert saved_mapping_index(saved) == {"a": target}
