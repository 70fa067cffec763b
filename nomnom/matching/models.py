"""Data models for product matching."""

from __future__ import annotations

from dataclasses import dataclass, field

from nomnom.models import MenuItem


@dataclass
class Suggestion:
    """Catalog item proposed for a report product, with its similarity score."""

    item: MenuItem
    score: float


@dataclass
class NewItemData:
    """Draft menu item for a product nothing in the catalog resembles."""

    name: str
    price: float
    category: str
    description: str


@dataclass
class ProductMapping:
    """Matching outcome for one parsed report product.

    A manual override always wins over the automatic mapping.
    """

    original_name: str
    confidence: float = 0.0
    suggestions: list[Suggestion] = field(default_factory=list)
    mapped_menu_item: MenuItem | None = None
    manual_override: MenuItem | None = None
    should_create_new_item: bool = False
    new_item_data: NewItemData | None = None

    @property
    def effective_item(self) -> MenuItem | None:
        return self.manual_override or self.mapped_menu_item

    @property
    def is_mapped(self) -> bool:
        return self.effective_item is not None

    @property
    def status(self) -> str:
        if self.manual_override is not None:
            return "manual"
        if self.mapped_menu_item is not None:
            return "auto"
        if self.should_create_new_item:
            return "create-new"
        return "unmapped"
