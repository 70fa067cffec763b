"""Type definitions for the sales-report import stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ImportStatus(str, Enum):
    """Status of an import/commit operation."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class SalesRecord:
    """One accepted product row of a payment-provider sales report."""

    product_name: str
    average_price: float
    discount: float
    discount_amount: float
    quantity_sold: float
    total_revenue: float


@dataclass(frozen=True)
class SkippedLine:
    """Data line the parser rejected, kept for diagnostics."""

    line_index: int
    reason: str
    content: str
    columns: tuple[str, ...] = ()


@dataclass
class ParsingDebug:
    """Trace of a parse run: what was accepted, what was dropped and why."""

    accepted: list[SalesRecord] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)
    calculated_total: float = 0.0
    stated_total: Optional[float] = None
    reconciled: bool = False

    @property
    def discrepancy(self) -> float:
        """Report-stated total minus computed total (0 when none was stated)."""
        if self.stated_total is None:
            return 0.0
        return self.stated_total - self.calculated_total


@dataclass
class ParseReport:
    """Normalized result of parsing one sales report."""

    business_name: str
    business_number: str
    date_range: str
    records: list[SalesRecord] = field(default_factory=list)
    total_revenue: float = 0.0
    total_quantity: float = 0.0
    debug: Optional[ParsingDebug] = None

    @property
    def product_count(self) -> int:
        return len(self.records)
