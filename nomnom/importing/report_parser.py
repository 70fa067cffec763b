"""Parser for payment-provider sales reports (Hebrew/English CSV exports).

The provider's export is a fixed template: a few metadata lines (business
name, business number, date range), a header row, one line per product and
a grand-total line. Parsing is best effort: malformed product lines are
skipped with a reason, and only two conditions are fatal (the file cannot
be read, or no header row exists).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pandas as pd

from nomnom.importing.types import ParseReport, ParsingDebug, SalesRecord, SkippedLine

logger = logging.getLogger(__name__)

HEADER_MARKERS = (
    "מוצרים / מחלקות",
    "Products",
    "מחיר מכירה ממוצע",
    "כמות שנמכרה",
)
TOTAL_MARKERS = ("סה״כ", "Total")
DATE_MARKER = "תאריך"

MIN_COLUMNS = 6
DEFAULT_TOTAL_TOLERANCE = 1.0

# LRM/RLM, embeddings/overrides, isolates
_DIRECTIONAL_MARKS = re.compile("[\u200e\u200f\u202a-\u202e\u2066-\u2069]")
_NON_NUMERIC = re.compile(r"[^0-9.\s]")
_WHITESPACE = re.compile(r"\s+")
_LEADING_FLOAT = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")


class ParseError(Exception):
    """Report cannot be parsed at all (unreadable, or no product header)."""


def parse_report_number(value: str | None) -> float:
    """Parse a currency/quantity cell, degrading to 0.0 on anything unusable.

    Every character except digits, dots and whitespace is dropped, the
    remaining whitespace is removed (so "1 234.50 ₪" reads as 1234.5) and the
    longest leading float is taken, the way parseFloat does.
    """
    if not value:
        return 0.0
    cleaned = _WHITESPACE.sub("", _NON_NUMERIC.sub("", value)).strip()
    match = _LEADING_FLOAT.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(0))


def clean_columns(line: str) -> list[str]:
    """Strip directional marks and quotes, then split a line on commas."""
    cleaned = _DIRECTIONAL_MARKS.sub("", line).replace('"', "")
    return [col.strip() for col in cleaned.split(",")]


def _field(lines: list[str], index: int, column: int) -> str:
    if index >= len(lines):
        return ""
    parts = lines[index].split(",")
    if column >= len(parts):
        return ""
    return parts[column].replace('"', "")


def _find_date_range(lines: list[str]) -> str:
    for i in (3, 4):
        if i < len(lines) and DATE_MARKER in lines[i]:
            return " - ".join(lines[i].split(",")[1:]).replace('"', "").strip()
    return ""


def _find_header(lines: list[str]) -> int:
    for index, line in enumerate(lines):
        if any(marker in line for marker in HEADER_MARKERS):
            return index
    return -1


def _is_total_line(line: str) -> bool:
    return any(marker in line for marker in TOTAL_MARKERS)


def _reject_reason(name: str, quantity: float, revenue: float) -> str:
    if not name:
        return "empty product name"
    if quantity <= 0:
        return "invalid quantity"
    if revenue <= 0:
        return "invalid revenue"
    return "unknown"


def parse_sales_report(
    text: str, total_tolerance: float = DEFAULT_TOTAL_TOLERANCE
) -> ParseReport:
    """Parse raw report text into a ParseReport.

    Args:
        text: Full CSV text of the export
        total_tolerance: Largest computed-vs-stated total difference that is
            still accepted as rounding noise

    Returns:
        ParseReport with records, totals and the parsing debug trace

    Raises:
        ParseError: If no product header row can be located
    """
    text = text.lstrip("\ufeff")
    lines = [line for line in text.split("\n") if line.strip()]

    business_name = _field(lines, 1, 1)
    business_number = _field(lines, 2, 1)
    date_range = _find_date_range(lines)

    header_index = _find_header(lines)
    if header_index == -1:
        raise ParseError("Could not find product data in CSV")

    logger.debug(
        f"Header at line {header_index}; {len(lines) - header_index - 1} lines to scan"
    )

    debug = ParsingDebug()
    records: list[SalesRecord] = []
    total_revenue = 0.0
    total_quantity = 0.0

    for index in range(header_index + 1, len(lines)):
        line = lines[index]

        if _is_total_line(line):
            total_columns = clean_columns(line)
            if len(total_columns) >= MIN_COLUMNS:
                stated = parse_report_number(total_columns[5])
                if stated > 0:
                    debug.stated_total = stated
                    if abs(total_revenue - stated) > total_tolerance:
                        logger.warning(
                            f"Report total {stated} differs from computed "
                            f"{total_revenue}; using report total"
                        )
                        debug.calculated_total = total_revenue
                        debug.reconciled = True
                        total_revenue = stated
            break

        columns = clean_columns(line)
        if len(columns) < MIN_COLUMNS:
            debug.skipped.append(
                SkippedLine(
                    line_index=index,
                    reason=f"insufficient columns ({len(columns)})",
                    content=line,
                    columns=tuple(columns),
                )
            )
            logger.debug(f"Line {index} skipped: insufficient columns ({len(columns)})")
            continue

        name = columns[0]
        average_price = parse_report_number(columns[1])
        discount = parse_report_number(columns[2])
        discount_amount = parse_report_number(columns[3])
        quantity = parse_report_number(columns[4])
        revenue = parse_report_number(columns[5])

        if name and quantity > 0 and revenue > 0:
            record = SalesRecord(
                product_name=name,
                average_price=average_price,
                discount=discount,
                discount_amount=discount_amount,
                quantity_sold=quantity,
                total_revenue=revenue,
            )
            records.append(record)
            debug.accepted.append(record)
            total_revenue += revenue
            total_quantity += quantity
            logger.debug(f"Line {index} accepted: {name!r} qty={quantity} revenue={revenue}")
        else:
            reason = _reject_reason(name, quantity, revenue)
            debug.skipped.append(
                SkippedLine(
                    line_index=index,
                    reason=reason,
                    content=line,
                    columns=tuple(columns),
                )
            )
            logger.debug(f"Line {index} skipped: {reason}")

    if not debug.reconciled:
        debug.calculated_total = total_revenue

    logger.info(
        f"Parsed {len(records)} products, skipped {len(debug.skipped)} lines, "
        f"total revenue {total_revenue:.2f}"
    )

    return ParseReport(
        business_name=business_name,
        business_number=business_number,
        date_range=date_range,
        records=records,
        total_revenue=total_revenue,
        total_quantity=total_quantity,
        debug=debug,
    )


def read_report_file(file_path: Path) -> str:
    """Read a report file as text.

    CSV files are read as UTF-8 (a BOM is tolerated). Excel workbooks are
    flattened to comma-delimited text from their first sheet so the same
    parser handles both.

    Raises:
        ParseError: If the file is missing, unreadable or of an unknown type
    """
    suffix = file_path.suffix.lower()
    try:
        if suffix in (".csv", ".txt"):
            return file_path.read_text(encoding="utf-8-sig")
        if suffix in (".xlsx", ".xls"):
            df = pd.read_excel(file_path, header=None, dtype=str)
            return df.fillna("").to_csv(index=False, header=False)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise ParseError(f"Failed to read {file_path.name}: {e}") from e

    raise ParseError(f"Unsupported file format: {file_path.suffix}")


def parse_report_file(
    file_path: Path, total_tolerance: float = DEFAULT_TOTAL_TOLERANCE
) -> ParseReport:
    """Convenience function: read and parse a report file."""
    return parse_sales_report(read_report_file(file_path), total_tolerance)
