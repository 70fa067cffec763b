"""Ingredient product CSV import/export.

Column names follow the camelCase headers of the ingredient spreadsheet
users already keep (`name, costPerUnit, unit, ...`).
"""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Iterable
from io import StringIO

import pandas as pd
from pydantic import ValidationError

from nomnom.models import Product

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = [
    "name",
    "costPerUnit",
    "unit",
    "supplier",
    "category",
    "isAvailable",
    "unitsPerPackage",
    "packageType",
    "minimumOrderQuantity",
    "orderByPackage",
]

REQUIRED_COLUMNS = ("name", "costPerUnit", "unit", "category")

TEMPLATE_ROWS = [
    {
        "name": "Ground Beef",
        "costPerUnit": 8.99,
        "unit": "lbs",
        "supplier": "",
        "category": "Meat",
        "isAvailable": True,
        "unitsPerPackage": 5,
        "packageType": "box",
        "minimumOrderQuantity": 5,
        "orderByPackage": True,
    },
    {
        "name": "Tomatoes",
        "costPerUnit": 2.5,
        "unit": "lbs",
        "supplier": "",
        "category": "Vegetables",
        "isAvailable": True,
        "unitsPerPackage": 10,
        "packageType": "crate",
        "minimumOrderQuantity": 1,
        "orderByPackage": False,
    },
]

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)")


def _cell(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _write_rows(rows: Iterable[dict]) -> str:
    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=PRODUCT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: _cell(row.get(column)) for column in PRODUCT_COLUMNS})
    return output.getvalue()


def export_products_csv(products: Iterable[Product]) -> str:
    """Render products as CSV text (header row included)."""
    return _write_rows(
        {
            "name": p.name,
            "costPerUnit": p.cost_per_unit,
            "unit": p.unit,
            "supplier": p.supplier,
            "category": p.category,
            "isAvailable": p.is_available,
            "unitsPerPackage": p.units_per_package or "",
            "packageType": p.package_type or "",
            "minimumOrderQuantity": p.minimum_order_quantity or "",
            "orderByPackage": p.order_by_package or False,
        }
        for p in products
    )


def products_template_csv() -> str:
    return _write_rows(TEMPLATE_ROWS)


def parse_leading_float(value: str) -> float | None:
    """Numeric prefix of `value` ("12.5kg" -> 12.5), None when there is none."""
    match = _LEADING_NUMBER.match(value)
    return float(match.group(0)) if match else None


def _optional_int(value: str) -> int | None:
    number = parse_leading_float(value) if value else None
    return int(number) if number is not None else None


def parse_products_csv(text: str, supplier: str = "") -> tuple[list[Product], list[str]]:
    """Parse an ingredient CSV into products.

    Args:
        text: CSV text with a header row
        supplier: Supplier assigned to every imported product (the file's
            supplier column is ignored)

    Returns:
        Tuple of (valid products, "Row <n>: ..." error messages)
    """
    df = pd.read_csv(StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    df = df.fillna("")

    products: list[Product] = []
    errors: list[str] = []

    for index, row in enumerate(df.to_dict(orient="records"), start=1):
        if any(not row.get(column) for column in REQUIRED_COLUMNS):
            errors.append(f"Row {index}: Missing required fields (name, costPerUnit, unit, category)")
            continue

        cost = parse_leading_float(row["costPerUnit"])
        if cost is None:
            errors.append(f"Row {index}: Invalid cost per unit")
            continue

        try:
            product = Product(
                name=row["name"].strip(),
                cost_per_unit=cost,
                unit=row["unit"].strip(),
                supplier=supplier,
                category=row["category"].strip(),
                is_available=row.get("isAvailable", "").lower() != "false",
                units_per_package=_optional_int(row.get("unitsPerPackage", "")),
                package_type=row.get("packageType", "").strip() or None,
                minimum_order_quantity=_optional_int(row.get("minimumOrderQuantity", "")),
                order_by_package=row.get("orderByPackage", "").lower() == "true",
            )
        except ValidationError as e:
            errors.append(f"Row {index}: {e.errors()[0]['msg']}")
            continue

        products.append(product)

    if errors:
        logger.warning(f"Ingredient import: {len(errors)} rows rejected")
    logger.info(f"Ingredient import: {len(products)} products parsed")
    return products, errors
