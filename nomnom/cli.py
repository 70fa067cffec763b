"""NomNom back-office CLI.

Commands:
- init: Initialize database schema
- parse: Parse a payment-provider sales report and show what was read
- match: Match report products against the menu
- import-sales: Show mapped per-product sales for a report
- import-orders: Generate historical orders from a report and store them
- ingredients export|template|import: Ingredient product CSV utilities
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from nomnom.config import get_config
from nomnom.core.logging import configure_logging
from nomnom.db.connection import close_db, get_session, init_db
from nomnom.db.repositories import (
    MenuItemRepository,
    OrderRepository,
    ProductMappingRepository,
    ProductRepository,
)
from nomnom.export.products_csv import (
    export_products_csv,
    parse_products_csv,
    products_template_csv,
)
from nomnom.gateway import ChangeFeed, GatewayError
from nomnom.importing.report_parser import ParseError, parse_sales_report, read_report_file
from nomnom.importing.session import ImportSession
from nomnom.importing.types import ImportStatus, ParseReport
from nomnom.matching.models import ProductMapping

app = typer.Typer(
    name="nomnom",
    help="NomNom back-office - sales report reconciliation",
    no_args_is_help=True,
)
ingredients_cli = typer.Typer(help="Ingredient product CSV tools")
app.add_typer(ingredients_cli, name="ingredients")

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """NomNom back-office tools."""
    configure_logging(level="DEBUG" if verbose else None)


def _read_report(file_path: Path) -> str:
    try:
        return read_report_file(file_path)
    except ParseError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e


def _parse(session: ImportSession, text: str) -> ParseReport:
    try:
        return session.parse(text)
    except ParseError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e


def _print_report_header(report: ParseReport) -> None:
    currency = get_config().currency
    console.print(f"[bold]{report.business_name}[/bold] {report.business_number}")
    if report.date_range:
        console.print(f"Period: {report.date_range}")
    console.print(
        f"Products: {report.product_count}  Units: {report.total_quantity:g}  "
        f"Revenue: {report.total_revenue:,.2f} {currency}"
    )
    if report.debug and report.debug.reconciled:
        console.print(
            f"[yellow]⚠ Report total {report.debug.stated_total:,.2f} used instead of "
            f"computed {report.debug.calculated_total:,.2f}[/yellow]"
        )


def _mapping_table(mappings: list[ProductMapping]) -> Table:
    table = Table(title="Product Mappings")
    table.add_column("#", justify="right")
    table.add_column("Product", style="cyan")
    table.add_column("Status")
    table.add_column("Confidence", justify="right")
    table.add_column("Menu Item", style="green")
    table.add_column("Suggestions", style="dim")

    styles = {"manual": "blue", "auto": "green", "create-new": "yellow", "unmapped": "red"}
    for index, mapping in enumerate(mappings):
        item = mapping.effective_item
        table.add_row(
            str(index),
            mapping.original_name,
            f"[{styles[mapping.status]}]{mapping.status}[/{styles[mapping.status]}]",
            f"{mapping.confidence:.0%}",
            item.name if item else "-",
            ", ".join(f"{s.item.name} ({s.score:.0%})" for s in mapping.suggestions) or "-",
        )
    return table


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        try:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def parse(
    file_path: Path = typer.Argument(..., help="Sales report (CSV/XLS/XLSX)"),
    show_skipped: bool = typer.Option(False, "--show-skipped", help="List rejected lines"),
):
    """Parse a sales report and show the accepted products."""
    text = _read_report(file_path)
    try:
        report = parse_sales_report(text, get_config().parsing.total_tolerance)
    except ParseError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    _print_report_header(report)

    table = Table(title="Products")
    table.add_column("Product", style="cyan")
    table.add_column("Avg Price", justify="right")
    table.add_column("Discount", justify="right")
    table.add_column("Qty", justify="right")
    table.add_column("Revenue", justify="right", style="green")
    for record in report.records:
        table.add_row(
            record.product_name,
            f"{record.average_price:,.2f}",
            f"{record.discount_amount:,.2f}",
            f"{record.quantity_sold:g}",
            f"{record.total_revenue:,.2f}",
        )
    console.print(table)

    skipped = report.debug.skipped if report.debug else []
    if skipped:
        console.print(f"[yellow]⚠[/yellow] {len(skipped)} lines skipped")
        if show_skipped:
            for line in skipped:
                console.print(f"  line {line.line_index}: {line.reason}  {line.content}", style="dim")


@app.command()
def match(
    file_path: Path = typer.Argument(..., help="Sales report (CSV/XLS/XLSX)"),
):
    """Match report products against the menu."""
    config = get_config()
    text = _read_report(file_path)

    async def _match():
        try:
            async with get_session() as db:
                session = ImportSession(
                    MenuItemRepository(db, config.business_id),
                    ProductMappingRepository(db, config.business_id),
                    config=config,
                )
                report = _parse(session, text)
                _print_report_header(report)
                await session.load_catalog()
                mappings = session.match(await session.load_saved_mappings())
                console.print(_mapping_table(mappings))
        finally:
            await close_db()

    asyncio.run(_match())


@app.command(name="import-sales")
def import_sales(
    file_path: Path = typer.Argument(..., help="Sales report (CSV/XLS/XLSX)"),
):
    """Show mapped per-product sales for a report."""
    config = get_config()
    text = _read_report(file_path)

    async def _import():
        try:
            async with get_session() as db:
                session = ImportSession(
                    MenuItemRepository(db, config.business_id),
                    ProductMappingRepository(db, config.business_id),
                    config=config,
                )
                _parse(session, text)
                await session.load_catalog()
                session.match(await session.load_saved_mappings())
                sales, summary = session.processed_sales()
        finally:
            await close_db()

        table = Table(title=f"Sales - {summary.business_name} {summary.date_range}")
        table.add_column("Product", style="cyan")
        table.add_column("Menu Item", style="green")
        table.add_column("Qty", justify="right")
        table.add_column("Unit Price", justify="right")
        table.add_column("Revenue", justify="right")
        for sale in sales:
            table.add_row(
                sale.product_name,
                sale.menu_item.name,
                f"{sale.quantity:g}",
                f"{sale.unit_price:,.2f}",
                f"{sale.total_revenue:,.2f}",
            )
        console.print(table)
        console.print("\n[bold]Summary:[/bold]")
        console.print(f"  Mapped products: {len(sales)}/{len(session.mappings)}")
        console.print(f"  Total units: {summary.total_quantity:g}")
        console.print(f"  Total revenue: {summary.total_revenue:,.2f} {config.currency}")

    asyncio.run(_import())


@app.command(name="import-orders")
def import_orders(
    file_path: Path = typer.Argument(..., help="Sales report (CSV/XLS/XLSX)"),
    order_date: datetime | None = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Business day of the orders (default: today)"
    ),
    avg_items: float | None = typer.Option(
        None, "--avg-items", min=0.1, help="Average items per order"
    ),
    hours: int | None = typer.Option(None, "--hours", min=1, help="Hours the orders are spread over"),
    no_discounts: bool = typer.Option(False, "--no-discounts", help="Ignore report discounts"),
    create_missing: bool = typer.Option(
        False, "--create-missing", help="Create menu items for unmatched products"
    ),
    seed: int | None = typer.Option(None, "--seed", help="Random seed for reproducible output"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Generate but do not store orders"),
):
    """Generate historical orders from a sales report and store them."""
    config = get_config()
    text = _read_report(file_path)

    async def _import() -> bool:
        feed = ChangeFeed()
        try:
            async with get_session() as db:
                session = ImportSession(
                    MenuItemRepository(db, config.business_id, feed),
                    ProductMappingRepository(db, config.business_id, feed),
                    config=config,
                )
                session.watch_catalog(feed)
                try:
                    report = _parse(session, text)
                    _print_report_header(report)
                    await session.load_catalog()
                    mappings = session.match(await session.load_saved_mappings())

                    if create_missing:
                        for index, mapping in enumerate(mappings):
                            if mapping.should_create_new_item:
                                created = await session.promote_new_item(index)
                                if created:
                                    console.print(f"  [green]+[/green] Created menu item: {created.name}")

                    console.print(_mapping_table(mappings))

                    overrides = {
                        "order_date": order_date.date() if order_date else date.today(),
                        "apply_discounts": session.settings.apply_discounts and not no_discounts,
                    }
                    if avg_items is not None:
                        overrides["average_items_per_order"] = avg_items
                    if hours is not None:
                        overrides["order_distribution_hours"] = hours
                    session.settings = replace(session.settings, **overrides)

                    rng = random.Random(seed) if seed is not None else None
                    orders, debug = session.generate_orders(rng)

                    console.print("\n[bold]Generation:[/bold]")
                    console.print(f"  Products with mappings: {debug.products_with_mappings}/{debug.total_products_parsed}")
                    console.print(f"  Units included: {debug.items_included_in_orders:g}/{debug.total_items_in_report:g}")
                    console.print(f"  Orders generated: {len(orders)}")
                    for excluded in debug.excluded_products:
                        console.print(f"  [yellow]⚠[/yellow] {excluded.name} ({excluded.quantity:g}): {excluded.reason}")

                    if dry_run or not orders:
                        console.print("[yellow]No orders stored[/yellow]")
                        return True

                    result = await session.commit(OrderRepository(db, config.business_id, feed))
                finally:
                    session.close()
        except GatewayError as e:
            console.print(f"[red]✗ {e}[/red]")
            return False
        finally:
            await close_db()

        if result.status == ImportStatus.SUCCESS:
            console.print(f"[bold green]✓[/bold green] {result.message}")
            return True

        console.print(f"[red]✗ {result.message}[/red]")
        console.print(
            f"  Committed {result.committed_count}/{result.total_orders} orders before stopping"
        )
        return False

    if not asyncio.run(_import()):
        raise typer.Exit(code=1)


@ingredients_cli.command("export")
def ingredients_export(
    output: Path | None = typer.Option(None, "--output", "-o", help="Output CSV path"),
):
    """Export ingredient products to CSV."""
    config = get_config()
    output = output or Path(f"ingredients-{date.today().isoformat()}.csv")

    async def _export():
        try:
            async with get_session() as db:
                products = await ProductRepository(db, config.business_id).get_all()
        finally:
            await close_db()
        output.write_text(export_products_csv(products), encoding="utf-8")
        console.print(f"[green]✓[/green] Exported {len(products)} products to {output}")

    asyncio.run(_export())


@ingredients_cli.command("template")
def ingredients_template(
    output: Path = typer.Option(
        Path("ingredients-template.csv"), "--output", "-o", help="Output CSV path"
    ),
):
    """Write an example ingredient CSV."""
    output.write_text(products_template_csv(), encoding="utf-8")
    console.print(f"[green]✓[/green] Template saved to {output}")


@ingredients_cli.command("import")
def ingredients_import(
    file_path: Path = typer.Argument(..., help="Ingredient CSV"),
    supplier: str = typer.Option(..., "--supplier", help="Supplier assigned to every product"),
):
    """Import ingredient products from CSV."""
    config = get_config()
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(code=1)

    products, errors = parse_products_csv(file_path.read_text(encoding="utf-8-sig"), supplier)
    for err in errors[:10]:
        console.print(f"  {err}", style="dim")
    if errors:
        console.print(f"[yellow]⚠[/yellow] {len(errors)} rows rejected")

    async def _import():
        try:
            async with get_session() as db:
                repo = ProductRepository(db, config.business_id)
                for product in products:
                    await repo.create(product)
        finally:
            await close_db()

    asyncio.run(_import())
    console.print(f"[bold green]✓[/bold green] Imported {len(products)} products")


if __name__ == "__main__":
    app()
