"""
CLI interface for Relay Metering.

Thin operator commands over the pricing catalog store and cost calculator.
"""

import sys
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import structlog
import typer
import yaml
from rich.console import Console
from rich.table import Table

from relay_metering.config.loader import MeteringConfig, apply_env_overrides, load_metering_config
from relay_metering.config.logging_config import configure_logging
from relay_metering.core.cost import apply_multiplier, compute_unscaled, format_cost
from relay_metering.core.errors import MeteringError
from relay_metering.core.multiplier import parse_multiplier, resolve_multiplier
from relay_metering.core.pricing import PriceQuote, PricingCatalog
from relay_metering.core.usage import UsageVector
from relay_metering.storage.catalog_store import CatalogStore

app = typer.Typer()
console = Console()
logger = structlog.get_logger()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

# Models shown in the before/after summary of an adjustment
SAMPLE_MODELS = (
    "claude-sonnet-4-5-20250929",
    "claude-3-5-sonnet-20241022",
    "claude-3-5-haiku-20241022",
)


def _config(ctx: typer.Context) -> MeteringConfig:
    return ctx.obj if isinstance(ctx.obj, MeteringConfig) else MeteringConfig()


def _store(ctx: typer.Context, data_dir: Optional[Path]) -> CatalogStore:
    return CatalogStore(data_dir or _config(ctx).data_dir)


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/] {error}")
    sys.exit(EXIT_CODE_FAIL)


def _format_price(price: Optional[Decimal]) -> str:
    return "-" if price is None else f"${price.normalize():f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML metering configuration"
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
    log_format: str = typer.Option("console", "--log-format", help="console or json"),
):
    """Relay Metering CLI."""
    try:
        configure_logging(log_level, log_format)
        loaded = load_metering_config(str(config)) if config else MeteringConfig()
        ctx.obj = apply_env_overrides(loaded)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(e)

    if ctx.invoked_subcommand is None:
        console.print("Relay Metering - Use --help to see available commands")


@app.command()
def adjust(
    ctx: typer.Context,
    multiplier: str = typer.Argument(..., help="Positive factor applied to every price, e.g. 1.5"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Pricing data directory"),
):
    """
    Multiply every model price by MULTIPLIER.

    The current catalog is backed up first. Examples:
    1.5 raises all prices by 50%, 0.8 gives a 20% discount.
    """
    store = _store(ctx, data_dir)
    try:
        before = store.load()
        backup = store.apply_adjustment(multiplier)
        after = store.load()
    except (MeteringError, FileNotFoundError, FileExistsError) as e:
        logger.error("Adjustment rejected", multiplier=multiplier, error=str(e))
        _fail(e)

    console.print(f"[green]✓[/] Backed up original prices to: {backup.path}")
    console.print(f"[green]✓[/] All prices multiplied by {multiplier}")
    _display_price_changes(before, after)

    console.print("\n[bold]Restart the relay to apply the new prices.[/bold]")
    console.print("To restore the original prices:")
    console.print(f"  relay-metering restore {backup.name}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def restore(
    ctx: typer.Context,
    backup: str = typer.Argument(..., help="Backup file name, see `backups`"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Pricing data directory"),
):
    """Reinstall a backup as the live pricing catalog."""
    store = _store(ctx, data_dir)
    try:
        catalog = store.restore(backup)
    except (MeteringError, FileNotFoundError) as e:
        _fail(e)

    console.print(f"[green]✓[/] Restored {len(catalog)} model prices from {backup}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def backups(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Pricing data directory"),
):
    """List catalog backups, newest first."""
    stored = _store(ctx, data_dir).list_backups()
    if not stored:
        console.print("[dim]No backups found.[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Pricing Backups")
    table.add_column("Backup")
    table.add_column("Created")
    for item in stored:
        table.add_row(item.name, item.created_at.isoformat(sep=" ", timespec="seconds"))
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def quote(
    ctx: typer.Context,
    model: str = typer.Argument(..., help="Exact model name"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Pricing data directory"),
):
    """Show the prices of one model."""
    try:
        price_quote = _store(ctx, data_dir).load().lookup(model)
    except (MeteringError, FileNotFoundError) as e:
        _fail(e)

    unit_size = _config(ctx).unit_size
    table = Table(title=f"{model} (per {unit_size:,} tokens)")
    table.add_column("Component")
    table.add_column("Price", justify="right")
    table.add_row("Input", _format_price(price_quote.input_unit_price))
    table.add_row("Output", _format_price(price_quote.output_unit_price))
    table.add_row("Cache Write", _format_price(price_quote.cache_write_unit_price))
    table.add_row("Cache Read", _format_price(price_quote.cache_read_unit_price))
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def cost(
    ctx: typer.Context,
    model: str = typer.Argument(..., help="Exact model name"),
    input_tokens: int = typer.Option(0, "--input", min=0, help="Input tokens"),
    output_tokens: int = typer.Option(0, "--output", min=0, help="Output tokens"),
    cache_create_tokens: int = typer.Option(0, "--cache-create", min=0, help="Cache creation tokens"),
    cache_read_tokens: int = typer.Option(0, "--cache-read", min=0, help="Cache read tokens"),
    multipliers: Optional[List[str]] = typer.Option(
        None,
        "--multiplier",
        "-m",
        help="Rate multiplier to price at (repeatable)"
    ),
    account: Optional[str] = typer.Option(
        None,
        "--account",
        "-a",
        help="Resolve the multiplier for this account from config"
    ),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Pricing data directory"),
):
    """
    Show the itemized cost of a usage sample.

    Without --multiplier the effective multiplier is resolved from the
    account override or the configured default.
    """
    config = _config(ctx)
    usage = UsageVector(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_create_tokens=cache_create_tokens,
        cache_read_tokens=cache_read_tokens,
    )
    try:
        price_quote = _store(ctx, data_dir).load().lookup(model)
        if multipliers:
            rates = [parse_multiplier(value) for value in multipliers]
        else:
            override = config.account_overrides.get(account) if account else None
            rates = [resolve_multiplier(override, config.default_rate_multiplier)]
        breakdown = compute_unscaled(usage, price_quote, config.unit_size)
    except (MeteringError, FileNotFoundError) as e:
        _fail(e)

    _display_breakdown(price_quote, breakdown)
    for rate in rates:
        _display_scaled(apply_multiplier(breakdown, rate), rate)
    sys.exit(EXIT_CODE_PASS)


def _display_price_changes(before: PricingCatalog, after: PricingCatalog) -> None:
    """Show input/output price changes for the sample models present."""
    shown = [name for name in SAMPLE_MODELS if name in before and name in after]
    if not shown:
        return

    table = Table(title="Sample Price Changes")
    table.add_column("Model")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    for name in shown:
        old, new = before.lookup(name), after.lookup(name)
        table.add_row(
            name,
            f"{_format_price(old.input_unit_price)} → {_format_price(new.input_unit_price)}",
            f"{_format_price(old.output_unit_price)} → {_format_price(new.output_unit_price)}",
        )
    console.print(table)


def _display_breakdown(price_quote: PriceQuote, breakdown) -> None:
    table = Table(title=f"Cost Breakdown: {price_quote.model_name}")
    table.add_column("Component")
    table.add_column("Cost", justify="right")
    table.add_row("Input", format_cost(breakdown.input_cost))
    table.add_row("Output", format_cost(breakdown.output_cost))
    table.add_row("Cache Write", format_cost(breakdown.cache_write_cost))
    table.add_row("Cache Read", format_cost(breakdown.cache_read_cost))
    table.add_row("[bold]Total[/bold]", f"[bold]{format_cost(breakdown.total)}[/bold]")
    console.print(table)


def _display_scaled(breakdown, rate: Decimal) -> None:
    """Show the billed amount at one multiplier."""
    console.print(f"\n[bold]Multiplier {rate}x[/bold]")
    console.print(f"Original cost: {format_cost(breakdown.total)}")
    console.print(f"Actual cost: {format_cost(breakdown.actual)}")

    difference = breakdown.actual - breakdown.total
    percent = (rate - 1) * 100
    if rate > 1:
        console.print(f"Markup: {format_cost(difference)} (+{percent:.1f}%)")
    elif rate < 1:
        console.print(f"Discount: {format_cost(-difference)} ({percent:.1f}%)")
    else:
        console.print("No adjustment")


if __name__ == "__main__":
    app()
