"""
Catalog-wide price adjustment with backups.

Adjustment never mutates the catalog it is given. It returns a new snapshot
together with a backup of the prior one; publishing the new snapshot is the
caller's job.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import localcontext
from typing import Any, Callable, NamedTuple

from .cost import COST_CONTEXT
from .multiplier import parse_multiplier
from .pricing import PriceQuote, PricingCatalog


@dataclass(frozen=True)
class BackupSnapshot:
    """Full copy of a catalog taken immediately before an adjustment.

    Retained until an operator discards it.
    """
    catalog: PricingCatalog
    created_at: datetime


class AdjustmentResult(NamedTuple):
    catalog: PricingCatalog
    backup: BackupSnapshot


def _copy_quote(quote: PriceQuote) -> PriceQuote:
    return PriceQuote(
        model_name=quote.model_name,
        input_unit_price=quote.input_unit_price,
        output_unit_price=quote.output_unit_price,
        cache_write_unit_price=quote.cache_write_unit_price,
        cache_read_unit_price=quote.cache_read_unit_price,
    )


def copy_catalog(catalog: PricingCatalog) -> PricingCatalog:
    """Build an independent catalog with the same quotes, field by field."""
    return PricingCatalog(tuple(_copy_quote(quote) for quote in catalog))


def _scale(price, multiplier):
    # Absent prices stay absent
    return None if price is None else price * multiplier


def adjust_catalog(
    catalog: PricingCatalog,
    multiplier: Any,
    clock: Callable[[], datetime] = datetime.now,
) -> AdjustmentResult:
    """Multiply every present price in the catalog by ``multiplier``.

    The multiplier is validated before anything is built, so a rejected
    adjustment has no effect at all.

    Args:
        catalog: Current catalog snapshot (left untouched)
        multiplier: Positive scalar, e.g. 1.5 to raise prices by 50%
        clock: Source of the backup's creation timestamp

    Returns:
        AdjustmentResult of (adjusted catalog, backup of the input catalog)

    Raises:
        InvalidMultiplier: If multiplier is not a positive finite number
    """
    rate = parse_multiplier(multiplier)

    backup = BackupSnapshot(catalog=copy_catalog(catalog), created_at=clock())

    with localcontext(COST_CONTEXT):
        adjusted = PricingCatalog(tuple(
            PriceQuote(
                model_name=quote.model_name,
                input_unit_price=_scale(quote.input_unit_price, rate),
                output_unit_price=_scale(quote.output_unit_price, rate),
                cache_write_unit_price=_scale(quote.cache_write_unit_price, rate),
                cache_read_unit_price=_scale(quote.cache_read_unit_price, rate),
            )
            for quote in catalog
        ))

    return AdjustmentResult(catalog=adjusted, backup=backup)


def restore_backup(backup: BackupSnapshot) -> PricingCatalog:
    """Return the backed-up catalog, ready to install as the live one."""
    return copy_catalog(backup.catalog)
