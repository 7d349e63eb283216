"""
Cost calculation from usage and quotes.

Produces itemized breakdowns. Unscaled component costs and their total are
kept for audit; the rate multiplier only scales the billed ``actual`` amount.
"""

from dataclasses import dataclass
from decimal import Context, Decimal, ROUND_HALF_EVEN, localcontext
from typing import Any, Dict, Optional

from .multiplier import parse_multiplier
from .pricing import PriceQuote
from .usage import UsageVector


# Token denomination catalog prices are quoted against (price per 1M tokens)
UNIT_SIZE = 1_000_000

# Fixed arithmetic context so results never depend on the caller's context
COST_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN)

ZERO = Decimal("0")

# Component order is part of the result: input, output, cache write, cache read
COMPONENTS = (
    ("input_cost", "input_tokens", "input_unit_price"),
    ("output_cost", "output_tokens", "output_unit_price"),
    ("cache_write_cost", "cache_create_tokens", "cache_write_unit_price"),
    ("cache_read_cost", "cache_read_tokens", "cache_read_unit_price"),
)


@dataclass(frozen=True)
class CostBreakdown:
    """Itemized cost for one billing event."""
    input_cost: Decimal
    output_cost: Decimal
    cache_write_cost: Decimal
    cache_read_cost: Decimal
    total: Decimal  # Unscaled sum of the four components
    actual: Decimal  # total * effective multiplier

    def __post_init__(self):
        """Validate all amounts are non-negative."""
        for name in ("input_cost", "output_cost", "cache_write_cost",
                     "cache_read_cost", "total", "actual"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    def to_dict(self) -> Dict[str, str]:
        return {
            "input_cost": str(self.input_cost),
            "output_cost": str(self.output_cost),
            "cache_write_cost": str(self.cache_write_cost),
            "cache_read_cost": str(self.cache_read_cost),
            "total": str(self.total),
            "actual": str(self.actual),
        }


def _component_cost(tokens: Optional[int], price: Optional[Decimal], unit_size: int) -> Decimal:
    if price is None or not tokens:
        return ZERO
    return (Decimal(tokens) / Decimal(unit_size)) * price


def compute_unscaled(usage: UsageVector, quote: PriceQuote, unit_size: int = UNIT_SIZE) -> CostBreakdown:
    """Compute the itemized cost of usage at the quoted prices.

    Each component costs ``(tokens / unit_size) * unit_price``. An absent
    price or undefined token count costs exactly zero. No rounding is
    applied; rounding is a presentation concern.

    Args:
        usage: Token usage for one event
        quote: Prices for the model used
        unit_size: Token denomination the prices are quoted against

    Returns:
        CostBreakdown with ``actual`` equal to ``total``

    Raises:
        ValueError: If unit_size is not a positive integer
    """
    if isinstance(unit_size, bool) or not isinstance(unit_size, int) or unit_size <= 0:
        raise ValueError("unit_size must be a positive integer")

    with localcontext(COST_CONTEXT):
        costs = {
            cost_name: _component_cost(
                getattr(usage, token_name), getattr(quote, price_name), unit_size
            )
            for cost_name, token_name, price_name in COMPONENTS
        }
        total = ZERO
        for cost_name, _, _ in COMPONENTS:
            total = total + costs[cost_name]

    return CostBreakdown(total=total, actual=total, **costs)


def apply_multiplier(breakdown: CostBreakdown, multiplier: Any) -> CostBreakdown:
    """Scale the billed amount of a breakdown.

    The four component costs and ``total`` are copied unchanged; only
    ``actual`` is recomputed as ``actual * multiplier``. For an unscaled
    breakdown ``actual`` equals ``total``, and scaling twice compounds.

    Raises:
        InvalidMultiplier: If multiplier is not a positive finite number
    """
    rate = parse_multiplier(multiplier)
    with localcontext(COST_CONTEXT):
        actual = breakdown.actual * rate

    return CostBreakdown(
        input_cost=breakdown.input_cost,
        output_cost=breakdown.output_cost,
        cache_write_cost=breakdown.cache_write_cost,
        cache_read_cost=breakdown.cache_read_cost,
        total=breakdown.total,
        actual=actual,
    )


def calculate_cost(
    usage: UsageVector,
    quote: PriceQuote,
    multiplier: Any = 1,
    unit_size: int = UNIT_SIZE,
) -> CostBreakdown:
    """Compute the unscaled breakdown and apply the multiplier in one step."""
    return apply_multiplier(compute_unscaled(usage, quote, unit_size), multiplier)


def format_cost(amount: Decimal, places: int = 6) -> str:
    """Format an amount for display, e.g. ``$0.011280``.

    Display only; stored and computed amounts are never rounded.
    """
    quantum = Decimal(1).scaleb(-places)
    return f"${amount.quantize(quantum, rounding=ROUND_HALF_EVEN):,f}"
