"""
Core modules for Relay Metering.

This package contains the pure cost-calculation and pricing-lifecycle
functionality: catalogs, adjustment, multiplier resolution, cost breakdowns
and usage records.
"""

from .adjuster import AdjustmentResult, BackupSnapshot, adjust_catalog, restore_backup
from .cost import UNIT_SIZE, CostBreakdown, apply_multiplier, calculate_cost, compute_unscaled
from .errors import (
    IncompleteInput,
    InvalidMultiplier,
    MalformedCatalog,
    MeteringError,
    ModelNotFound,
)
from .multiplier import RateMultiplierResolver, parse_multiplier, resolve_multiplier
from .pricing import PriceQuote, PricingCatalog, load_catalog
from .record import UsageRecord, build_usage_record
from .usage import UsageVector

__all__ = [
    "AdjustmentResult",
    "BackupSnapshot",
    "CostBreakdown",
    "IncompleteInput",
    "InvalidMultiplier",
    "MalformedCatalog",
    "MeteringError",
    "ModelNotFound",
    "PriceQuote",
    "PricingCatalog",
    "RateMultiplierResolver",
    "UNIT_SIZE",
    "UsageRecord",
    "UsageVector",
    "adjust_catalog",
    "apply_multiplier",
    "build_usage_record",
    "calculate_cost",
    "compute_unscaled",
    "load_catalog",
    "parse_multiplier",
    "resolve_multiplier",
    "restore_backup",
]
