"""
Usage record assembly.

Records are immutable snapshots handed to the external store. They are
created once per billing event and never modified.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from .cost import CostBreakdown
from .errors import IncompleteInput
from .usage import UsageVector


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one billing event."""
    timestamp: datetime
    account_id: str
    model_name: str
    usage: UsageVector
    rate_multiplier: Decimal
    breakdown: CostBreakdown

    @property
    def cost(self) -> Decimal:
        """Billed amount after the rate multiplier."""
        return self.breakdown.actual

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "account_id": self.account_id,
            "model_name": self.model_name,
            "usage": self.usage.to_dict(),
            "rate_multiplier": str(self.rate_multiplier),
            "cost": str(self.cost),
            "cost_breakdown": self.breakdown.to_dict(),
        }


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def build_usage_record(
    account_id: Optional[str],
    model_name: Optional[str],
    usage: Optional[UsageVector],
    multiplier: Optional[Decimal],
    breakdown: Optional[CostBreakdown],
    clock: Optional[Callable[[], datetime]],
) -> UsageRecord:
    """Assemble a usage record from already computed parts.

    The timestamp is taken from ``clock`` only, so records are reproducible
    under a fixed clock.

    Args:
        account_id: Billed account or API key identifier
        model_name: Model the usage was served by
        usage: Token usage; at least one component must be defined
        multiplier: Effective rate multiplier applied to the breakdown
        breakdown: Cost breakdown for the usage
        clock: Callable returning the record timestamp

    Returns:
        UsageRecord

    Raises:
        IncompleteInput: Listing every missing field
    """
    missing = []
    if _is_blank(account_id):
        missing.append("account_id")
    if _is_blank(model_name):
        missing.append("model_name")
    if usage is None or usage.is_empty:
        missing.append("usage")
    if multiplier is None:
        missing.append("multiplier")
    if breakdown is None:
        missing.append("breakdown")
    if clock is None:
        missing.append("clock")
    if missing:
        raise IncompleteInput(missing)

    return UsageRecord(
        timestamp=clock(),
        account_id=account_id,
        model_name=model_name,
        usage=usage,
        rate_multiplier=multiplier,
        breakdown=breakdown,
    )
