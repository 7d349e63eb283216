"""
Usage meter for the relay.

Turns one billing event into a usage record: quote lookup, unscaled cost,
multiplier resolution, scaling and record assembly.
"""

from datetime import datetime
from typing import Callable, Optional

from ..config.loader import MeteringConfig, UnknownModelPolicy
from ..core.cost import UNIT_SIZE, apply_multiplier, compute_unscaled
from ..core.errors import IncompleteInput
from ..core.multiplier import RateMultiplierResolver
from ..core.pricing import PriceQuote, PricingCatalog
from ..core.record import UsageRecord, build_usage_record
from ..core.usage import UsageVector
from ..storage.repository import initialize_schema, insert_usage_record


class UsageMeter:
    """Meters usage against the current pricing catalog.

    The catalog is an owned snapshot. ``install_catalog`` publishes a
    replacement with a single reference swap, so a concurrent ``record``
    prices against either the old or the new catalog, never a mix.
    """

    def __init__(
        self,
        catalog: PricingCatalog,
        resolver: Optional[RateMultiplierResolver] = None,
        clock: Callable[[], datetime] = datetime.now,
        unit_size: int = UNIT_SIZE,
        unknown_model: UnknownModelPolicy = UnknownModelPolicy.REJECT,
        ledger_path: Optional[str] = None,
    ):
        """Initialize the meter.

        Args:
            catalog: Pricing catalog to bill against
            resolver: Multiplier resolver (defaults to no overrides, 1.0)
            clock: Source of record timestamps
            unit_size: Token denomination of catalog prices
            unknown_model: Whether unknown models are rejected or billed as zero
            ledger_path: SQLite ledger to append records to, None to skip
        """
        self.catalog = catalog
        self.resolver = resolver or RateMultiplierResolver()
        self.clock = clock
        self.unit_size = unit_size
        self.unknown_model = unknown_model
        self.ledger_path = ledger_path
        if ledger_path:
            initialize_schema(ledger_path)

    @classmethod
    def from_config(cls, config: MeteringConfig, catalog: PricingCatalog, **kwargs) -> "UsageMeter":
        resolver = RateMultiplierResolver(
            overrides=config.account_overrides,
            default=config.default_rate_multiplier,
        )
        return cls(
            catalog,
            resolver=resolver,
            unit_size=config.unit_size,
            unknown_model=config.unknown_model,
            ledger_path=config.ledger_path,
            **kwargs
        )

    def install_catalog(self, catalog: PricingCatalog) -> None:
        self.catalog = catalog

    def _quote_for(self, catalog: PricingCatalog, model_name: str) -> PriceQuote:
        if self.unknown_model is UnknownModelPolicy.ZERO:
            return catalog.get(model_name) or PriceQuote(model_name=model_name)
        return catalog.lookup(model_name)

    def record(self, account_id: str, model_name: str, usage: UsageVector) -> UsageRecord:
        """Meter one billing event.

        Args:
            account_id: Billed account or API key identifier
            model_name: Model that served the request
            usage: Token usage of the request

        Returns:
            The usage record; persisted first when a ledger is configured

        Raises:
            ModelNotFound: If the model is unknown and the policy is REJECT
            InvalidMultiplier: If the account's override is invalid
            IncompleteInput: If account, model or usage is missing
        """
        missing = [
            name for name, value in (("account_id", account_id), ("model_name", model_name))
            if not value
        ]
        if usage is None or usage.is_empty:
            missing.append("usage")
        if missing:
            raise IncompleteInput(missing)

        catalog = self.catalog
        quote = self._quote_for(catalog, model_name)
        multiplier = self.resolver.resolve(account_id)
        breakdown = apply_multiplier(
            compute_unscaled(usage, quote, self.unit_size), multiplier
        )

        usage_record = build_usage_record(
            account_id=account_id,
            model_name=model_name,
            usage=usage,
            multiplier=multiplier,
            breakdown=breakdown,
            clock=self.clock,
        )

        if self.ledger_path:
            insert_usage_record(usage_record, self.ledger_path)

        return usage_record
