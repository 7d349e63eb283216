"""
Pricing catalog and per-model quotes.

A catalog is an immutable snapshot of quotes keyed by model name. It is
loaded wholesale from durable records and replaced wholesale on adjustment.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import MalformedCatalog, ModelNotFound


PRICE_FIELDS = (
    "input_unit_price",
    "output_unit_price",
    "cache_write_unit_price",
    "cache_read_unit_price",
)


def _parse_price(value: Any, path: str) -> Optional[Decimal]:
    """Convert a durable price value to Decimal, None when absent."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise MalformedCatalog(f"'{path}' must be a number")
    # str() keeps the decimal text the catalog was written with
    price = value if isinstance(value, Decimal) else Decimal(str(value))
    if not price.is_finite():
        raise MalformedCatalog(f"'{path}' must be finite")
    if price < 0:
        raise MalformedCatalog(f"'{path}' cannot be negative")
    return price


@dataclass(frozen=True)
class PriceQuote:
    """Per-token-component prices for one model.

    Prices are quoted per ``unit_size`` tokens (see ``core.cost``). An absent
    price is None and bills that component as zero.
    """
    model_name: str
    input_unit_price: Optional[Decimal] = None
    output_unit_price: Optional[Decimal] = None
    cache_write_unit_price: Optional[Decimal] = None
    cache_read_unit_price: Optional[Decimal] = None

    def __post_init__(self):
        """Validate the model name and every present price."""
        if not isinstance(self.model_name, str) or not self.model_name.strip():
            raise MalformedCatalog("model_name is required and cannot be empty")
        for name in PRICE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(
                    self, name, _parse_price(value, f"{self.model_name}.{name}")
                )

    def prices(self) -> Dict[str, Optional[Decimal]]:
        return {name: getattr(self, name) for name in PRICE_FIELDS}

    def to_record(self) -> Dict[str, Any]:
        """Render the durable record form.

        Prices stay Decimal so the exact decimal text is written back.
        Absent prices are omitted.
        """
        record: Dict[str, Any] = {"model_name": self.model_name}
        for name, price in self.prices().items():
            if price is not None:
                record[name] = price
        return record


@dataclass(frozen=True)
class PricingCatalog:
    """Ordered, unique-keyed collection of quotes."""
    quotes: Tuple[PriceQuote, ...] = ()
    _index: Dict[str, PriceQuote] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        """Index quotes by model name, rejecting duplicates."""
        quotes = tuple(self.quotes)
        index = {}
        for quote in quotes:
            if quote.model_name in index:
                raise MalformedCatalog(f"Duplicate model_name: {quote.model_name}")
            index[quote.model_name] = quote
        object.__setattr__(self, "quotes", quotes)
        object.__setattr__(self, "_index", index)

    def lookup(self, model_name: str) -> PriceQuote:
        """Get the quote for a model by exact name.

        Args:
            model_name: Model identifier

        Returns:
            PriceQuote for the model

        Raises:
            ModelNotFound: If the catalog has no quote for the model
        """
        try:
            return self._index[model_name]
        except KeyError:
            raise ModelNotFound(model_name) from None

    def get(self, model_name: str) -> Optional[PriceQuote]:
        """Get the quote for a model, or None when it is unknown."""
        return self._index.get(model_name)

    @property
    def model_names(self) -> List[str]:
        return [quote.model_name for quote in self.quotes]

    def to_records(self) -> List[Dict[str, Any]]:
        return [quote.to_record() for quote in self.quotes]

    def __len__(self) -> int:
        return len(self.quotes)

    def __iter__(self) -> Iterator[PriceQuote]:
        return iter(self.quotes)

    def __contains__(self, model_name: object) -> bool:
        return model_name in self._index


def load_catalog(source: Sequence[Mapping[str, Any]]) -> PricingCatalog:
    """Parse durable pricing records into a catalog.

    Strict validation ensures a bad record aborts the whole load instead of
    billing some model at a wrong or missing price.

    Args:
        source: Array of quote-like records, each with a ``model_name`` and
            up to four price fields

    Returns:
        Validated PricingCatalog in source order

    Raises:
        MalformedCatalog: If the source is not a list of records, a record
            lacks a model name, a present price is not a finite non-negative
            number, or a model name repeats
    """
    if not isinstance(source, list):
        raise MalformedCatalog("Pricing source must be a list of records")

    quotes = []
    for position, record in enumerate(source):
        if not isinstance(record, Mapping):
            raise MalformedCatalog(f"Record at index {position} must be a mapping")

        model_name = record.get("model_name")
        if not isinstance(model_name, str) or not model_name.strip():
            raise MalformedCatalog(f"Record at index {position} missing model_name")

        prices = {
            name: _parse_price(record.get(name), f"{model_name}.{name}")
            for name in PRICE_FIELDS
        }
        quotes.append(PriceQuote(model_name=model_name, **prices))

    return PricingCatalog(tuple(quotes))
