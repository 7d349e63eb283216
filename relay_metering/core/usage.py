"""
Token usage vectors.

One vector describes the tokens consumed by a single billing event.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional


USAGE_FIELDS = (
    "input_tokens",
    "output_tokens",
    "cache_create_tokens",
    "cache_read_tokens",
)

# Upstream usage payload key -> UsageVector field
API_USAGE_KEYS = {
    "input_tokens": "input_tokens",
    "output_tokens": "output_tokens",
    "cache_creation_input_tokens": "cache_create_tokens",
    "cache_read_input_tokens": "cache_read_tokens",
}


@dataclass(frozen=True)
class UsageVector:
    """Token counts for one billing event.

    A component left as None is undefined and bills as zero. A vector whose
    components are all undefined carries no usage at all and is rejected when
    a usage record is built.
    """
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    cache_create_tokens: Optional[int] = None
    cache_read_tokens: Optional[int] = None

    def __post_init__(self):
        """Validate token counts are non-negative integers."""
        for name in USAGE_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
            if value < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def is_empty(self) -> bool:
        """True when every component is undefined."""
        return all(getattr(self, name) is None for name in USAGE_FIELDS)

    @property
    def total_tokens(self) -> int:
        """Total tokens across all four components."""
        return sum(getattr(self, name) or 0 for name in USAGE_FIELDS)

    @classmethod
    def from_api_usage(cls, usage: Mapping[str, Any]) -> "UsageVector":
        """Build a vector from an upstream ``usage`` payload.

        Keys the relay does not bill for are ignored.
        """
        values = {}
        for key, name in API_USAGE_KEYS.items():
            if usage.get(key) is not None:
                values[name] = usage[key]
        return cls(**values)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in USAGE_FIELDS}
