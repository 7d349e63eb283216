"""
Rate multiplier validation and resolution.

Resolution Order:
1. Per-account override - Always wins when present; must be valid
2. Process-wide default - Used when no override is set and it is valid
3. 1.0 - No adjustment
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from .errors import InvalidMultiplier


NO_ADJUSTMENT = Decimal("1")


def parse_multiplier(value: Any) -> Decimal:
    """Validate a rate multiplier and return it as a Decimal.

    Args:
        value: Candidate multiplier (number or numeric string)

    Returns:
        The multiplier as a positive finite Decimal

    Raises:
        InvalidMultiplier: For zero, negative, NaN, infinite, boolean or
            non-numeric input
    """
    if isinstance(value, bool) or value is None:
        raise InvalidMultiplier(value)
    if isinstance(value, Decimal):
        multiplier = value
    elif isinstance(value, (int, float, str)):
        try:
            multiplier = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidMultiplier(value) from None
    else:
        raise InvalidMultiplier(value)

    if not multiplier.is_finite() or multiplier <= 0:
        raise InvalidMultiplier(value)
    return multiplier


def resolve_multiplier(
    account_override: Optional[Any] = None,
    global_default: Optional[Any] = None,
) -> Decimal:
    """Determine the effective rate multiplier for one account.

    An invalid override is a configuration error and is raised rather than
    billed around. An invalid default is skipped.

    Args:
        account_override: Per-account multiplier, None when not set
        global_default: Process-wide multiplier, None when not set

    Returns:
        The effective multiplier

    Raises:
        InvalidMultiplier: If the override is present but invalid
    """
    if account_override is not None:
        return parse_multiplier(account_override)

    if global_default is not None:
        try:
            return parse_multiplier(global_default)
        except InvalidMultiplier:
            pass

    return NO_ADJUSTMENT


class RateMultiplierResolver:
    """Resolves multipliers against an external account override source.

    The override source is only read, never written.
    """

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None, default: Optional[Any] = None):
        self.overrides = overrides if overrides is not None else {}
        self.default = default

    def resolve(self, account_id: str) -> Decimal:
        return resolve_multiplier(self.overrides.get(account_id), self.default)
