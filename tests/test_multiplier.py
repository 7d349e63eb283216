"""
Unit tests for rate multiplier validation and resolution.

Tests override-over-default precedence and rejection of invalid overrides.
"""

from decimal import Decimal

import pytest

from relay_metering.core.errors import InvalidMultiplier
from relay_metering.core.multiplier import (
    NO_ADJUSTMENT,
    RateMultiplierResolver,
    parse_multiplier,
    resolve_multiplier,
)


class TestParseMultiplier:
    """Test multiplier validation."""

    @pytest.mark.parametrize("value, expected", [
        (1.5, Decimal("1.5")),
        (2, Decimal("2")),
        ("0.8", Decimal("0.8")),
        (" 1.25 ", Decimal("1.25")),
        (Decimal("3.0"), Decimal("3.0")),
    ])
    def test_valid_values(self, value, expected):
        """Verify positive finite numbers parse to Decimal."""
        assert parse_multiplier(value) == expected

    @pytest.mark.parametrize("value", [
        0, -1, -0.5, "0", float("nan"), float("inf"), "NaN", "Infinity",
        "abc", "", None, True, False, [1.5], Decimal("-2"),
    ])
    def test_invalid_values(self, value):
        """Verify zero, negatives, non-finite and non-numeric input are rejected."""
        with pytest.raises(InvalidMultiplier):
            parse_multiplier(value)

    def test_error_carries_value(self):
        """Verify the rejected value is reported."""
        with pytest.raises(InvalidMultiplier, match="got -1") as excinfo:
            parse_multiplier(-1)
        assert excinfo.value.value == -1

    def test_error_is_value_error(self):
        """Verify callers catching ValueError also see invalid multipliers."""
        with pytest.raises(ValueError):
            parse_multiplier(0)


class TestResolveMultiplier:
    """Test override-over-default precedence."""

    def test_override_wins(self):
        """Verify a valid override takes precedence over the default."""
        assert resolve_multiplier(2.0, 1.5) == Decimal("2.0")

    def test_default_used_without_override(self):
        """Verify the default applies when no override is set."""
        assert resolve_multiplier(None, 1.5) == Decimal("1.5")

    def test_no_adjustment_without_either(self):
        """Verify 1.0 applies when neither value is set."""
        assert resolve_multiplier(None, None) == Decimal("1")
        assert resolve_multiplier() == NO_ADJUSTMENT

    @pytest.mark.parametrize("override", [0, -1, float("nan"), float("inf"), "abc"])
    def test_invalid_override_rejected(self, override):
        """Verify an invalid override is surfaced, not replaced by the default."""
        with pytest.raises(InvalidMultiplier):
            resolve_multiplier(override, 1.5)

    @pytest.mark.parametrize("default", [0, -2, float("nan"), "abc"])
    def test_invalid_default_falls_through(self, default):
        """Verify an invalid default resolves to no adjustment."""
        assert resolve_multiplier(None, default) == Decimal("1")

    def test_valid_override_ignores_invalid_default(self):
        """Verify the default is not consulted when an override is set."""
        assert resolve_multiplier(0.5, -3) == Decimal("0.5")


class TestRateMultiplierResolver:
    """Test resolution against an account override source."""

    def test_account_override(self):
        """Verify an account's override is used."""
        resolver = RateMultiplierResolver({"key-1": 2.0}, default=1.5)
        assert resolver.resolve("key-1") == Decimal("2.0")

    def test_account_without_override_uses_default(self):
        """Verify other accounts get the default."""
        resolver = RateMultiplierResolver({"key-1": 2.0}, default=1.5)
        assert resolver.resolve("key-2") == Decimal("1.5")

    def test_empty_resolver(self):
        """Verify a resolver without overrides or default bills at 1.0."""
        assert RateMultiplierResolver().resolve("key-1") == Decimal("1")

    def test_invalid_account_override_rejected(self):
        """Verify a misconfigured account is rejected."""
        resolver = RateMultiplierResolver({"key-1": 0})
        with pytest.raises(InvalidMultiplier):
            resolver.resolve("key-1")

    def test_reads_live_override_source(self):
        """Verify changes in the external source are seen on the next resolve."""
        overrides = {}
        resolver = RateMultiplierResolver(overrides)
        assert resolver.resolve("key-1") == Decimal("1")
        overrides["key-1"] = 0.8
        assert resolver.resolve("key-1") == Decimal("0.8")
