"""
Error taxonomy for metering operations.

Every failure is raised to the immediate caller. Nothing in the core logs,
retries or substitutes a default value for invalid input.
"""

from typing import Iterable


class MeteringError(Exception):
    """Base class for all metering failures."""


class MalformedCatalog(MeteringError, ValueError):
    """Raised when pricing source data cannot be turned into a catalog."""


class InvalidMultiplier(MeteringError, ValueError):
    """Raised when a rate multiplier is not a positive finite number."""
    def __init__(self, value: object):
        super().__init__(f"Rate multiplier must be a positive finite number, got {value!r}")
        self.value = value


class ModelNotFound(MeteringError, LookupError):
    """Raised when a model has no quote in the catalog."""
    def __init__(self, model_name: str):
        super().__init__(f"No pricing for model: {model_name}")
        self.model_name = model_name


class IncompleteInput(MeteringError, ValueError):
    """Raised when a usage record cannot be built from the given fields."""
    def __init__(self, missing: Iterable[str]):
        self.missing = tuple(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")
