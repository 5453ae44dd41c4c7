"""Custom exceptions for ea-loadgen.

All exceptions carry ``code``, ``message`` and ``details`` so they can be
logged as structured events.
"""

from loadgen.exceptions.base import (
    LoadgenError,
    ValidationError,
    ConfigurationError,
)
from loadgen.exceptions.config import (
    InvalidCadenceError,
    MissingModeInputsError,
    BatchKeyCollisionError,
    ThresholdSyntaxError,
    CatalogEntryNotFoundError,
)

__all__ = [
    # Base exceptions
    "LoadgenError",
    "ValidationError",
    "ConfigurationError",
    # Specific exceptions
    "InvalidCadenceError",
    "MissingModeInputsError",
    "BatchKeyCollisionError",
    "ThresholdSyntaxError",
    "CatalogEntryNotFoundError",
]
