"""Base exception classes for ea-loadgen.

Every error carries a machine-readable ``code``, a human ``message`` and an
optional ``details`` dict, so the CLI and the report can log failures as
structured events instead of bare tracebacks.
"""

from __future__ import annotations

from typing import Any


class LoadgenError(Exception):
    """Root of the ea-loadgen exception hierarchy."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict[str, Any] = dict(details) if details else {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"


class ValidationError(LoadgenError):
    """Raised when an input value is malformed."""


class ConfigurationError(LoadgenError):
    """Raised when the run configuration cannot produce a valid batch.

    Configuration errors are fatal: the run must not start (or continue) with a
    partial or corrupted batch.
    """


__all__ = [
    "LoadgenError",
    "ValidationError",
    "ConfigurationError",
]
