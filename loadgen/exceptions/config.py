"""Configuration exceptions for roster, routing, batch and threshold setup.

Each exception names the root cause and the remediation so that a failed
startup can be fixed from the log line alone.
"""

from __future__ import annotations

from typing import Any

from loadgen.exceptions.base import ConfigurationError


class InvalidCadenceError(ConfigurationError):
    """Raised when a target declares a cadence below 1.

    Root cause: ``seconds_per_call`` is 0, negative or not an integer.
    Remediation: use 1 for "every iteration" or a larger integer.
    """

    def __init__(self, target_id: str, cadence: Any):
        super().__init__(
            code="INVALID_CADENCE",
            message=f"target {target_id!r} has invalid cadence {cadence!r}; must be an integer >= 1",
            details={"target_id": target_id, "cadence": cadence},
        )
        self.target_id = target_id
        self.cadence = cadence


class MissingModeInputsError(ConfigurationError):
    """Raised when neither local nor staging mode can be resolved.

    Root cause: no local target name was given and the group count is below 1.
    Remediation: set LOCAL_ADAPTER_NAME (or --local-adapter) for local runs, or
    provide group_count >= 1 for staging runs.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code="MISSING_MODE_INPUTS", message=message, details=details)


class BatchKeyCollisionError(ConfigurationError):
    """Raised when two request descriptors in one batch share a key.

    Root cause: a target's catalog payloads and the stream payloads (or two
    entries of the same list) use the same payload name.
    Remediation: rename one of the payloads.
    """

    def __init__(self, key: str, details: dict[str, Any] | None = None):
        payload = {"key": key}
        payload.update(details or {})
        super().__init__(
            code="BATCH_KEY_COLLISION",
            message=f"duplicate request key {key!r} in batch",
            details=payload,
        )
        self.key = key


class ThresholdSyntaxError(ConfigurationError):
    """Raised when a threshold expression cannot be parsed."""

    def __init__(self, expression: str, reason: str):
        super().__init__(
            code="THRESHOLD_SYNTAX",
            message=f"invalid threshold {expression!r}: {reason}",
            details={"expression": expression},
        )
        self.expression = expression


class CatalogEntryNotFoundError(ConfigurationError):
    """Raised when a resolved target has no catalog payload list.

    Root cause: the target appears in the roster (or is the local target) but
    ``http_payloads`` has no entry for it.
    Remediation: add an entry (an empty list is allowed).
    """

    def __init__(self, target_id: str):
        super().__init__(
            code="CATALOG_ENTRY_NOT_FOUND",
            message=f"no catalog payloads configured for target {target_id!r}",
            details={"target_id": target_id},
        )
        self.target_id = target_id
