from __future__ import annotations

from typing import Any, Iterable

from loadgen.core.models import Target
from loadgen.exceptions import ConfigurationError, InvalidCadenceError


class TargetRoster:
    """Read-only, ordered list of targets with unique ids."""

    def __init__(self, targets: Iterable[Target]) -> None:
        ordered = tuple(targets)
        seen: set[str] = set()
        for target in ordered:
            if target.id in seen:
                raise ConfigurationError(
                    "DUPLICATE_TARGET",
                    f"target {target.id!r} is listed more than once",
                    details={"target_id": target.id},
                )
            seen.add(target.id)
        self._targets = ordered

    @classmethod
    def from_entries(cls, entries: Any) -> "TargetRoster":
        """Build a roster from ``[{"name": ..., "seconds_per_call": ...}]``."""
        if not isinstance(entries, list):
            raise ConfigurationError("INVALID_ROSTER", "adapters must be a list")

        targets: list[Target] = []
        for raw in entries:
            if not isinstance(raw, dict):
                raise ConfigurationError(
                    "INVALID_ROSTER",
                    f"adapter entry {raw!r} must be an object",
                )
            name = raw.get("name")
            if not isinstance(name, str) or not name.strip():
                raise ConfigurationError(
                    "INVALID_ROSTER",
                    "adapter entry is missing a name",
                    details={"entry": raw},
                )
            cadence = raw.get("seconds_per_call", 1)
            if isinstance(cadence, bool) or not isinstance(cadence, int):
                raise InvalidCadenceError(name, cadence)
            targets.append(Target(id=name.strip(), cadence=cadence))

        return cls(targets)

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._targets

    def ids(self) -> list[str]:
        return [t.id for t in self._targets]

    def __iter__(self):
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, target_id: object) -> bool:
        return any(t.id == target_id for t in self._targets)
