"""Call-frequency gate.

A target with cadence ``C`` is admitted on iterations 0, C, 2C, ... so slow or
rate-limited adapters are not hit on every iteration. Cadence is validated when
the ``Target`` is built, so there is no division by zero here.
"""

from __future__ import annotations

from typing import Iterable

from loadgen.core.models import Target


def is_eligible(target: Target, iteration: int) -> bool:
    if iteration < 0:
        raise ValueError("iteration must be >= 0")
    return iteration % target.cadence == 0


def eligible_targets(targets: Iterable[Target], iteration: int) -> list[Target]:
    """Targets due a call on ``iteration``, in roster order."""
    return [t for t in targets if is_eligible(t, iteration)]
