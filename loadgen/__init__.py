"""Synthetic load generator for external adapters.

Builds one batch of uniquely keyed requests per iteration from a roster of
adapters (each with its own call cadence), dispatches it concurrently and
scores every response into an error rate checked against thresholds.
"""

from __future__ import annotations

__all__ = []
