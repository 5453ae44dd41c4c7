"""Pre-built load scenarios."""

from __future__ import annotations

__all__ = ["build_run_config", "run_soak_scenario"]

from loadgen.scenarios.soak import build_run_config, run_soak_scenario
