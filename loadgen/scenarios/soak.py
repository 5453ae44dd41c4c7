"""Soak scenario: long-running, low-concurrency load against the adapter fleet.

Defaults mirror the nightly soak job: one virtual user for 12 hours, one
second between iterations, failing the run when more than 1% of requests fail
or p95 latency exceeds 200ms.

Usage from CLI::

    ea-loadgen --adapters-file adapters.json --group-count 2 --duration 10m

Usage as library::

    from loadgen.scenarios.soak import build_run_config, run_soak_scenario

    config = build_run_config(duration_seconds=60)
    result = await run_soak_scenario(adapter_config, mode, run_config=config)
"""

from __future__ import annotations

from typing import Iterable

import httpx

from loadgen.core.adapters import AdapterConfig
from loadgen.core.batch import BatchBuilder
from loadgen.core.engine import LoadRunner
from loadgen.core.executor import HttpxBatchExecutor
from loadgen.core.iteration import LoadTest
from loadgen.core.metrics import MetricsCollector
from loadgen.core.models import DeploymentMode, Payload, RunConfig, RunResult
from loadgen.core.outcome import ErrorRate, OutcomeAggregator
from loadgen.core.thresholds import DEFAULT_THRESHOLDS
from loadgen.logger import Logger, session_logger

SOAK_DURATION_SECONDS = 12 * 3600.0


def build_run_config(
    *,
    vus: int = 1,
    duration_seconds: float | None = SOAK_DURATION_SECONDS,
    iterations: int | None = None,
    pause_seconds: float = 1.0,
    timeout_seconds: float = 30.0,
    thresholds: dict[str, list[str]] | None = None,
    abort_on_fail: bool = False,
) -> RunConfig:
    """Build a ``RunConfig`` with the soak defaults."""
    return RunConfig(
        vus=vus,
        duration_seconds=duration_seconds,
        iterations=iterations,
        pause_seconds=pause_seconds,
        timeout_seconds=timeout_seconds,
        thresholds={k: list(v) for k, v in (DEFAULT_THRESHOLDS if thresholds is None else thresholds).items()},
        abort_on_fail=abort_on_fail,
    )


async def run_soak_scenario(
    adapter_config: AdapterConfig,
    mode: DeploymentMode,
    *,
    run_config: RunConfig | None = None,
    stream_enabled: bool = False,
    stream_payloads: Iterable[Payload] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: Logger | None = None,
) -> RunResult:
    """Wire roster, builder, executor and aggregator together and run.

    ``stream_payloads`` replaces the adapters file's ``ws_payloads`` (used for
    a generated payload file). ``transport`` is passed to httpx, mainly for
    tests.
    """

    logger = logger or session_logger
    run_config = run_config or build_run_config()

    payloads = adapter_config.stream_payloads if stream_payloads is None else tuple(stream_payloads)

    builder = BatchBuilder(
        mode,
        adapter_config.catalog,
        stream_payloads=payloads,
        stream_enabled=stream_enabled,
        rewrites=adapter_config.stream_rewrites,
        logger=logger,
    )
    metrics = MetricsCollector(logger=logger)
    aggregator = OutcomeAggregator(ErrorRate(), metrics=metrics, logger=logger)
    executor = HttpxBatchExecutor(
        timeout_seconds=run_config.timeout_seconds,
        logger=logger,
        transport=transport,
    )

    load_test = LoadTest(
        adapter_config.roster,
        builder,
        executor,
        aggregator,
        logger=logger,
    )
    runner = LoadRunner(run_config, load_test, metrics=metrics, logger=logger)

    try:
        return await runner.run()
    finally:
        await executor.aclose()
