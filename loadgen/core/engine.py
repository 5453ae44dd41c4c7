from __future__ import annotations

import asyncio
import signal
import time

from loadgen.core.iteration import LoadTest
from loadgen.core.metrics import MetricsCollector
from loadgen.core.models import RunConfig, RunResult
from loadgen.core.thresholds import (
    Threshold,
    ThresholdResult,
    collect_snapshots,
    evaluate_thresholds,
    parse_thresholds,
)
from loadgen.logger import Logger, session_logger


class IterationBudget:
    """Shared iteration budget across all virtual users."""

    def __init__(self, total_iterations: int | None) -> None:
        self._remaining = total_iterations
        self._lock = asyncio.Lock()

    def is_limited(self) -> bool:
        return self._remaining is not None

    def remaining(self) -> int | None:
        return self._remaining

    async def try_acquire(self) -> bool:
        """Return True if one iteration is acquired, False if budget is exhausted."""
        if self._remaining is None:
            return True

        async with self._lock:
            if self._remaining <= 0:
                return False
            self._remaining -= 1
            return True


class LoadRunner:
    """Drives ``LoadTest.iteration()`` from ``vus`` concurrent virtual users.

    Each virtual user runs one iteration, sleeps ``pause_seconds`` and loops
    until the stop event fires. The stop event is only checked between
    iterations, so a batch in flight always completes.
    """

    def __init__(
        self,
        config: RunConfig,
        load_test: LoadTest,
        *,
        metrics: MetricsCollector,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._load_test = load_test
        self._metrics = metrics
        self._logger = logger or session_logger
        self._thresholds: list[Threshold] = parse_thresholds(
            config.thresholds,
            abort_on_fail=config.abort_on_fail,
        )
        self._aborted = False

    async def run(self) -> RunResult:
        if self._config.vus < 1:
            raise ValueError("vus must be >= 1")

        if self._config.iterations is None and self._config.duration_seconds is None:
            raise ValueError("one of iterations or duration_seconds must be provided")

        if self._config.pause_seconds < 0:
            raise ValueError("pause_seconds must be >= 0")

        stop_event = asyncio.Event()
        budget = IterationBudget(self._config.iterations)
        completed = _Completed()

        started = time.monotonic()

        self._logger.info(
            "loadgen.start",
            vus=self._config.vus,
            duration_seconds=self._config.duration_seconds,
            iterations=self._config.iterations,
            pause_seconds=self._config.pause_seconds,
            thresholds=[f"{t.metric}: {t.expression}" for t in self._thresholds],
        )

        def _handle_signal(signum: int, _frame) -> None:  # pragma: no cover
            self._logger.warning("loadgen.signal", signum=signum)
            stop_event.set()

        with _SignalHandlers(_handle_signal):
            tasks: list[asyncio.Task[None]] = [
                asyncio.create_task(
                    self._virtual_user(
                        vu_id,
                        stop_event=stop_event,
                        budget=budget,
                        completed=completed,
                    )
                )
                for vu_id in range(self._config.vus)
            ]

            timer: asyncio.Task[None] | None = None
            if self._config.duration_seconds is not None:
                timer = asyncio.create_task(_stop_after(stop_event, self._config.duration_seconds))

            try:
                await asyncio.gather(*tasks)
            finally:
                stop_event.set()
                if timer is not None:
                    timer.cancel()
                for task in tasks:
                    if not task.done():
                        task.cancel()

        ended = time.monotonic()

        threshold_results = await self._evaluate()
        failed, total = self._load_test.aggregator.error_rate.snapshot()
        metrics_report = await self._metrics.build_report()

        result = RunResult(
            started_at_monotonic=started,
            ended_at_monotonic=ended,
            iterations=completed.count,
            request_count=total,
            error_count=failed,
            error_rate=(failed / total) if total else 0.0,
            metrics_report=metrics_report,
            thresholds=[r.to_dict() for r in threshold_results],
            aborted=self._aborted,
        )

        for r in threshold_results:
            log = self._logger.info if r.passed else self._logger.error
            log(
                "loadgen.threshold",
                metric=r.metric,
                expression=r.expression,
                observed=r.observed,
                passed=r.passed,
            )

        self._logger.info(
            "loadgen.end",
            iterations=result.iterations,
            request_count=result.request_count,
            error_count=result.error_count,
            error_rate=round(result.error_rate, 4),
            duration_seconds=round(result.duration_seconds, 3),
            throughput_rps=round(result.throughput_rps, 2),
            thresholds_passed=result.thresholds_passed,
            aborted=result.aborted,
        )

        return result

    async def _virtual_user(
        self,
        vu_id: int,
        *,
        stop_event: asyncio.Event,
        budget: IterationBudget,
        completed: "_Completed",
    ) -> None:
        while not stop_event.is_set():
            if not await budget.try_acquire():
                stop_event.set()
                break

            await self._load_test.iteration()
            completed.count += 1

            if await self._should_abort():
                self._logger.error("loadgen.threshold_abort", vu_id=vu_id)
                self._aborted = True
                stop_event.set()
                break

            if stop_event.is_set():
                break
            if self._config.pause_seconds > 0:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._config.pause_seconds)
                except asyncio.TimeoutError:
                    pass
            else:
                # Let the stop timer and other VUs run.
                await asyncio.sleep(0)

    async def _should_abort(self) -> bool:
        abortable = [t for t in self._thresholds if t.abort_on_fail]
        if not abortable:
            return False
        snapshots = await collect_snapshots(self._load_test.aggregator.error_rate, self._metrics)
        return any(not r.passed for r in evaluate_thresholds(abortable, snapshots))

    async def _evaluate(self) -> list[ThresholdResult]:
        snapshots = await collect_snapshots(self._load_test.aggregator.error_rate, self._metrics)
        return evaluate_thresholds(self._thresholds, snapshots)


class _Completed:
    def __init__(self) -> None:
        self.count = 0


async def _stop_after(stop_event: asyncio.Event, duration_seconds: float) -> None:
    await asyncio.sleep(max(0.0, duration_seconds))
    stop_event.set()


class _SignalHandlers:
    def __init__(self, handler) -> None:
        self._handler = handler
        self._previous: dict[int, object] = {}

    def __enter__(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous[signum] = signal.signal(signum, self._handler)
            except (ValueError, OSError):
                # Not the main thread, or the platform forbids it.
                pass
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)  # type: ignore[arg-type]
            except (ValueError, OSError):
                pass
        return False
