from __future__ import annotations

import asyncio

from loadgen.core.batch import BatchBuilder
from loadgen.core.executor import BatchExecutor
from loadgen.core.gate import eligible_targets
from loadgen.core.models import LocalMode
from loadgen.core.outcome import OutcomeAggregator
from loadgen.core.roster import TargetRoster
from loadgen.logger import Logger, session_logger


class IterationCounter:
    """Process-wide iteration counter shared by all virtual users.

    ``next()`` hands out 0, 1, 2, ... exactly once each, so the first batch of
    a run always covers every target.
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("start must be >= 0")
        self._next = start
        self._lock = asyncio.Lock()

    async def next(self) -> int:
        async with self._lock:
            value = self._next
            self._next += 1
            return value

    @property
    def issued(self) -> int:
        return self._next


class LoadTest:
    """The per-iteration unit of work handed to the runner.

    gate -> route -> build -> execute -> score. Configuration errors and
    executor failures propagate; failed checks only move the error rate.
    """

    def __init__(
        self,
        roster: TargetRoster,
        builder: BatchBuilder,
        executor: BatchExecutor,
        aggregator: OutcomeAggregator,
        *,
        counter: IterationCounter | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._roster = roster
        self._builder = builder
        self._executor = executor
        self._aggregator = aggregator
        self._counter = counter or IterationCounter()
        self._logger = logger or session_logger

    @property
    def counter(self) -> IterationCounter:
        return self._counter

    @property
    def aggregator(self) -> OutcomeAggregator:
        return self._aggregator

    async def iteration(self) -> None:
        current = await self._counter.next()

        if isinstance(self._builder.mode, LocalMode):
            eligible = []
        else:
            eligible = eligible_targets(self._roster, current)

        batch = self._builder.for_targets(eligible)
        if not batch:
            self._logger.debug("loadgen.iteration_empty", iteration=current)
            return

        responses = await self._executor.execute(batch)
        outcomes = await self._aggregator.score(batch, responses)

        failed = sum(1 for o in outcomes if not o.passed)
        self._logger.info(
            "loadgen.iteration_done",
            iteration=current,
            targets=len({d.target_id for d in batch.values()}),
            requests=len(batch),
            failed=failed,
            error_rate=round(self._aggregator.error_rate.rate, 4),
        )
