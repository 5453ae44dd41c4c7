from __future__ import annotations

import asyncio
from typing import Mapping

from loadgen.core.batch import Batch
from loadgen.core.metrics import MetricsCollector
from loadgen.core.models import Outcome, Response
from loadgen.logger import Logger, session_logger

EXPECTED_STATUS = 200
MISSING_RESPONSE = "missing_response"


class ErrorRate:
    """Cumulative share of failed checks across the whole run.

    Safe to share between concurrent iteration units; it only tallies and
    never raises.
    """

    def __init__(self) -> None:
        self._failed = 0
        self._total = 0
        self._lock = asyncio.Lock()

    async def add(self, failed: bool) -> None:
        async with self._lock:
            self._total += 1
            if failed:
                self._failed += 1

    def snapshot(self) -> tuple[int, int]:
        """(failed, total)"""
        return self._failed, self._total

    @property
    def rate(self) -> float:
        failed, total = self.snapshot()
        return (failed / total) if total else 0.0


class OutcomeAggregator:
    """Scores one executed batch and folds the outcomes into the error rate."""

    def __init__(
        self,
        error_rate: ErrorRate,
        *,
        metrics: MetricsCollector | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._error_rate = error_rate
        self._metrics = metrics
        self._logger = logger or session_logger

    @property
    def error_rate(self) -> ErrorRate:
        return self._error_rate

    async def score(self, batch: Batch, responses: Mapping[str, Response]) -> list[Outcome]:
        outcomes: list[Outcome] = []

        for key, descriptor in batch.items():
            response = responses.get(key)
            if response is None:
                outcome = Outcome(
                    key=key,
                    group=descriptor.group,
                    target_id=descriptor.target_id,
                    passed=False,
                    status=None,
                    error_type=MISSING_RESPONSE,
                )
            else:
                passed = response.status == EXPECTED_STATUS
                outcome = Outcome(
                    key=key,
                    group=descriptor.group,
                    target_id=descriptor.target_id,
                    passed=passed,
                    status=response.status,
                    error_type=None if passed else (classify_http_error(response.status) or "unexpected_status"),
                )

            await self._error_rate.add(not outcome.passed)

            if self._metrics is not None:
                await self._metrics.record(
                    target_id=descriptor.target_id,
                    group=descriptor.group,
                    duration_ms=response.duration_ms if response is not None else None,
                    success=response is not None and classify_http_error(response.status) is None,
                    error_type=MISSING_RESPONSE if response is None else classify_http_error(response.status),
                )

            if not outcome.passed:
                self._logger.warning(
                    "loadgen.check_failed",
                    check=f"{key} returned {EXPECTED_STATUS}",
                    target_id=descriptor.target_id,
                    group=str(descriptor.group),
                    url=descriptor.url,
                    status_code=outcome.status,
                    error_type=outcome.error_type,
                )

            outcomes.append(outcome)

        unexpected = [key for key in responses if key not in batch]
        if unexpected:
            self._logger.warning(
                "loadgen.unexpected_responses",
                count=len(unexpected),
                keys=sorted(unexpected)[:10],
            )

        return outcomes


def classify_http_error(status_code: int) -> str | None:
    """Map an HTTP status code to a canonical error_type, or None if not an HTTP failure."""
    if 200 <= status_code < 400:
        return None
    if status_code == 401:
        return "auth_unauthorized"
    if status_code == 403:
        return "auth_forbidden"
    if status_code == 404:
        return "not_found"
    if status_code == 429:
        return "rate_limited"
    if 400 <= status_code < 500:
        return "client_error"
    if 500 <= status_code < 600:
        return "server_error"
    return f"http_{status_code}"
