from __future__ import annotations

import asyncio
import math
import random
from typing import Any

from loadgen.core.models import Group
from loadgen.logger import Logger, session_logger

# Series keys: () overall, (target,) per target, (target, group) per shard.
SeriesKey = tuple[str, ...]


def percentile(sorted_values: list[int], p: float) -> float | None:
    """Linear-interpolation percentile of an ascending list; ``p`` in [0, 1]."""
    if not sorted_values:
        return None
    rank = min(max(p, 0.0), 1.0) * (len(sorted_values) - 1)
    lo = math.floor(rank)
    hi = math.ceil(rank)
    return float(sorted_values[lo] + (sorted_values[hi] - sorted_values[lo]) * (rank - lo))


class _Series:
    """Counts, failures and a bounded latency sample for one series.

    A 12h soak produces millions of requests; the sample is a fixed-size
    reservoir so memory stays flat. Requests without a response are counted
    but have no latency.
    """

    def __init__(self, sample_size: int, rng: random.Random) -> None:
        self.count = 0
        self.error_count = 0
        self.error_types: dict[str, int] = {}
        self.timed = 0
        self.total_ms = 0
        self.min_ms: int | None = None
        self.max_ms: int | None = None
        self.sample: list[int] = []
        self._sample_size = sample_size
        self._rng = rng

    def add(self, duration_ms: int | None, success: bool, error_type: str | None) -> None:
        self.count += 1
        if not success:
            self.error_count += 1
            kind = error_type or "unknown"
            self.error_types[kind] = self.error_types.get(kind, 0) + 1

        if duration_ms is None:
            return
        self.timed += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = duration_ms if self.max_ms is None else max(self.max_ms, duration_ms)

        if len(self.sample) < self._sample_size:
            self.sample.append(duration_ms)
        else:
            slot = self._rng.randrange(self.timed)
            if slot < self._sample_size:
                self.sample[slot] = duration_ms

    def report(self) -> dict[str, Any]:
        ordered = sorted(self.sample)
        return {
            "count": self.count,
            "error_count": self.error_count,
            "error_rate_pct": round(self.error_count / self.count * 100, 2) if self.count else 0.0,
            "error_types": dict(self.error_types),
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "mean_ms": (self.total_ms / self.timed) if self.timed else None,
            "p50_ms": percentile(ordered, 0.50),
            "p95_ms": percentile(ordered, 0.95),
            "p99_ms": percentile(ordered, 0.99),
            "sample_size": len(ordered),
        }


class MetricsCollector:
    """Per-request latency and failure aggregation.

    Tracked overall, per target and per (target, group). A request counts as
    failed here when the adapter answered outside 200-399 or did not answer
    at all; this backs the ``http_req_failed`` and ``http_req_duration``
    thresholds.
    """

    def __init__(
        self,
        *,
        sample_size: int = 5000,
        seed: int | None = None,
        logger: Logger | None = None,
    ) -> None:
        if sample_size <= 0:
            raise ValueError("sample_size must be > 0")
        self._logger = logger or session_logger
        self._lock = asyncio.Lock()
        self._sample_size = sample_size
        self._rng = random.Random(seed)
        self._series: dict[SeriesKey, _Series] = {(): self._new_series()}

    def _new_series(self) -> _Series:
        return _Series(self._sample_size, self._rng)

    async def record(
        self,
        *,
        target_id: str,
        group: Group,
        duration_ms: int | None,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        """Record one request. ``duration_ms`` is None when nothing came back."""

        if duration_ms is not None and duration_ms < 0:
            duration_ms = 0
        group_name = str(group)

        async with self._lock:
            for key in ((), (target_id,), (target_id, group_name)):
                series = self._series.get(key)
                if series is None:
                    series = self._series[key] = self._new_series()
                series.add(duration_ms, success, error_type)

        if not success and error_type:
            self._logger.debug(
                "loadgen.metric_error_recorded",
                target_id=target_id,
                group=group_name,
                error_type=error_type,
            )

    async def overall(self) -> dict[str, Any]:
        async with self._lock:
            return self._series[()].report()

    async def duration_sample(self) -> list[int]:
        """Sorted overall latency sample, for percentile thresholds."""
        async with self._lock:
            return sorted(self._series[()].sample)

    async def build_report(self) -> dict[str, Any]:
        async with self._lock:
            by_target: dict[str, Any] = {}
            by_target_group: dict[str, Any] = {}
            for key, series in self._series.items():
                if len(key) == 1:
                    by_target[key[0]] = series.report()
                elif len(key) == 2:
                    by_target_group["::".join(key)] = series.report()
            return {
                "overall": self._series[()].report(),
                "by_target": by_target,
                "by_target_group": by_target_group,
            }
