"""Pass/fail thresholds over the run's metrics.

Expressions follow the k6 syntax the soak jobs were written against, e.g.
``http_req_failed: rate<0.01`` or ``http_req_duration: p(95)<200``.

Metrics:
    errors             share of failed checks (status != 200 or no response)
    http_req_failed    share of requests answered outside 200-399 or not at all
    http_req_duration  request latency in milliseconds
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from loadgen.core.metrics import MetricsCollector, percentile
from loadgen.core.outcome import ErrorRate
from loadgen.exceptions import ThresholdSyntaxError

RATE = "rate"
TREND = "trend"

METRIC_KINDS: dict[str, str] = {
    "errors": RATE,
    "http_req_failed": RATE,
    "http_req_duration": TREND,
}

_AGGREGATIONS: dict[str, frozenset[str]] = {
    RATE: frozenset({"rate", "count"}),
    TREND: frozenset({"avg", "min", "max", "med", "count", "p"}),
}

DEFAULT_THRESHOLDS: dict[str, list[str]] = {
    "http_req_failed": ["rate<0.01"],
    "http_req_duration": ["p(95)<200"],
}

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_EXPR_RE = re.compile(
    r"^(?P<agg>[a-z]+)(?:\((?P<pct>\d+(?:\.\d+)?)\))?\s*"
    r"(?P<op><=|>=|==|!=|<|>)\s*"
    r"(?P<value>-?\d+(?:\.\d+)?)$"
)


@dataclass(frozen=True)
class Threshold:
    metric: str
    expression: str
    aggregation: str
    op: str
    value: float
    percentile: float | None = None
    abort_on_fail: bool = False

    def evaluate(self, snapshot: "MetricSnapshot") -> "ThresholdResult":
        observed = snapshot.observe(self.aggregation, self.percentile)
        # No data yet is not a crossing.
        passed = True if observed is None else _OPERATORS[self.op](observed, self.value)
        return ThresholdResult(
            metric=self.metric,
            expression=self.expression,
            observed=observed,
            passed=passed,
        )


@dataclass(frozen=True)
class ThresholdResult:
    metric: str
    expression: str
    observed: float | None
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "expression": self.expression,
            "observed": self.observed,
            "passed": self.passed,
        }


@dataclass
class MetricSnapshot:
    values: dict[str, float | None] = field(default_factory=dict)
    sample: list[int] = field(default_factory=list)

    def observe(self, aggregation: str, pct: float | None = None) -> float | None:
        if aggregation == "p":
            return percentile(self.sample, (pct or 0.0) / 100.0)
        if aggregation == "med":
            return percentile(self.sample, 0.5)
        return self.values.get(aggregation)


def parse_threshold(metric: str, expression: str, *, abort_on_fail: bool = False) -> Threshold:
    kind = METRIC_KINDS.get(metric)
    if kind is None:
        raise ThresholdSyntaxError(
            expression,
            f"unknown metric {metric!r}; use one of: {', '.join(sorted(METRIC_KINDS))}",
        )

    match = _EXPR_RE.match(expression.strip())
    if not match:
        raise ThresholdSyntaxError(expression, "expected <aggregation><op><number>, e.g. rate<0.01")

    agg = match.group("agg")
    pct_raw = match.group("pct")
    if agg not in _AGGREGATIONS[kind]:
        raise ThresholdSyntaxError(expression, f"aggregation {agg!r} does not apply to {metric}")
    if (agg == "p") != (pct_raw is not None):
        raise ThresholdSyntaxError(expression, "percentiles are written p(N)")

    pct = float(pct_raw) if pct_raw is not None else None
    if pct is not None and not 0 <= pct <= 100:
        raise ThresholdSyntaxError(expression, "percentile must be between 0 and 100")

    return Threshold(
        metric=metric,
        expression=expression.strip(),
        aggregation=agg,
        op=match.group("op"),
        value=float(match.group("value")),
        percentile=pct,
        abort_on_fail=abort_on_fail,
    )


def parse_thresholds(
    by_metric: Mapping[str, list[str]],
    *,
    abort_on_fail: bool = False,
) -> list[Threshold]:
    return [
        parse_threshold(metric, expr, abort_on_fail=abort_on_fail)
        for metric, expressions in by_metric.items()
        for expr in expressions
    ]


def parse_threshold_arg(raw: str) -> tuple[str, str]:
    """Split a ``METRIC:EXPR`` command line value."""
    metric, sep, expr = raw.partition(":")
    if not sep or not metric.strip() or not expr.strip():
        raise ThresholdSyntaxError(raw, "expected METRIC:EXPRESSION, e.g. errors:rate<0.01")
    return metric.strip(), expr.strip()


async def collect_snapshots(
    error_rate: ErrorRate,
    metrics: MetricsCollector,
) -> dict[str, MetricSnapshot]:
    failed, total = error_rate.snapshot()
    overall = await metrics.overall()
    sample = await metrics.duration_sample()

    req_count = overall["count"]
    return {
        "errors": MetricSnapshot(
            values={"rate": (failed / total) if total else None, "count": float(failed)},
        ),
        "http_req_failed": MetricSnapshot(
            values={
                "rate": (overall["error_count"] / req_count) if req_count else None,
                "count": float(overall["error_count"]),
            },
        ),
        "http_req_duration": MetricSnapshot(
            values={
                "avg": overall["mean_ms"],
                "min": None if overall["min_ms"] is None else float(overall["min_ms"]),
                "max": None if overall["max_ms"] is None else float(overall["max_ms"]),
                "count": float(req_count),
            },
            sample=sample,
        ),
    }


def evaluate_thresholds(
    thresholds: list[Threshold],
    snapshots: Mapping[str, MetricSnapshot],
) -> list[ThresholdResult]:
    return [t.evaluate(snapshots.get(t.metric, MetricSnapshot())) for t in thresholds]
