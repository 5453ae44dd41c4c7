from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from loadgen.exceptions import InvalidCadenceError, ValidationError

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

LOCAL_GROUP = "local"
LOCAL_URL = "http://host.docker.internal:8080"

# A load test group is a shard index in staging mode, or "local".
Group = Union[int, str]


class Channel(str, Enum):
    """Release channel of the staging cluster.

    qa: ephemeral per-release deployments (adapters.qa.stage)
    main: the long-lived staging deployments (adapters.main.stage)
    """

    QA = "qa"
    MAIN = "main"


@dataclass(frozen=True)
class Target:
    """A named remote adapter under load.

    ``cadence`` is the number of iterations between eligible calls; 1 means
    every iteration.
    """

    id: str
    cadence: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValidationError("INVALID_TARGET", "target id must be a non-empty string")
        # bool is an int subclass; True would silently mean cadence 1.
        if isinstance(self.cadence, bool) or not isinstance(self.cadence, int) or self.cadence < 1:
            raise InvalidCadenceError(self.id, self.cadence)


@dataclass(frozen=True)
class Payload:
    """A canned request: name, HTTP method and a body template.

    ``body`` is structured data (sent as JSON) or a raw string (sent as is).
    """

    name: str
    method: str = "POST"
    body: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValidationError("INVALID_PAYLOAD", "payload name must be a non-empty string")
        if self.method not in HTTP_METHODS:
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"payload {self.name!r} has unsupported method {self.method!r}",
                details={"payload": self.name, "method": self.method},
            )


@dataclass(frozen=True)
class LocalMode:
    """Single target on a loopback endpoint; bypasses sharding and gating."""

    target_name: str
    url: str = LOCAL_URL


@dataclass(frozen=True)
class StagingMode:
    """``group_count`` shards against the staging cluster.

    ``base_url`` overrides the host chosen by ``channel`` and must end with "/".
    """

    group_count: int
    channel: Channel = Channel.MAIN
    release_tag: str | None = None
    base_url: str | None = None


DeploymentMode = Union[LocalMode, StagingMode]


@dataclass(frozen=True)
class RequestDescriptor:
    key: str
    group: Group
    target_id: str
    payload_name: str
    method: str
    url: str
    body: Any
    headers: tuple[tuple[str, str], ...] = (("Content-Type", "application/json"),)


@dataclass(frozen=True)
class Response:
    """What the executor reports back for one dispatched descriptor."""

    status: int
    duration_ms: int | None = None


@dataclass(frozen=True)
class Outcome:
    key: str
    group: Group
    target_id: str
    passed: bool
    status: int | None
    error_type: str | None = None


@dataclass(frozen=True)
class RunConfig:
    vus: int
    duration_seconds: float | None
    iterations: int | None
    pause_seconds: float = 1.0
    timeout_seconds: float = 30.0
    thresholds: dict[str, list[str]] = field(default_factory=dict)
    abort_on_fail: bool = False


@dataclass
class RunResult:
    started_at_monotonic: float
    ended_at_monotonic: float
    iterations: int
    request_count: int
    error_count: int
    error_rate: float
    metrics_report: dict[str, Any] | None = None
    thresholds: list[dict[str, Any]] = field(default_factory=list)
    aborted: bool = False

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)

    @property
    def throughput_rps(self) -> float:
        duration = self.duration_seconds
        return (self.request_count / duration) if duration > 0 else 0.0

    @property
    def thresholds_passed(self) -> bool:
        return all(t["passed"] for t in self.thresholds)
