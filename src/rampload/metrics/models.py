"""Sample and summary dataclasses for rampload metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rampload._internal.errors import ThresholdFailure

if TYPE_CHECKING:
    from rampload._internal.types import CheckOutcomes
    from rampload.metrics.thresholds import ThresholdResult

# status_code recorded when no HTTP response was received.
NO_RESPONSE_STATUS = 0

__all__ = [
    "NO_RESPONSE_STATUS",
    "CheckStats",
    "MetricSnapshot",
    "RequestSample",
    "RunResult",
    "RunSummary",
    "StageStats",
]


@dataclass(frozen=True)
class RequestSample:
    """Raw record emitted by a virtual user for every request.

    Attributes:
        timestamp: Seconds since run start when the request began.
        latency_ms: Response time in milliseconds (time to failure for
            requests that never got a response).
        status_code: HTTP status, or ``NO_RESPONSE_STATUS`` on network error.
        checks: Outcome of every configured check for this request.
        user_id: Virtual user that issued the request.
        stage_index: Stage whose interval contains ``timestamp``.
        error: Error description if the request failed, None otherwise.
    """

    timestamp: float
    latency_ms: float
    status_code: int
    checks: CheckOutcomes
    user_id: int = 0
    stage_index: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        """True for network errors and 4xx/5xx responses."""
        return self.status_code == NO_RESPONSE_STATUS or self.status_code >= 400


@dataclass
class MetricSnapshot:
    """Interval statistics emitted once per scheduler tick.

    Attributes:
        elapsed_seconds: Seconds since the run started.
        active_users: Active virtual users after the tick's scaling.
        stage_index: Stage active at this tick.
        total_requests: Requests completed during the interval.
        requests_per_second: Interval request rate.
        latency_avg: Mean latency (ms) in the interval.
        latency_p50: Median latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        failed_requests: Failed requests in the interval.
    """

    elapsed_seconds: float
    active_users: int
    stage_index: int = 0
    total_requests: int = 0
    requests_per_second: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    failed_requests: int = 0


@dataclass
class CheckStats:
    """Pass/fail counts for one named check."""

    name: str
    passes: int = 0
    fails: int = 0

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def pass_rate(self) -> float:
        return self.passes / self.total if self.total else 0.0


@dataclass
class StageStats:
    """Requests attributed to one stage interval."""

    index: int
    description: str
    requests: int = 0
    failed_requests: int = 0


@dataclass
class RunSummary:
    """Aggregate metrics over the whole run.

    Latencies are in milliseconds. ``check_pass_rate`` is the fraction of
    all individual check evaluations that passed.
    """

    duration_seconds: float
    total_requests: int = 0
    failed_requests: int = 0
    requests_per_second: float = 0.0
    latency_min: float = 0.0
    latency_avg: float = 0.0
    latency_med: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    latency_max: float = 0.0
    checks: dict[str, CheckStats] = field(default_factory=dict)
    stages: list[StageStats] = field(default_factory=list)
    errors_by_type: dict[str, int] = field(default_factory=dict)
    errors_by_status: dict[int, int] = field(default_factory=dict)
    peak_users: int = 0

    @property
    def failed_rate(self) -> float:
        return self.failed_requests / self.total_requests if self.total_requests else 0.0

    @property
    def check_pass_rate(self) -> float:
        passes = sum(c.passes for c in self.checks.values())
        total = sum(c.total for c in self.checks.values())
        return passes / total if total else 0.0

    @property
    def checks_passed(self) -> bool:
        """True when no check evaluation failed."""
        return all(c.fails == 0 for c in self.checks.values())


@dataclass
class RunResult:
    """Complete outcome of a load test run.

    Attributes:
        target_url: URL that was exercised.
        pattern_description: Human-readable stage description.
        duration_seconds: Wall-clock duration including drain.
        summary: Aggregate metrics.
        thresholds: Result of every configured threshold.
        snapshots: Per-tick interval statistics.
        interrupted: True if the run was stopped early by a signal.
    """

    target_url: str
    pattern_description: str
    duration_seconds: float
    summary: RunSummary
    thresholds: list[ThresholdResult] = field(default_factory=list)
    snapshots: list[MetricSnapshot] = field(default_factory=list)
    interrupted: bool = False

    @property
    def thresholds_passed(self) -> bool:
        return all(r.passed for r in self.thresholds)

    def raise_for_thresholds(self) -> None:
        """Raise :class:`ThresholdFailure` if any threshold did not pass."""
        failed = [r for r in self.thresholds if not r.passed]
        if failed:
            raise ThresholdFailure(failed)
