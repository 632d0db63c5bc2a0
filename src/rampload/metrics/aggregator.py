"""Thread-safe aggregation of request samples from all virtual users.

Every virtual user hands its ``RequestSample`` objects to one shared
``MetricsAggregator``. Two views are maintained under a single lock:

- **Cumulative**: an HDR histogram plus counters, never reset, used for the
  final summary and threshold evaluation.
- **Interval**: raw latencies since the last :meth:`MetricsAggregator.flush`,
  summarised with numpy once per scheduler tick for live display.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import TYPE_CHECKING

import numpy as np

from rampload.metrics.histogram import LatencyHistogram
from rampload.metrics.models import (
    CheckStats,
    MetricSnapshot,
    RunSummary,
    StageStats,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rampload.metrics.models import RequestSample
    from rampload.patterns.stages import Stage

_INTERVAL_PERCENTILES = [50.0, 95.0, 99.0]


class MetricsAggregator:
    """Collects samples concurrently and answers summary queries.

    ``record`` may be called from any number of coroutines or threads;
    updates are serialised by a ``threading.Lock`` so no sample is lost.
    Samples may arrive in any order.

    Args:
        stages: Stage list of the run, used for per-stage breakdowns.
        check_names: Names of configured checks, so checks that never ran
            still show up in the summary.
    """

    def __init__(
        self,
        stages: Sequence[Stage] = (),
        check_names: Iterable[str] = (),
    ) -> None:
        self._lock = threading.Lock()

        self._histogram = LatencyHistogram()
        self._total_requests = 0
        self._failed_requests = 0
        self._checks: dict[str, CheckStats] = {name: CheckStats(name) for name in check_names}
        self._stages = [
            StageStats(index=i, description=stage.describe()) for i, stage in enumerate(stages)
        ]
        self._errors_by_type: dict[str, int] = defaultdict(int)
        self._errors_by_status: dict[int, int] = defaultdict(int)

        self._interval_latencies: list[float] = []
        self._interval_failed = 0
        self._last_flush = time.monotonic()

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._total_requests

    def record(self, sample: RequestSample) -> None:
        """Add one sample to both the cumulative and interval views."""
        with self._lock:
            self._histogram.record_latency_ms(sample.latency_ms)
            self._total_requests += 1
            self._interval_latencies.append(sample.latency_ms)

            for name, passed in sample.checks.items():
                stats = self._checks.get(name)
                if stats is None:
                    stats = self._checks[name] = CheckStats(name)
                if passed:
                    stats.passes += 1
                else:
                    stats.fails += 1

            failed = sample.failed
            if failed:
                self._failed_requests += 1
                self._interval_failed += 1
                if sample.status_code >= 400:
                    self._errors_by_status[sample.status_code] += 1
                if sample.error is not None:
                    self._errors_by_type[sample.error.split(":")[0].strip()] += 1

            if 0 <= sample.stage_index < len(self._stages):
                stage = self._stages[sample.stage_index]
                stage.requests += 1
                if failed:
                    stage.failed_requests += 1

    def flush(
        self,
        elapsed_seconds: float,
        active_users: int,
        stage_index: int = 0,
    ) -> MetricSnapshot:
        """Drain the interval buffer into a ``MetricSnapshot``.

        Args:
            elapsed_seconds: Seconds since the run started.
            active_users: Active virtual users at this tick.
            stage_index: Stage active at this tick.

        Returns:
            Statistics for samples recorded since the previous flush.
        """
        with self._lock:
            latencies = self._interval_latencies
            failed = self._interval_failed
            self._interval_latencies = []
            self._interval_failed = 0
            now = time.monotonic()
            interval = max(now - self._last_flush, 0.001)
            self._last_flush = now

        snapshot = MetricSnapshot(
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            stage_index=stage_index,
            total_requests=len(latencies),
            requests_per_second=len(latencies) / interval,
            failed_requests=failed,
        )
        if latencies:
            arr = np.array(latencies, dtype=np.float64)
            p50, p95, p99 = np.percentile(arr, _INTERVAL_PERCENTILES)
            snapshot.latency_avg = float(np.mean(arr))
            snapshot.latency_p50 = float(p50)
            snapshot.latency_p95 = float(p95)
            snapshot.latency_p99 = float(p99)
        return snapshot

    def latency_percentile(self, percentile: float) -> float:
        """Cumulative latency (ms) at *percentile* over every recorded sample."""
        with self._lock:
            return self._histogram.get_percentile(percentile)

    def summarize(self, duration_seconds: float, peak_users: int = 0) -> RunSummary:
        """Build the final ``RunSummary``.

        Args:
            duration_seconds: Wall-clock run duration, for the request rate.
            peak_users: Highest concurrent virtual user count observed.
        """
        with self._lock:
            hist = self._histogram
            return RunSummary(
                duration_seconds=duration_seconds,
                total_requests=self._total_requests,
                failed_requests=self._failed_requests,
                requests_per_second=self._total_requests / max(duration_seconds, 0.001),
                latency_min=hist.get_min(),
                latency_avg=hist.get_mean(),
                latency_med=hist.get_percentile(50.0),
                latency_p90=hist.get_percentile(90.0),
                latency_p95=hist.get_percentile(95.0),
                latency_p99=hist.get_percentile(99.0),
                latency_max=hist.get_max(),
                checks={
                    name: CheckStats(name, s.passes, s.fails) for name, s in self._checks.items()
                },
                stages=[
                    StageStats(s.index, s.description, s.requests, s.failed_requests)
                    for s in self._stages
                ],
                errors_by_type=dict(self._errors_by_type),
                errors_by_status=dict(self._errors_by_status),
                peak_users=peak_users,
            )
