"""Tests for the MetricsAggregator."""

from __future__ import annotations

import random
import threading

import pytest

from rampload.metrics.aggregator import MetricsAggregator
from rampload.metrics.models import NO_RESPONSE_STATUS, RequestSample
from rampload.patterns.stages import Stage

STAGES = (Stage(5.0, 10), Stage(5.0, 0))


def _sample(
    latency_ms: float = 10.0,
    status_code: int = 200,
    *,
    stage_index: int = 0,
    error: str | None = None,
    user_id: int = 0,
) -> RequestSample:
    return RequestSample(
        timestamp=0.0,
        latency_ms=latency_ms,
        status_code=status_code,
        checks={"status is 200": status_code == 200},
        user_id=user_id,
        stage_index=stage_index,
        error=error,
    )


class TestRecord:
    def test_counts_requests_and_checks(self) -> None:
        agg = MetricsAggregator(STAGES, ["status is 200"])
        agg.record(_sample())
        agg.record(_sample(status_code=500))
        summary = agg.summarize(duration_seconds=1.0)

        assert summary.total_requests == 2
        assert summary.failed_requests == 1
        assert summary.checks["status is 200"].passes == 1
        assert summary.checks["status is 200"].fails == 1
        assert summary.check_pass_rate == pytest.approx(0.5)
        assert summary.errors_by_status == {500: 1}

    def test_configured_checks_appear_even_without_samples(self) -> None:
        summary = MetricsAggregator(STAGES, ["status is 200"]).summarize(1.0)
        assert summary.checks["status is 200"].total == 0
        assert summary.checks_passed

    def test_network_failures_counted_by_type(self) -> None:
        agg = MetricsAggregator(STAGES, ["status is 200"])
        agg.record(
            RequestSample(
                timestamp=0.0,
                latency_ms=0.4,
                status_code=NO_RESPONSE_STATUS,
                checks={"status is 200": False},
                error="ClientConnectorError: Cannot connect to host",
            )
        )
        summary = agg.summarize(1.0)
        assert summary.failed_rate == 1.0
        assert summary.errors_by_type == {"ClientConnectorError": 1}
        assert not summary.checks_passed

    def test_per_stage_breakdown(self) -> None:
        agg = MetricsAggregator(STAGES)
        agg.record(_sample(stage_index=0))
        agg.record(_sample(stage_index=1))
        agg.record(_sample(stage_index=1, status_code=503))
        stages = agg.summarize(1.0).stages
        assert [(s.index, s.requests, s.failed_requests) for s in stages] == [(0, 1, 0), (1, 2, 1)]

    def test_concurrent_writers_lose_no_updates(self) -> None:
        agg = MetricsAggregator(STAGES, ["status is 200"])
        per_thread = 2_000

        def writer(user_id: int) -> None:
            for i in range(per_thread):
                agg.record(_sample(latency_ms=float(i % 50), user_id=user_id))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        summary = agg.summarize(1.0)
        assert summary.total_requests == 8 * per_thread
        assert summary.checks["status is 200"].passes == 8 * per_thread
        assert sum(s.requests for s in summary.stages) == 8 * per_thread


class TestPercentiles:
    def test_summary_percentiles(self) -> None:
        agg = MetricsAggregator(STAGES)
        for i in range(1, 101):
            agg.record(_sample(latency_ms=float(i)))
        summary = agg.summarize(1.0)
        assert 49.0 <= summary.latency_med <= 51.0
        assert 94.0 <= summary.latency_p95 <= 96.0
        assert summary.latency_min == pytest.approx(1.0, rel=0.01)
        assert summary.latency_max == pytest.approx(100.0, rel=0.01)
        assert agg.latency_percentile(95.0) == summary.latency_p95

    def test_order_of_samples_does_not_matter(self) -> None:
        latencies = [float(i) for i in range(1, 501)]
        shuffled = latencies[:]
        random.Random(7).shuffle(shuffled)

        ordered, unordered = MetricsAggregator(STAGES), MetricsAggregator(STAGES)
        for value in latencies:
            ordered.record(_sample(latency_ms=value))
        for value in shuffled:
            unordered.record(_sample(latency_ms=value))

        for p in (50.0, 90.0, 95.0, 99.0):
            assert ordered.latency_percentile(p) == unordered.latency_percentile(p)


class TestFlush:
    def test_flush_drains_interval_only(self) -> None:
        agg = MetricsAggregator(STAGES)
        for value in (10.0, 20.0, 30.0):
            agg.record(_sample(latency_ms=value))
        agg.record(_sample(status_code=500))

        snapshot = agg.flush(elapsed_seconds=1.0, active_users=4, stage_index=0)
        assert snapshot.total_requests == 4
        assert snapshot.failed_requests == 1
        assert snapshot.active_users == 4
        assert snapshot.latency_avg == pytest.approx(17.5)
        assert snapshot.requests_per_second > 0

        empty = agg.flush(elapsed_seconds=2.0, active_users=4, stage_index=0)
        assert empty.total_requests == 0
        assert empty.latency_p95 == 0.0
        assert agg.total_requests == 4

    def test_summary_rate_uses_duration(self) -> None:
        agg = MetricsAggregator(STAGES)
        for _ in range(20):
            agg.record(_sample())
        summary = agg.summarize(duration_seconds=4.0, peak_users=3)
        assert summary.requests_per_second == pytest.approx(5.0)
        assert summary.peak_users == 3
