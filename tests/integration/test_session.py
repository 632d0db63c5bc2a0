"""Integration tests for the LoadTestSession lifecycle."""

from __future__ import annotations

import logging

import pytest

from rampload._internal.config import RunConfig
from rampload._internal.errors import EngineError
from rampload.engine.session import LoadTestSession, RunState
from rampload.metrics.models import MetricSnapshot, RunResult
from rampload.metrics.thresholds import parse_thresholds
from rampload.patterns.stages import Stage

# Ramp to 4 users, hold, ramp back down.
STAGES = (Stage(0.6, 4), Stage(0.6, 4), Stage(0.4, 0))


def _config(url: str, **overrides: object) -> RunConfig:
    values: dict[str, object] = {
        "target_url": url,
        "stages": STAGES,
        "sleep_interval": 0.05,
        "tick_interval": 0.1,
        "request_timeout": 5.0,
    }
    values.update(overrides)
    return RunConfig(**values)  # type: ignore[arg-type]


@pytest.mark.timeout(30)
class TestLoadTestSession:
    async def test_full_run(self, target_server: str) -> None:
        snapshots: list[MetricSnapshot] = []
        states_at_report: list[RunState] = []
        reported: list[RunResult] = []

        def reporter(result: RunResult) -> None:
            states_at_report.append(session.state)
            reported.append(result)

        session = LoadTestSession(
            _config(f"{target_server}/clientes/1/extrato"),
            on_snapshot=snapshots.append,
            reporter=reporter,
            handle_signals=False,
        )
        assert session.state is RunState.INIT

        result = await session.run()

        assert session.state is RunState.DONE
        assert states_at_report == [RunState.REPORTING]
        assert reported == [result]
        assert session.pool is None

        summary = result.summary
        assert result.duration_seconds >= 1.6
        assert summary.total_requests >= 20
        assert summary.failed_requests == 0
        assert summary.checks_passed
        assert summary.check_pass_rate == 1.0
        assert summary.peak_users == 4
        assert [s.index for s in summary.stages] == [0, 1, 2]
        assert sum(s.requests for s in summary.stages) == summary.total_requests
        assert not result.interrupted
        assert result.snapshots == snapshots

    async def test_plateau_holds_target_concurrency(self, target_server: str) -> None:
        snapshots: list[MetricSnapshot] = []
        session = LoadTestSession(
            _config(f"{target_server}/clientes/1/extrato"),
            on_snapshot=snapshots.append,
            handle_signals=False,
        )
        await session.run()

        plateau = [s for s in snapshots if s.stage_index == 1]
        assert plateau
        assert all(s.active_users == 4 for s in plateau)
        assert snapshots[0].active_users == 0
        assert snapshots[-1].active_users == 0
        assert max(s.active_users for s in snapshots) == 4

    async def test_ramp_is_monotonic(self, target_server: str) -> None:
        snapshots: list[MetricSnapshot] = []
        session = LoadTestSession(
            _config(f"{target_server}/clientes/1/extrato"),
            on_snapshot=snapshots.append,
            handle_signals=False,
        )
        await session.run()

        ramp_up = [s.active_users for s in snapshots if s.stage_index == 0]
        assert ramp_up == sorted(ramp_up)

    async def test_thresholds_are_evaluated(self, target_server: str) -> None:
        thresholds = parse_thresholds(
            {
                "http_req_duration": ["p(95)<10s", "avg<10000"],
                "http_req_failed": "rate<0.01",
                "http_reqs": "count<1",
            }
        )
        session = LoadTestSession(
            _config(f"{target_server}/clientes/1/extrato", thresholds=thresholds),
            handle_signals=False,
        )
        result = await session.run()

        passed = {r.threshold.expression: r.passed for r in result.thresholds}
        assert passed == {
            "p(95)<10s": True,
            "avg<10000": True,
            "rate<0.01": True,
            "count<1": False,
        }
        assert not result.thresholds_passed

    async def test_unreachable_target_fails_every_check(self, unreachable_url: str) -> None:
        session = LoadTestSession(_config(unreachable_url), handle_signals=False)
        result = await session.run()

        summary = result.summary
        assert session.state is RunState.DONE
        assert summary.total_requests > 0
        assert summary.check_pass_rate == 0.0
        assert summary.failed_rate == 1.0
        assert not summary.checks_passed
        assert summary.errors_by_type

    async def test_server_errors_are_counted(self, target_server: str) -> None:
        session = LoadTestSession(
            _config(f"{target_server}/error?status=503"),
            handle_signals=False,
        )
        result = await session.run()

        summary = result.summary
        assert summary.errors_by_status == {503: summary.total_requests}
        assert summary.check_pass_rate == 0.0

    async def test_stop_ends_ramping_early(self, target_server: str) -> None:
        snapshots: list[MetricSnapshot] = []

        def on_snapshot(snapshot: MetricSnapshot) -> None:
            snapshots.append(snapshot)
            if len(snapshots) == 3:
                session.stop()

        session = LoadTestSession(
            _config(f"{target_server}/clientes/1/extrato"),
            on_snapshot=on_snapshot,
            handle_signals=False,
        )
        result = await session.run()

        assert result.interrupted
        assert len(snapshots) == 3
        assert result.duration_seconds < 1.6
        assert session.state is RunState.DONE

    async def test_snapshot_callback_error_fails_run(self, target_server: str) -> None:
        def explode(_snapshot: MetricSnapshot) -> None:
            raise ValueError("boom")

        session = LoadTestSession(
            _config(f"{target_server}/clientes/1/extrato"),
            on_snapshot=explode,
            handle_signals=False,
        )

        with pytest.raises(EngineError):
            await session.run()
        assert session.state is RunState.FAILED

    async def test_scaling_decisions_are_logged(
        self, target_server: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        logger = logging.getLogger("rampload")
        logger.addHandler(caplog.handler)
        caplog.set_level(logging.DEBUG, logger="rampload")
        try:
            session = LoadTestSession(
                _config(f"{target_server}/clientes/1/extrato"),
                handle_signals=False,
            )
            await session.run()
        finally:
            logger.removeHandler(caplog.handler)

        messages = [
            r.getMessage() for r in caplog.records if r.name == "rampload.engine.session"
        ]
        assert any(m.startswith("Scaling up by") for m in messages)
        assert any(m.startswith("Scaling down by") for m in messages)
        assert any(m.endswith("to 0 users") for m in messages)
