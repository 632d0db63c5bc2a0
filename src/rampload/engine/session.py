"""Run lifecycle: scheduling, draining, threshold evaluation, reporting."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from rampload._internal.errors import EngineError
from rampload._internal.logging import get_logger
from rampload.engine.executor import VirtualUser
from rampload.engine.pool import WorkerPool
from rampload.engine.scheduler import ScaleDirection, Scheduler
from rampload.metrics.aggregator import MetricsAggregator
from rampload.metrics.models import MetricSnapshot, RunResult
from rampload.metrics.thresholds import evaluate_thresholds

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampload._internal.config import RunConfig

logger = get_logger("engine.session")


class RunState(Enum):
    """State machine for a load test run."""

    INIT = auto()
    RAMPING = auto()
    DRAINING = auto()
    REPORTING = auto()
    DONE = auto()
    FAILED = auto()


class LoadTestSession:
    """Drives one run from the first tick to the final report.

    State machine: INIT -> RAMPING -> DRAINING -> REPORTING -> DONE
                          -> FAILED (on an engine error)

    During RAMPING the scheduler adjusts the worker pool once per tick and
    the aggregator emits an interval snapshot. SIGINT/SIGTERM end RAMPING
    early; the run still drains and reports.

    Args:
        config: Immutable run configuration.
        on_snapshot: Called with each per-tick ``MetricSnapshot``.
        reporter: Called once with the final ``RunResult`` in REPORTING.
        handle_signals: Install SIGINT/SIGTERM handlers for the run.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        reporter: Callable[[RunResult], None] | None = None,
        handle_signals: bool = True,
    ) -> None:
        self._config = config
        self._pattern = config.pattern()
        self._on_snapshot = on_snapshot
        self._reporter = reporter
        self._handle_signals = handle_signals

        self._state = RunState.INIT
        self._stop_event: asyncio.Event | None = None
        self._interrupted = False
        self._pool: WorkerPool | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def pool(self) -> WorkerPool | None:
        """The worker pool while the run is in progress."""
        return self._pool

    def stop(self) -> None:
        """Request an early end of RAMPING; the run then drains and reports."""
        if self._stop_event is not None and not self._stop_event.is_set():
            logger.info("Graceful shutdown requested")
            self._interrupted = True
            self._stop_event.set()

    async def run(self) -> RunResult:
        """Execute the full run lifecycle.

        Returns:
            RunResult with the summary, threshold outcomes and snapshots.

        Raises:
            EngineError: If scheduling fails unexpectedly. Request failures
                never raise; they are recorded as failed samples.
        """
        config = self._config
        pattern = self._pattern
        self._stop_event = asyncio.Event()

        aggregator = MetricsAggregator(
            stages=pattern.stages,
            check_names=[c.name for c in config.checks],
        )
        scheduler = Scheduler(pattern, config.tick_interval)
        start_time = time.monotonic()
        pool = WorkerPool(
            lambda user_id: VirtualUser(
                user_id,
                config,
                aggregator.record,
                run_start=start_time,
                stage_index_at=pattern.stage_index_at,
            )
        )
        self._pool = pool
        snapshots: list[MetricSnapshot] = []

        logger.info(
            "Starting run: url=%s, duration=%.1fs, max_users=%d, pattern=%s",
            config.target_url,
            pattern.total_duration,
            pattern.max_target,
            pattern.describe(),
        )

        self._install_signal_handlers()
        self._set_state(RunState.RAMPING)

        try:
            for command in scheduler.iter_commands():
                if await self._wait_until(start_time + command.elapsed_seconds):
                    break

                pool.scale_to(command.target_concurrency)
                if command.direction is not ScaleDirection.HOLD:
                    logger.debug(
                        "Scaling %s by %d to %d users",
                        command.direction.name.lower(),
                        command.delta,
                        command.target_concurrency,
                        extra={"stage_index": command.stage_index},
                    )

                elapsed = time.monotonic() - start_time
                snapshot = aggregator.flush(
                    elapsed_seconds=elapsed,
                    active_users=pool.active_count,
                    stage_index=command.stage_index,
                )
                snapshots.append(snapshot)
                if self._on_snapshot is not None:
                    self._on_snapshot(snapshot)

                logger.debug(
                    "Tick %.1fs: stage=%d, users=%d, rps=%.1f, p95=%.1fms, failed=%d",
                    elapsed,
                    command.stage_index,
                    pool.active_count,
                    snapshot.requests_per_second,
                    snapshot.latency_p95,
                    snapshot.failed_requests,
                    extra={"stage_index": command.stage_index},
                )

            self._set_state(RunState.DRAINING)
            await pool.drain()
        except Exception as exc:
            self._set_state(RunState.FAILED)
            logger.exception("Load test run failed")
            await pool.cancel_all()
            raise EngineError("Load test run failed") from exc
        finally:
            self._remove_signal_handlers()
            self._pool = None

        duration = time.monotonic() - start_time

        self._set_state(RunState.REPORTING)
        summary = aggregator.summarize(duration, peak_users=pool.peak_count)
        thresholds = evaluate_thresholds(
            config.thresholds,
            summary,
            aggregator.latency_percentile,
        )
        result = RunResult(
            target_url=config.target_url,
            pattern_description=pattern.describe(),
            duration_seconds=duration,
            summary=summary,
            thresholds=thresholds,
            snapshots=snapshots,
            interrupted=self._interrupted,
        )

        logger.info(
            "Run completed: duration=%.1fs, requests=%d, p95=%.1fms, failed=%.2f%%, "
            "checks=%.2f%%, thresholds=%s",
            duration,
            summary.total_requests,
            summary.latency_p95,
            summary.failed_rate * 100,
            summary.check_pass_rate * 100,
            "passed" if result.thresholds_passed else "FAILED",
        )

        if self._reporter is not None:
            self._reporter(result)

        self._set_state(RunState.DONE)
        return result

    async def _wait_until(self, deadline: float) -> bool:
        """Sleep until *deadline* (monotonic); return True if stopped first."""
        assert self._stop_event is not None
        remaining = deadline - time.monotonic()
        if remaining > 0:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
        return self._stop_event.is_set()

    def _set_state(self, state: RunState) -> None:
        logger.debug(
            "Run state %s -> %s",
            self._state.name,
            state.name,
            extra={"state": state.name},
        )
        self._state = state

    def _install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to :meth:`stop` for the run's duration."""
        if not self._handle_signals:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            loop.add_signal_handler(signal.SIGINT, self.stop)
            loop.add_signal_handler(signal.SIGTERM, self.stop)
        else:
            signal.signal(signal.SIGINT, lambda _s, _f: self.stop())
            signal.signal(signal.SIGTERM, lambda _s, _f: self.stop())

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if not self._handle_signals:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)


def _event_loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop factory if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop


def run_load_test(
    config: RunConfig,
    *,
    on_snapshot: Callable[[MetricSnapshot], None] | None = None,
    reporter: Callable[[RunResult], None] | None = None,
) -> RunResult:
    """Blocking entry point: run a session on a fresh event loop."""
    session = LoadTestSession(config, on_snapshot=on_snapshot, reporter=reporter)
    with asyncio.Runner(loop_factory=_event_loop_factory()) as runner:
        return runner.run(session.run())
