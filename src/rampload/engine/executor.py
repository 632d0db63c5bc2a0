"""Per-virtual-user request loop."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

from rampload._internal.errors import RequestError
from rampload._internal.logging import get_logger
from rampload.checks import evaluate_checks, fail_all
from rampload.http_client import HttpClient
from rampload.metrics.models import NO_RESPONSE_STATUS, RequestSample

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampload._internal.config import RunConfig

logger = get_logger("engine.executor")


class VirtualUser:
    """One simulated client repeatedly requesting the target URL.

    Each iteration issues one GET, evaluates the configured checks, emits a
    ``RequestSample`` and then waits ``sleep_interval``. Network failures
    become failed samples and the loop carries on.

    Stopping is cooperative: :meth:`stop` is honoured between iterations
    only. A request already in flight always completes and its sample is
    always emitted; only the wait after it is cut short.

    Attributes:
        user_id: Unique identifier within the run.
    """

    def __init__(
        self,
        user_id: int,
        config: RunConfig,
        emit: Callable[[RequestSample], None],
        *,
        run_start: float,
        stage_index_at: Callable[[float], int],
    ) -> None:
        """Initialize a virtual user.

        Args:
            user_id: Unique identifier within the run.
            config: Run configuration (URL, checks, sleep, timeout).
            emit: Receives every sample, typically ``MetricsAggregator.record``.
            run_start: ``time.monotonic()`` at run start; sample timestamps
                are relative to it.
            stage_index_at: Maps an elapsed offset to its stage index.
        """
        self.user_id = user_id
        self._config = config
        self._emit = emit
        self._run_start = run_start
        self._stage_index_at = stage_index_at
        self._stop_event = asyncio.Event()
        self._iterations = 0
        self._finished = False

    @property
    def running(self) -> bool:
        """False once a stop has been requested."""
        return not self._stop_event.is_set()

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def finished(self) -> bool:
        """True once the request loop has exited."""
        return self._finished

    def stop(self) -> None:
        """Ask the user to exit after its current iteration."""
        self._stop_event.set()

    def resume(self) -> bool:
        """Withdraw a pending stop request.

        Returns:
            True if the user keeps looping, False if its loop has already
            ended and it can no longer be reused.
        """
        if self._finished:
            return False
        self._stop_event.clear()
        return True

    async def run(self) -> None:
        """Loop until stopped."""
        logger.debug("Virtual user %d started", self.user_id, extra={"user_id": self.user_id})
        async with HttpClient(
            headers=dict(self._config.headers),
            timeout=self._config.request_timeout,
        ) as client:
            while self.running:
                await self.iterate(client)
                await self._pause()
            self._finished = True
        logger.debug(
            "Virtual user %d stopped after %d iterations",
            self.user_id,
            self._iterations,
            extra={"user_id": self.user_id},
        )

    async def iterate(self, client: HttpClient) -> RequestSample:
        """Run exactly one request-check-emit cycle and return its sample."""
        checks = self._config.checks
        started = time.monotonic()
        elapsed = started - self._run_start

        try:
            response = await client.get(self._config.target_url)
        except RequestError as exc:
            logger.debug(
                "Request failed for user %d: %s",
                self.user_id,
                exc,
                extra={"user_id": self.user_id},
            )
            sample = RequestSample(
                timestamp=elapsed,
                latency_ms=exc.latency_ms,
                status_code=NO_RESPONSE_STATUS,
                checks=fail_all(checks),
                user_id=self.user_id,
                stage_index=self._stage_index_at(elapsed),
                error=str(exc),
            )
        else:
            sample = RequestSample(
                timestamp=elapsed,
                latency_ms=response.latency_ms,
                status_code=response.status_code,
                checks=evaluate_checks(checks, response.status_code, response.latency_ms),
                user_id=self.user_id,
                stage_index=self._stage_index_at(elapsed),
            )

        self._iterations += 1
        self._emit(sample)
        return sample

    async def _pause(self) -> None:
        """Sleep ``sleep_interval``, returning early if stopped."""
        if not self.running:
            return
        if self._config.sleep_interval <= 0:
            # Still yield so a zero-sleep user cannot starve the event loop.
            await asyncio.sleep(0)
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._config.sleep_interval)
