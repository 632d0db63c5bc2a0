"""Dynamic pool of virtual users with a spawn/drain protocol."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from rampload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampload.engine.executor import VirtualUser

logger = get_logger("engine.pool")


class WorkerPool:
    """Keeps the number of running virtual users equal to a target.

    Scale-up creates new users, each running as its own asyncio task.
    Scale-down signals the most recently spawned users to stop (LIFO); they
    leave the active set immediately but keep running until their current
    iteration has finished, so ``active_count`` matches the target right
    after :meth:`scale_to` while in-flight requests still complete.

    Scale-up first takes back users that are still draining and only spawns
    new ones for the remainder, so ``active_count + draining_count`` never
    exceeds the highest target requested.

    Args:
        factory: Builds a ``VirtualUser`` for a given user id.
    """

    def __init__(self, factory: Callable[[int], VirtualUser]) -> None:
        self._factory = factory
        self._active: list[tuple[VirtualUser, asyncio.Task[None]]] = []
        self._stopping: list[tuple[VirtualUser, asyncio.Task[None]]] = []
        self._next_user_id = 0
        self._peak = 0

    @property
    def active_count(self) -> int:
        """Users that have not been asked to stop."""
        return len(self._active)

    @property
    def draining_count(self) -> int:
        """Users asked to stop whose current iteration is still running."""
        return sum(1 for user, _ in self._stopping if not user.finished)

    @property
    def peak_count(self) -> int:
        """Highest ``active_count`` reached so far."""
        return self._peak

    @property
    def spawned_count(self) -> int:
        return self._next_user_id

    def scale_to(self, target: int) -> None:
        """Spawn or stop users so that ``active_count == target``.

        Args:
            target: Desired number of active users. Negative values are
                treated as zero.
        """
        target = max(target, 0)
        current = len(self._active)

        if target > current:
            revived = self._revive(target - current)
            for _ in range(target - current - revived):
                self._spawn()
        elif target < current:
            for _ in range(current - target):
                user, task = self._active.pop()
                user.stop()
                self._stopping.append((user, task))

        self._peak = max(self._peak, len(self._active))
        if target != current:
            logger.debug(
                "Scaled pool %d -> %d users (%d draining)",
                current,
                target,
                self.draining_count,
            )

    async def drain(self) -> None:
        """Stop every user and wait for all of them to finish.

        Users finish their in-flight request and emit its sample before
        exiting; nothing is cancelled. Each wait is therefore bounded by the
        HTTP client's request timeout.
        """
        self.scale_to(0)
        pending = [task for _, task in self._stopping]
        if pending:
            logger.debug("Draining %d virtual users", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        self._stopping.clear()

    async def cancel_all(self) -> None:
        """Cancel every user task immediately.

        Only used when the run is aborting after an engine failure.
        """
        tasks = [task for _, task in self._active + self._stopping]
        self._active.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._stopping.clear()

    def _revive(self, wanted: int) -> int:
        """Move up to *wanted* draining users back to the active set."""
        revived = 0
        finished: list[tuple[VirtualUser, asyncio.Task[None]]] = []
        while revived < wanted and self._stopping:
            user, task = self._stopping.pop()
            if task.done() or not user.resume():
                finished.append((user, task))
                continue
            self._active.append((user, task))
            revived += 1
        # Users whose loop has ended stay tracked until their task exits.
        self._stopping.extend(reversed(finished))
        if revived:
            logger.debug("Revived %d draining virtual users", revived)
        return revived

    def _spawn(self) -> None:
        user_id = self._next_user_id
        self._next_user_id += 1
        user = self._factory(user_id)
        task = asyncio.create_task(user.run(), name=f"virtual-user-{user_id}")
        task.add_done_callback(self._on_user_exit)
        self._active.append((user, task))

    def _on_user_exit(self, task: asyncio.Task[None]) -> None:
        # Unstopped users only exit by crashing; the next tick respawns them.
        self._active = [(u, t) for u, t in self._active if t is not task]
        self._stopping = [(u, t) for u, t in self._stopping if t is not task]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Virtual user task %s crashed",
                task.get_name(),
                exc_info=task.exception(),
            )
