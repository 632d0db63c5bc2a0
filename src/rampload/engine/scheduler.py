"""Scheduler that turns a concurrency pattern into per-tick scale commands."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from rampload.patterns.base import _validate_positive

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rampload.patterns.stages import StagePattern


class ScaleDirection(Enum):
    """Direction of a concurrency change between two ticks."""

    UP = auto()
    DOWN = auto()
    HOLD = auto()


@dataclass(frozen=True)
class ScaleCommand:
    """A command to adjust the number of active virtual users.

    Attributes:
        elapsed_seconds: Time offset from run start.
        target_concurrency: Desired number of active virtual users.
        direction: Whether this is scaling up, down, or holding steady.
        delta: Absolute change in virtual user count (always >= 0).
        stage_index: Stage whose interval contains ``elapsed_seconds``.
    """

    elapsed_seconds: float
    target_concurrency: int
    direction: ScaleDirection
    delta: int
    stage_index: int


class Scheduler:
    """Emits one ``ScaleCommand`` per tick of a ``StagePattern``.

    The first command is relative to an empty pool, so a pattern starting
    at N users opens with ``UP`` by N. The last command always falls on the
    run's final stage boundary.

    Args:
        pattern: Stage pattern to follow.
        tick_interval: Seconds between ticks. Must be > 0.
    """

    def __init__(self, pattern: StagePattern, tick_interval: float = 1.0) -> None:
        _validate_positive(tick_interval, "tick_interval")
        self._pattern = pattern
        self._tick_interval = tick_interval

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def iter_commands(self) -> Iterator[ScaleCommand]:
        """Yield a ScaleCommand for each tick, tracking deltas between ticks."""
        prev_concurrency = 0
        for elapsed, target in self._pattern.iter_concurrency(self._tick_interval):
            delta = target - prev_concurrency
            if delta > 0:
                direction = ScaleDirection.UP
            elif delta < 0:
                direction = ScaleDirection.DOWN
            else:
                direction = ScaleDirection.HOLD

            yield ScaleCommand(
                elapsed_seconds=elapsed,
                target_concurrency=target,
                direction=direction,
                delta=abs(delta),
                stage_index=self._pattern.stage_index_at(elapsed),
            )
            prev_concurrency = target

    @property
    def total_ticks(self) -> int:
        """Number of commands :meth:`iter_commands` will yield."""
        return sum(1 for _ in self._pattern.iter_concurrency(self._tick_interval))
