"""Abstract base class for concurrency patterns."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rampload._internal.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterator


class LoadPattern(ABC):
    """Abstract base for all concurrency patterns.

    A pattern defines how the target number of virtual users changes over
    a bounded run. Subclasses implement :meth:`target_at`; the base class
    samples it on a fixed tick grid.

    Example::

        pattern = StagePattern([Stage(10.0, 50), Stage(10.0, 0)])
        for elapsed, users in pattern.iter_concurrency(tick_interval=1.0):
            print(f"t={elapsed:.1f}s -> {users} users")
    """

    @property
    @abstractmethod
    def total_duration(self) -> float:
        """Total run length in seconds."""

    @abstractmethod
    def target_at(self, elapsed: float) -> int:
        """Return the target concurrency *elapsed* seconds into the run."""

    @abstractmethod
    def describe(self) -> str:
        """Return a short human-readable description for logs and reports."""

    def iter_concurrency(self, tick_interval: float = 1.0) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target_concurrency)`` at each tick.

        Ticks fall on ``0, tick, 2*tick, ...`` and the final boundary
        ``total_duration`` is always yielded, even when it is not a multiple
        of *tick_interval*.

        Args:
            tick_interval: Seconds between ticks. Must be > 0.

        Yields:
            ``(elapsed_seconds, target_concurrency)`` tuples.
        """
        _validate_positive(tick_interval, "tick_interval")
        total = self.total_duration
        ticks = math.floor(total / tick_interval + 1e-9)
        for i in range(ticks + 1):
            elapsed = i * tick_interval
            yield (elapsed, self.target_at(elapsed))
        if ticks * tick_interval < total - 1e-9:
            yield (total, self.target_at(total))


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigurationError` if *value* is not strictly positive."""
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigurationError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigurationError` if *value* is negative."""
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigurationError(msg)
