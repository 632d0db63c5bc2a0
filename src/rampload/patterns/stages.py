"""Stage-based concurrency pattern: piecewise-linear ramps between targets."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rampload._internal.errors import ConfigurationError
from rampload.patterns.base import LoadPattern, _validate_non_negative

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True)
class Stage:
    """One segment of a run.

    Over ``duration_seconds`` the target concurrency moves linearly from
    the previous stage's target to ``target``.

    Attributes:
        duration_seconds: Length of the stage. Zero means an instant jump.
        target: Virtual user count reached at the end of the stage.
    """

    duration_seconds: float
    target: int

    def describe(self) -> str:
        return f"{self.duration_seconds:g}s -> {self.target}"


class StagePattern(LoadPattern):
    """Ramp concurrency through an ordered list of stages.

    Stage ``i`` covers the half-open interval ``[start_i, end_i)``. Inside
    it the target is linearly interpolated from the previous stage's target
    (``start_users`` for the first stage) and rounded to the nearest integer.
    Once the last boundary has passed, the target holds at the last stage's
    value.

    Args:
        stages: Ordered stages. Must contain at least one entry.
        start_users: Concurrency at ``t=0``. Defaults to 0.

    Raises:
        ConfigurationError: If *stages* is empty, or any duration or target
            is negative.

    Example::

        pattern = StagePattern([Stage(10.0, 50), Stage(10.0, 100)])
        assert pattern.target_at(5.0) == 25
        assert pattern.target_at(15.0) == 75
        assert pattern.stage_index_at(15.0) == 1
    """

    def __init__(self, stages: Sequence[Stage], start_users: int = 0) -> None:
        if not stages:
            msg = "stages must contain at least one {duration, target} entry"
            raise ConfigurationError(msg)
        _validate_non_negative(start_users, "start_users")
        for i, stage in enumerate(stages):
            _validate_non_negative(stage.duration_seconds, f"stages[{i}].duration")
            _validate_non_negative(stage.target, f"stages[{i}].target")

        self._stages = tuple(stages)
        self._start_users = start_users

        # Cumulative end time of each stage, for bisecting elapsed offsets.
        ends: list[float] = []
        total = 0.0
        for stage in self._stages:
            total += stage.duration_seconds
            ends.append(total)
        self._ends = ends
        self._total = total

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def start_users(self) -> int:
        return self._start_users

    @property
    def total_duration(self) -> float:
        return self._total

    @property
    def max_target(self) -> int:
        """Highest concurrency the pattern can ever request."""
        return max(self._start_users, *(s.target for s in self._stages))

    def stage_index_at(self, elapsed: float) -> int:
        """Return the index of the stage whose interval contains *elapsed*.

        Offsets before zero map to the first stage and offsets at or past the
        end of the run map to the last stage. Zero-length stages never
        contain an offset.
        """
        if elapsed < 0:
            return 0
        index = bisect.bisect_right(self._ends, elapsed)
        return min(index, len(self._stages) - 1)

    def target_at(self, elapsed: float) -> int:
        if elapsed < 0:
            return self._start_users
        if elapsed >= self._total:
            return self._stages[-1].target

        index = self.stage_index_at(elapsed)
        stage = self._stages[index]
        previous = self._stages[index - 1].target if index > 0 else self._start_users
        stage_start = self._ends[index] - stage.duration_seconds
        fraction = (elapsed - stage_start) / stage.duration_seconds
        return max(round(previous + (stage.target - previous) * fraction), 0)

    def describe(self) -> str:
        steps = ", ".join(s.describe() for s in self._stages)
        return f"Stages: {len(self._stages)} over {self._total:g}s ({steps})"
