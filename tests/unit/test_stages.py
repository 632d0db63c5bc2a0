"""Tests for the stage pattern."""

from __future__ import annotations

import pytest

from rampload._internal.errors import ConfigurationError
from rampload.patterns.stages import Stage, StagePattern

SCRIPT_STAGES = [Stage(10.0, 50), Stage(10.0, 100), Stage(10.0, 200), Stage(10.0, 0)]


class TestStagePatternValidation:
    def test_rejects_empty_stage_list(self) -> None:
        with pytest.raises(ConfigurationError, match="at least one"):
            StagePattern([])

    def test_rejects_negative_duration(self) -> None:
        with pytest.raises(ConfigurationError, match="non-negative"):
            StagePattern([Stage(-1.0, 10)])

    def test_rejects_negative_target(self) -> None:
        with pytest.raises(ConfigurationError, match="non-negative"):
            StagePattern([Stage(5.0, -1)])

    def test_rejects_negative_start_users(self) -> None:
        with pytest.raises(ConfigurationError):
            StagePattern([Stage(5.0, 1)], start_users=-2)


class TestStagePatternTargets:
    def test_total_duration_is_sum_of_stages(self) -> None:
        assert StagePattern(SCRIPT_STAGES).total_duration == 40.0

    def test_max_target(self) -> None:
        assert StagePattern(SCRIPT_STAGES).max_target == 200
        assert StagePattern([Stage(5.0, 3)], start_users=8).max_target == 8

    def test_linear_ramp_within_each_stage(self) -> None:
        pattern = StagePattern(SCRIPT_STAGES)
        assert pattern.target_at(0.0) == 0
        assert pattern.target_at(5.0) == 25
        assert pattern.target_at(10.0) == 50
        assert pattern.target_at(15.0) == 75
        assert pattern.target_at(20.0) == 100
        assert pattern.target_at(25.0) == 150
        assert pattern.target_at(30.0) == 200
        assert pattern.target_at(35.0) == 100
        assert pattern.target_at(40.0) == 0

    def test_holds_last_target_after_end(self) -> None:
        pattern = StagePattern([Stage(2.0, 10)])
        assert pattern.target_at(2.0) == 10
        assert pattern.target_at(100.0) == 10

    def test_start_users_is_initial_level(self) -> None:
        pattern = StagePattern([Stage(10.0, 20)], start_users=10)
        assert pattern.target_at(0.0) == 10
        assert pattern.target_at(5.0) == 15

    def test_plateau_when_consecutive_targets_match(self) -> None:
        pattern = StagePattern([Stage(2.0, 10), Stage(4.0, 10)])
        for t in (2.0, 3.0, 4.5, 5.9):
            assert pattern.target_at(t) == 10

    def test_zero_duration_stage_jumps(self) -> None:
        pattern = StagePattern([Stage(0.0, 30), Stage(10.0, 30)])
        assert pattern.target_at(0.0) == 30
        assert pattern.target_at(5.0) == 30

    def test_never_exceeds_max_target(self) -> None:
        pattern = StagePattern(SCRIPT_STAGES)
        for _, users in pattern.iter_concurrency(tick_interval=0.25):
            assert 0 <= users <= pattern.max_target


class TestStageIndex:
    def test_intervals_are_half_open(self) -> None:
        pattern = StagePattern(SCRIPT_STAGES)
        assert pattern.stage_index_at(0.0) == 0
        assert pattern.stage_index_at(9.99) == 0
        assert pattern.stage_index_at(10.0) == 1
        assert pattern.stage_index_at(39.0) == 3

    def test_after_end_maps_to_last_stage(self) -> None:
        pattern = StagePattern(SCRIPT_STAGES)
        assert pattern.stage_index_at(40.0) == 3
        assert pattern.stage_index_at(41.5) == 3

    def test_zero_duration_stage_contains_no_offset(self) -> None:
        pattern = StagePattern([Stage(5.0, 10), Stage(0.0, 50), Stage(5.0, 50)])
        assert pattern.stage_index_at(4.9) == 0
        assert pattern.stage_index_at(5.0) == 2


class TestIterConcurrency:
    def test_ticks_cover_whole_run(self) -> None:
        ticks = list(StagePattern([Stage(5.0, 10), Stage(5.0, 0)]).iter_concurrency(1.0))
        assert [t for t, _ in ticks] == [float(i) for i in range(11)]
        assert ticks[5][1] == 10
        assert ticks[-1][1] == 0

    def test_final_boundary_always_emitted(self) -> None:
        ticks = list(StagePattern([Stage(2.5, 4)]).iter_concurrency(1.0))
        assert [t for t, _ in ticks] == [0.0, 1.0, 2.0, 2.5]
        assert ticks[-1][1] == 4

    def test_zero_length_run_yields_single_tick(self) -> None:
        assert list(StagePattern([Stage(0.0, 3)]).iter_concurrency(1.0)) == [(0.0, 3)]

    def test_rejects_non_positive_tick(self) -> None:
        with pytest.raises(ConfigurationError, match="tick_interval"):
            list(StagePattern([Stage(1.0, 1)]).iter_concurrency(0.0))

    def test_describe_lists_stages(self) -> None:
        text = StagePattern(SCRIPT_STAGES).describe()
        assert "4" in text
        assert "10s -> 200" in text
