"""Tests for spreading dispatches across a window."""

from __future__ import annotations

from datetime import timedelta

from opencopy.scheduling.spreader import compute_delay, delay_minutes


class TestComputeDelay:
    def test_hundred_items_over_an_hour(self) -> None:
        assert compute_delay(0, 100, 60) is None
        assert compute_delay(50, 100, 60) == timedelta(minutes=30)
        assert compute_delay(99, 100, 60) == timedelta(minutes=60)

    def test_three_items(self) -> None:
        delays = [compute_delay(i, 3, 60) for i in range(3)]
        assert delays == [None, timedelta(minutes=30), timedelta(minutes=60)]

    def test_single_item_runs_now(self) -> None:
        assert compute_delay(0, 1, 60) is None

    def test_spread_disabled(self) -> None:
        assert compute_delay(5, 10, 0) is None
        assert compute_delay(5, 10, -1) is None

    def test_small_offsets_floor_to_zero(self) -> None:
        """With more items than minutes, the early items all run immediately."""
        assert compute_delay(1, 100, 10) is None
        assert compute_delay(10, 100, 10) == timedelta(minutes=1)

    def test_delays_are_monotonic(self) -> None:
        minutes = [delay_minutes(compute_delay(i, 37, 55)) for i in range(37)]
        assert minutes == sorted(minutes)
        assert minutes[0] == 0
        assert minutes[-1] == 55


class TestDelayMinutes:
    def test_none_is_zero(self) -> None:
        assert delay_minutes(None) == 0

    def test_whole_minutes(self) -> None:
        assert delay_minutes(timedelta(minutes=30)) == 30
