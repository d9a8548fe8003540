"""Spread a batch of dispatches evenly across a time window."""

from __future__ import annotations

from datetime import timedelta


def compute_delay(index: int, total: int, spread_minutes: int) -> timedelta | None:
    """Return the activation delay for item ``index`` of a ``total``-item batch.

    The first item runs immediately and the last one runs ``spread_minutes``
    later; items in between are floored to whole minutes. ``None`` means
    "dispatch now", which is also returned for a computed delay of zero.

    For 100 items over 60 minutes: item 0 -> now, item 50 -> 30 min,
    item 99 -> 60 min.
    """
    if spread_minutes <= 0 or total <= 1:
        return None

    # Integer arithmetic keeps the last index exactly on spread_minutes.
    minutes = index * spread_minutes // (total - 1)

    if minutes == 0:
        return None
    return timedelta(minutes=minutes)


def delay_minutes(delay: timedelta | None) -> int:
    """Whole minutes of a delay, 0 for "no delay"."""
    if delay is None:
        return 0
    return int(delay.total_seconds() // 60)
