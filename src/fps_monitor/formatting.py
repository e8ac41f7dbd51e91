"""Formatting utilities for CLI output."""

import time

from fps_monitor.models import SensorReading


def format_value(reading: SensorReading, precision: int = 1) -> str:
    """Format a reading's value with its unit.

    Returns "n/a" when the monitor reported no data for the source.
    """
    if reading.value is None:
        return "n/a"
    value = f"{reading.value:.{precision}f}"
    return f"{value} {reading.unit}" if reading.unit else value


def format_age(timestamp: float, *, now: float | None = None) -> str:
    """Format how long ago a capture happened ("3s ago", "2m ago")."""
    if now is None:
        now = time.time()
    age = max(0.0, now - timestamp)
    if age < 60:
        return f"{age:.0f}s ago"
    if age < 3600:
        return f"{age / 60:.0f}m ago"
    return f"{age / 3600:.1f}h ago"
