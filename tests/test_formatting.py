"""Tests for formatting utilities."""

import time

from fps_monitor.formatting import format_age, format_value
from tests.conftest import make_reading


class TestFormatValue:
    """Tests for format_value."""

    def test_with_unit(self) -> None:
        assert format_value(make_reading("GPU temperature", 65.0, "C")) == "65.0 C"

    def test_without_unit(self) -> None:
        assert format_value(make_reading("Fan speed", 40.0, "")) == "40.0"

    def test_precision(self) -> None:
        reading = make_reading("Frametime", 6.944, "ms")
        assert format_value(reading, precision=2) == "6.94 ms"

    def test_missing(self) -> None:
        """Sources without data show n/a instead of a number."""
        assert format_value(make_reading("GPU usage", None, "%")) == "n/a"


class TestFormatAge:
    """Tests for format_age."""

    def test_seconds(self) -> None:
        assert format_age(1000.0, now=1003.0) == "3s ago"

    def test_minutes(self) -> None:
        assert format_age(1000.0, now=1000.0 + 125) == "2m ago"

    def test_hours(self) -> None:
        assert format_age(1000.0, now=1000.0 + 5400) == "1.5h ago"

    def test_future_clamped(self) -> None:
        """Clock skew never produces a negative age."""
        assert format_age(1010.0, now=1000.0) == "0s ago"

    def test_default_now(self) -> None:
        result = format_age(time.time() - 5)
        assert result.endswith("s ago")
        assert 4 <= int(result[:-5]) <= 6
