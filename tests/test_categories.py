"""Tests for sensor categorization."""

import pytest

from fps_monitor.categories import Category, classify


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Framerate", Category.FPS),
        ("Frametime", Category.FPS),
        ("FPS avg", Category.FPS),
        ("GPU temperature", Category.GPU),
        ("GPU1 usage", Category.GPU),
        ("CPU clock", Category.CPU),
        ("CPU3 usage", Category.CPU),
        ("Memory usage", Category.MEMORY),
        ("RAM usage", Category.MEMORY),
        ("Fan speed", Category.OTHER),
        ("Power", Category.OTHER),
        ("", Category.OTHER),
    ],
)
def test_classify(name: str, expected: Category) -> None:
    assert classify(name) == expected


class TestPriority:
    """The first matching rule wins: fps > gpu > cpu > memory."""

    def test_gpu_before_memory(self) -> None:
        """GPU memory usage is a GPU reading."""
        assert classify("GPU memory usage") == Category.GPU

    def test_fps_before_gpu(self) -> None:
        assert classify("GPU FPS") == Category.FPS

    def test_cpu_before_memory(self) -> None:
        assert classify("CPU RAM") == Category.CPU

    def test_case_insensitive(self) -> None:
        assert classify("framerATE") == Category.FPS
        assert classify("gpu TEMPERATURE") == Category.GPU


def test_category_values_are_route_names() -> None:
    assert [c.value for c in Category] == ["fps", "gpu", "cpu", "memory", "other"]
