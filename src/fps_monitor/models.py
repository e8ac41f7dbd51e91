"""Data models for fps-monitor."""

import ctypes
from dataclasses import dataclass
from typing import Any

from fps_monitor.categories import Category

# Maximum readings kept per subset (bounds response size)
MAX_READINGS = 100

# Subsets exposed by a snapshot, in response order
SUBSETS = ("fps", "gpu", "cpu", "memory", "all")


def float32_repr(value: float) -> float:
    """Return the shortest decimal that reads back as the same float32.

    Sensor values are 32-bit floats widened to Python floats, so 144.2 is
    held as 144.1999969482422. JSON output uses the short form. Values that
    are not float32-exact are returned unchanged.
    """
    for digits in range(1, 10):
        candidate = float(f"{value:.{digits}g}")
        if ctypes.c_float(candidate).value == value:
            return candidate
    return value


@dataclass(slots=True, frozen=True)
class SensorReading:
    """Immutable reading of one data source."""

    name: str
    value: float | None  # None: the monitor reported its "no data" sentinel
    unit: str
    gpu_index: int
    category: Category
    timestamp: int  # Capture time of the snapshot, epoch seconds

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; ``value`` is omitted when missing."""
        data: dict[str, Any] = {"name": self.name}
        if self.value is not None:
            data["value"] = float32_repr(self.value)
        data["unit"] = self.unit
        data["gpu_index"] = self.gpu_index
        data["category"] = self.category.value
        data["timestamp"] = self.timestamp
        return data


@dataclass(frozen=True)
class Snapshot:
    """Immutable, fully decoded view of all current telemetry.

    Built wholesale by the poller on every cycle and never mutated after
    publication. ``all`` holds every reading in record order; the category
    subsets hold the readings of that category. Readings tagged ``other``
    only appear in ``all``. Every subset is capped at MAX_READINGS.
    """

    timestamp: int
    fps: tuple[SensorReading, ...] = ()
    gpu: tuple[SensorReading, ...] = ()
    cpu: tuple[SensorReading, ...] = ()
    memory: tuple[SensorReading, ...] = ()
    all: tuple[SensorReading, ...] = ()

    @classmethod
    def empty(cls, timestamp: int) -> "Snapshot":
        """Snapshot with no readings (region absent or invalid)."""
        return cls(timestamp=timestamp)

    @property
    def is_empty(self) -> bool:
        return not self.all

    @property
    def fps_count(self) -> int:
        return len(self.fps)

    @property
    def gpu_count(self) -> int:
        return len(self.gpu)

    @property
    def cpu_count(self) -> int:
        return len(self.cpu)

    @property
    def memory_count(self) -> int:
        return len(self.memory)

    @property
    def all_count(self) -> int:
        return len(self.all)

    def subset(self, name: str) -> tuple[SensorReading, ...]:
        """Return a subset by name (fps, gpu, cpu, memory, all)."""
        if name not in SUBSETS:
            raise ValueError(f"Unknown subset: {name!r}. Valid subsets: {list(SUBSETS)}")
        return getattr(self, name)

    def to_dict(self) -> dict[str, Any]:
        """Return the full JSON status document."""
        data: dict[str, Any] = {"timestamp": self.timestamp}
        for name in SUBSETS:
            data[name] = [reading.to_dict() for reading in self.subset(name)]
        for name in SUBSETS:
            data[f"{name}_count"] = len(self.subset(name))
        return data
