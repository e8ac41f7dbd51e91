"""Shared test fixtures for fps-monitor."""

from pathlib import Path

import pytest

from fps_monitor.categories import classify
from fps_monitor.layout import (
    ENTRY_SIZE,
    HEADER_SIZE,
    MAHM_REGION_NAME,
    MAHM_SIGNATURE,
    STRING_ENCODING,
    SharedMemoryEntry,
    SharedMemoryHeader,
)
from fps_monitor.models import SensorReading, Snapshot

# MAHM v2.0
MAHM_VERSION = 0x00020000


@pytest.fixture
def shm_dir(tmp_path: Path) -> Path:
    """Directory standing in for /dev/shm."""
    path = tmp_path / "shm"
    path.mkdir()
    return path


def make_entry(
    name: str,
    value: float,
    unit: str = "",
    gpu: int = 0,
) -> SharedMemoryEntry:
    """Create an entry the way the monitor fills one in."""
    entry = SharedMemoryEntry()
    entry.src_name = name.encode(STRING_ENCODING)
    entry.src_units = unit.encode(STRING_ENCODING)
    entry.localized_src_name = name.encode(STRING_ENCODING)
    entry.localized_src_units = unit.encode(STRING_ENCODING)
    entry.data = value
    entry.gpu = gpu
    return entry


def build_region(
    entries: list[SharedMemoryEntry],
    *,
    signature: int = MAHM_SIGNATURE,
    header_size: int = HEADER_SIZE,
    entry_size: int = ENTRY_SIZE,
    entry_count: int | None = None,
) -> bytes:
    """Serialize a header and entries into region bytes.

    ``header_size`` shorter than the full header truncates it (older
    layouts); ``entry_size`` larger than an entry pads every record.
    ``entry_count`` overrides the count written in the header.
    """
    header = SharedMemoryHeader(
        signature=signature,
        version=MAHM_VERSION,
        header_size=header_size,
        entry_count=len(entries) if entry_count is None else entry_count,
        entry_size=entry_size,
        time=1700000000,
    )
    data = bytes(header)[:header_size].ljust(header_size, b"\x00")
    for entry in entries:
        data += bytes(entry).ljust(entry_size, b"\x00")
    return data


def write_region(shm_dir: Path, data: bytes, name: str = MAHM_REGION_NAME) -> Path:
    """Write region bytes where the mmap backend will find them."""
    path = shm_dir / name
    path.write_bytes(data)
    return path


def make_reading(
    name: str = "GPU temperature",
    value: float | None = 65.0,
    unit: str = "C",
    gpu_index: int = 0,
    timestamp: int = 1700000000,
) -> SensorReading:
    """Create a SensorReading with its category derived from the name."""
    return SensorReading(
        name=name,
        value=value,
        unit=unit,
        gpu_index=gpu_index,
        category=classify(name),
        timestamp=timestamp,
    )


def make_snapshot(readings: list[SensorReading], timestamp: int = 1700000000) -> Snapshot:
    """Create a Snapshot with readings sorted into their subsets."""
    by_category: dict[str, list[SensorReading]] = {
        "fps": [],
        "gpu": [],
        "cpu": [],
        "memory": [],
    }
    for reading in readings:
        if reading.category.value in by_category:
            by_category[reading.category.value].append(reading)
    return Snapshot(
        timestamp=timestamp,
        fps=tuple(by_category["fps"]),
        gpu=tuple(by_category["gpu"]),
        cpu=tuple(by_category["cpu"]),
        memory=tuple(by_category["memory"]),
        all=tuple(readings),
    )
