"""Decode the MAHM shared memory layout into snapshots.

Corrupted or mid-write memory is expected occasionally, so every failure mode
degrades to an empty snapshot instead of raising:

- buffer shorter than the mandatory header
- signature mismatch (including an all-zero region)
- header/entry sizes that cannot hold the structures
- an entry array that would extend past the end of the buffer
"""

import ctypes
import math
from pathlib import Path

import structlog

from fps_monitor.categories import Category, classify
from fps_monitor.layout import (
    ENTRY_SIZE,
    HEADER_MIN_SIZE,
    HEADER_SIZE,
    MAHM_SIGNATURE,
    SharedMemoryEntry,
    SharedMemoryHeader,
    c_string,
)
from fps_monitor.models import MAX_READINGS, SensorReading, Snapshot
from fps_monitor.region import open_region

log = structlog.get_logger()

# Values at or beyond this magnitude are the monitor's "no data" sentinel.
# Compared at 32-bit precision, like the producer writes them.
INVALID_THRESHOLD = ctypes.c_float(3.4e38).value


def read_header(buffer: memoryview | bytes) -> SharedMemoryHeader | None:
    """Read the header at offset 0, or None if the buffer is too short.

    Buffers that hold only the mandatory part of the header are zero-padded,
    which leaves the GPU entry fields at 0.
    """
    if len(buffer) < HEADER_MIN_SIZE:
        return None
    raw = bytes(buffer[:HEADER_SIZE])
    if len(raw) < HEADER_SIZE:
        raw = raw.ljust(HEADER_SIZE, b"\x00")
    header = SharedMemoryHeader.from_buffer_copy(raw)
    if header.header_size < HEADER_SIZE:
        # GPU fields are not part of this header, they belong to the first entry
        header.gpu_entry_count = 0
        header.gpu_entry_size = 0
    return header


def validate_header(header: SharedMemoryHeader | None, length: int) -> str | None:
    """Return the reason a header is unusable, or None if it is valid."""
    if header is None:
        return "short_buffer"
    if header.signature != MAHM_SIGNATURE:
        return "bad_signature"
    if header.header_size < HEADER_MIN_SIZE:
        return "bad_header_size"
    if header.entry_count and header.entry_size < ENTRY_SIZE:
        return "bad_entry_size"
    if header.header_size + header.entry_count * header.entry_size > length:
        return "entries_out_of_bounds"
    return None


def sensor_value(raw: float) -> float | None:
    """Apply the sentinel check to a raw 32-bit value.

    Magnitudes >= 3.4e38 (either sign, infinities included) mean "no data".
    NaN is treated the same way since it has no usable magnitude.
    """
    if math.isnan(raw) or raw >= INVALID_THRESHOLD or raw <= -INVALID_THRESHOLD:
        return None
    return raw


def decode(buffer: memoryview | bytes, captured_at: int) -> Snapshot:
    """Decode a mapped region into a snapshot stamped with ``captured_at``.

    Readings are appended to ``all`` and to their category subset, each
    capped independently at MAX_READINGS. Decoding continues past a full
    subset so later records still reach the other subsets.
    """
    length = len(buffer)
    header = read_header(buffer)
    reason = validate_header(header, length)
    if reason is not None:
        log.debug("region_invalid", reason=reason, length=length)
        return Snapshot.empty(captured_at)

    subsets: dict[Category, list[SensorReading]] = {
        Category.FPS: [],
        Category.GPU: [],
        Category.CPU: [],
        Category.MEMORY: [],
    }
    all_readings: list[SensorReading] = []

    for i in range(header.entry_count):
        offset = header.header_size + i * header.entry_size
        if offset + header.entry_size > length:
            break
        entry = SharedMemoryEntry.from_buffer_copy(buffer[offset : offset + ENTRY_SIZE])

        name = c_string(entry, "src_name")
        category = classify(name)
        reading = SensorReading(
            name=name,
            value=sensor_value(entry.data),
            unit=c_string(entry, "src_units"),
            gpu_index=entry.gpu,
            category=category,
            timestamp=captured_at,
        )

        if len(all_readings) < MAX_READINGS:
            all_readings.append(reading)
        subset = subsets.get(category)
        if subset is not None and len(subset) < MAX_READINGS:
            subset.append(reading)

    return Snapshot(
        timestamp=captured_at,
        fps=tuple(subsets[Category.FPS]),
        gpu=tuple(subsets[Category.GPU]),
        cpu=tuple(subsets[Category.CPU]),
        memory=tuple(subsets[Category.MEMORY]),
        all=tuple(all_readings),
    )


def capture(region_name: str, captured_at: int, shm_dir: Path | None = None) -> Snapshot:
    """Map the region, decode it and release it within one call.

    An absent region yields the same empty snapshot as a corrupt one.
    """
    with open_region(region_name, shm_dir=shm_dir) as region:
        if region is None:
            return Snapshot.empty(captured_at)
        return decode(region.view(), captured_at)
