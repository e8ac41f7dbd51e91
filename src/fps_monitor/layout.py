"""Binary layout of the MSI Afterburner (MAHM v2.0) shared memory region.

The region starts with a fixed header followed by a contiguous array of
fixed-size entries. All integers are little-endian. Strings are fixed-width
byte buffers, NUL-terminated unless they fill the whole buffer.

Structures mirror the producer's C layout with natural alignment, so they can
be read with ``from_buffer_copy`` straight out of the mapped bytes.
"""

import ctypes
from ctypes import LittleEndianStructure, c_char, c_float, c_int64, c_uint32

# "MAHM" read as a little-endian uint32
MAHM_SIGNATURE = 0x4D41484D

# Default name of the mapping created by MSI Afterburner
MAHM_REGION_NAME = "MAHMSharedMemory"

# Width of every string buffer in an entry (MAX_PATH)
MAX_STRING = 260

# Afterburner writes strings in the ANSI code page
STRING_ENCODING = "cp1252"


# ─────────────────────────────────────────────────────────────────────────────
# Structures
# ─────────────────────────────────────────────────────────────────────────────


class SharedMemoryHeader(LittleEndianStructure):
    """MAHM_SHARED_MEMORY_HEADER.

    ``time`` is 8-byte aligned, so 4 bytes of padding follow ``entry_size``.
    The GPU entry fields are only present when ``header_size`` covers them.
    """

    _fields_ = [
        ("signature", c_uint32),
        ("version", c_uint32),
        ("header_size", c_uint32),
        ("entry_count", c_uint32),
        ("entry_size", c_uint32),
        ("time", c_int64),
        ("gpu_entry_count", c_uint32),
        ("gpu_entry_size", c_uint32),
    ]


class SharedMemoryEntry(LittleEndianStructure):
    """MAHM_SHARED_MEMORY_ENTRY: one monitored data source."""

    _fields_ = [
        ("src_name", c_char * MAX_STRING),
        ("src_units", c_char * MAX_STRING),
        ("localized_src_name", c_char * MAX_STRING),
        ("localized_src_units", c_char * MAX_STRING),
        ("recommended_format", c_char * MAX_STRING),
        ("data", c_float),
        ("min_limit", c_float),
        ("max_limit", c_float),
        ("flags", c_uint32),
        ("gpu", c_uint32),
        ("src_id", c_uint32),
    ]


# Bytes up to and including ``time``: the part of the header every version has
HEADER_MIN_SIZE = SharedMemoryHeader.time.offset + ctypes.sizeof(c_int64)

HEADER_SIZE = ctypes.sizeof(SharedMemoryHeader)
ENTRY_SIZE = ctypes.sizeof(SharedMemoryEntry)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def c_string(entry: SharedMemoryEntry, field: str) -> str:
    """Decode a fixed-width string field of an entry.

    Reads up to the first NUL byte, or the full buffer width when the producer
    filled it without a terminator. The producer writes ANSI (cp1252) text;
    undecodable bytes are replaced.
    """
    descriptor = getattr(SharedMemoryEntry, field)
    raw = ctypes.string_at(ctypes.addressof(entry) + descriptor.offset, descriptor.size)
    end = raw.find(b"\x00")
    if end != -1:
        raw = raw[:end]
    return raw.decode(STRING_ENCODING, errors="replace")
