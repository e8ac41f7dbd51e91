"""Read-only access to a named shared memory region.

On Windows the region is a named file mapping created by the monitoring
application, opened through kernel32 via ctypes. Elsewhere the region is a
file under a shared memory directory (``/dev/shm`` by default) mapped with
``mmap``; this is also how tests and POSIX writers provide a region.

A missing region is the normal state while the monitoring application is not
running, so every open failure is reported as ``None`` rather than raised.
"""

import ctypes
import mmap
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from ctypes import c_size_t, c_uint32, c_void_p
from pathlib import Path

import structlog

log = structlog.get_logger()

DEFAULT_SHM_DIR = Path("/dev/shm")

# ─────────────────────────────────────────────────────────────────────────────
# Library loading
# ─────────────────────────────────────────────────────────────────────────────

FILE_MAP_READ = 0x0004

if sys.platform == "win32":
    _kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    _KERNEL32_AVAILABLE = True
else:
    _kernel32 = None
    _KERNEL32_AVAILABLE = False


class MemoryBasicInformation(ctypes.Structure):
    """MEMORY_BASIC_INFORMATION from winnt.h (only RegionSize is used)."""

    _fields_ = [
        ("base_address", c_void_p),
        ("allocation_base", c_void_p),
        ("allocation_protect", c_uint32),
        ("region_size", c_size_t),
        ("state", c_uint32),
        ("protect", c_uint32),
        ("type", c_uint32),
    ]


if _KERNEL32_AVAILABLE and _kernel32:
    _kernel32.OpenFileMappingW.argtypes = [c_uint32, ctypes.c_int, ctypes.c_wchar_p]
    _kernel32.OpenFileMappingW.restype = c_void_p

    _kernel32.MapViewOfFile.argtypes = [c_void_p, c_uint32, c_uint32, c_uint32, c_size_t]
    _kernel32.MapViewOfFile.restype = c_void_p

    _kernel32.UnmapViewOfFile.argtypes = [c_void_p]
    _kernel32.UnmapViewOfFile.restype = ctypes.c_int

    _kernel32.CloseHandle.argtypes = [c_void_p]
    _kernel32.CloseHandle.restype = ctypes.c_int

    _kernel32.VirtualQuery.argtypes = [
        c_void_p,
        ctypes.POINTER(MemoryBasicInformation),
        c_size_t,
    ]
    _kernel32.VirtualQuery.restype = c_size_t


# ─────────────────────────────────────────────────────────────────────────────
# Regions
# ─────────────────────────────────────────────────────────────────────────────


class MemoryRegion:
    """A mapped region. Use through ``open_region``; ``close()`` is idempotent."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._view: memoryview | None = None

    @property
    def closed(self) -> bool:
        return self._view is None

    def view(self) -> memoryview:
        """Read-only bytes of the region, valid until ``close()``."""
        if self._view is None:
            raise ValueError(f"Region {self.name!r} is closed")
        return self._view

    def __len__(self) -> int:
        return len(self._view) if self._view is not None else 0

    def close(self) -> None:
        if self._view is not None:
            self._view.release()
            self._view = None


class FileMappingRegion(MemoryRegion):
    """Windows named file mapping.

    The view is copied out once, so decoding works on a stable image while the
    producer keeps writing into the live mapping.
    """

    def __init__(self, name: str, handle: int, address: int, size: int) -> None:
        super().__init__(name)
        self._handle: int | None = handle
        self._address: int | None = address
        self._view = memoryview(ctypes.string_at(address, size))

    def close(self) -> None:
        super().close()
        if self._address is not None:
            _kernel32.UnmapViewOfFile(self._address)
            self._address = None
        if self._handle is not None:
            _kernel32.CloseHandle(self._handle)
            self._handle = None


class MmapRegion(MemoryRegion):
    """File-backed region mapped read-only."""

    def __init__(self, name: str, mapping: mmap.mmap) -> None:
        super().__init__(name)
        self._mmap: mmap.mmap | None = mapping
        self._view = memoryview(mapping)

    def close(self) -> None:
        super().close()
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None


def _open_file_mapping(name: str) -> MemoryRegion | None:
    """Open a Windows named mapping for reading, or None if it doesn't exist."""
    handle = _kernel32.OpenFileMappingW(FILE_MAP_READ, 0, name)
    if not handle:
        log.debug("region_absent", name=name, error=ctypes.get_last_error())
        return None

    address = _kernel32.MapViewOfFile(handle, FILE_MAP_READ, 0, 0, 0)
    if not address:
        log.debug("region_map_failed", name=name, error=ctypes.get_last_error())
        _kernel32.CloseHandle(handle)
        return None

    info = MemoryBasicInformation()
    if not _kernel32.VirtualQuery(address, ctypes.byref(info), ctypes.sizeof(info)):
        log.debug("region_query_failed", name=name, error=ctypes.get_last_error())
        _kernel32.UnmapViewOfFile(address)
        _kernel32.CloseHandle(handle)
        return None

    return FileMappingRegion(name, handle, address, info.region_size)


def _open_mmap(name: str, shm_dir: Path) -> MemoryRegion | None:
    """Map ``shm_dir/name`` read-only, or None if it is missing or empty."""
    path = shm_dir / name
    try:
        with open(path, "rb") as f:
            if os.fstat(f.fileno()).st_size == 0:
                log.debug("region_empty", path=str(path))
                return None
            mapping = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
    except FileNotFoundError:
        log.debug("region_absent", path=str(path))
        return None
    except (OSError, ValueError) as e:
        log.debug("region_map_failed", path=str(path), error=str(e))
        return None
    return MmapRegion(name, mapping)


def try_open(name: str, shm_dir: Path | None = None) -> MemoryRegion | None:
    """Open a region by name, returning None when it is absent.

    ``shm_dir`` selects the file-backed backend even on Windows.
    """
    if shm_dir is None and _KERNEL32_AVAILABLE:
        return _open_file_mapping(name)
    return _open_mmap(name, shm_dir or DEFAULT_SHM_DIR)


@contextmanager
def open_region(name: str, *, shm_dir: Path | None = None) -> Iterator[MemoryRegion | None]:
    """Scoped acquisition of a region; yields None when it is absent.

    The region is closed on every exit path, including exceptions raised
    while decoding it.
    """
    region = try_open(name, shm_dir)
    try:
        yield region
    finally:
        if region is not None:
            region.close()
