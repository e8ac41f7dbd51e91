"""Single-slot snapshot store with non-blocking access.

One producer (the poller) publishes complete, immutable snapshots; any number
of request handlers read them. Neither side ever waits: a publish that finds
the slot taken is skipped, and a read that finds it taken reports
``UNAVAILABLE``. A reader may therefore see data up to one poll interval old.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from fps_monitor.models import Snapshot


class _Unavailable(Enum):
    """Marker for "no snapshot right now, retry later"."""

    UNAVAILABLE = "unavailable"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = _Unavailable.UNAVAILABLE


class SnapshotStore:
    """Holds the current snapshot behind a try-acquire-only slot.

    The slot is held by a publish while it swaps the reference, and by a
    reader for the duration of its lease. Snapshots are immutable, so a reader
    can keep using the one it got after releasing the slot.
    """

    def __init__(self) -> None:
        self._slot = threading.Lock()
        self._current: Snapshot | None = None
        self._published = 0
        self._skipped = 0

    @property
    def published(self) -> int:
        """Number of successful publishes."""
        return self._published

    @property
    def skipped(self) -> int:
        """Number of publishes skipped because the slot was taken."""
        return self._skipped

    def try_publish(self, snapshot: Snapshot) -> bool:
        """Install ``snapshot`` as current unless the slot is taken.

        Returns False, leaving the previous snapshot in place, when a reader
        or another publish holds the slot.
        """
        if not self._slot.acquire(blocking=False):
            self._skipped += 1
            return False
        try:
            self._current = snapshot
            self._published += 1
        finally:
            self._slot.release()
        return True

    def try_read(self) -> Snapshot | _Unavailable:
        """Return the current snapshot, or UNAVAILABLE.

        UNAVAILABLE means a publish is in progress or nothing has been
        published yet; it is distinct from a snapshot with zero readings.
        """
        with self.lease() as snapshot:
            return snapshot

    @contextmanager
    def lease(self) -> Iterator[Snapshot | _Unavailable]:
        """Hold the slot while working with the current snapshot.

        Publishes attempted during the lease are skipped. Yields UNAVAILABLE
        without holding anything when the slot could not be taken.
        """
        if not self._slot.acquire(blocking=False):
            yield UNAVAILABLE
            return
        try:
            yield self._current if self._current is not None else UNAVAILABLE
        finally:
            self._slot.release()
