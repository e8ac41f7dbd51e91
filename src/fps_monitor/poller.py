"""Poller driving capture and publication on a fixed cadence."""

import asyncio
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import structlog

from fps_monitor.decoder import capture
from fps_monitor.models import Snapshot
from fps_monitor.store import SnapshotStore

log = structlog.get_logger()


class PollerState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


class Poller:
    """Producer side of a SnapshotStore.

    Every ``interval`` seconds the region is mapped, decoded into a fresh
    snapshot stamped with the capture time, and offered to the store. An
    absent or invalid region produces an empty snapshot, which is published
    like any other. A publish refused because of contention is counted and
    the cadence continues.
    """

    def __init__(
        self,
        store: SnapshotStore,
        region_name: str,
        *,
        interval: float = 1.0,
        shm_dir: Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.region_name = region_name
        self.interval = interval
        self.shm_dir = shm_dir
        self._clock = clock
        self.state = PollerState.IDLE
        self.tick_count = 0
        self._available: bool | None = None  # Last observed region state, for transition logs

    def capture_now(self) -> Snapshot:
        """Map, decode and release the region once (blocking)."""
        return capture(self.region_name, int(self._clock()), shm_dir=self.shm_dir)

    async def _capture(self) -> Snapshot:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.capture_now)

    def _publish(self, snapshot: Snapshot) -> bool:
        self.tick_count += 1
        published = self.store.try_publish(snapshot)
        if not published:
            log.debug("publish_skipped", tick=self.tick_count)

        available = not snapshot.is_empty
        if available != self._available:
            if available:
                log.info(
                    "telemetry_available",
                    region=self.region_name,
                    readings=snapshot.all_count,
                )
            else:
                log.info("telemetry_unavailable", region=self.region_name)
            self._available = available

        return published

    async def tick(self) -> Snapshot:
        """Capture once in the executor and offer the result to the store."""
        snapshot = await self._capture()
        self._publish(snapshot)
        return snapshot

    async def run(self, stop: asyncio.Event) -> None:
        """Tick until ``stop`` is set.

        The stop event is observed while waiting between ticks and after each
        capture; an in-flight capture is allowed to finish but its snapshot is
        not published once stop has been requested.
        """
        self.state = PollerState.TICKING
        log.info("poller_started", region=self.region_name, interval=self.interval)
        loop = asyncio.get_running_loop()

        try:
            while not stop.is_set():
                started = loop.time()
                try:
                    snapshot = await self._capture()
                    if stop.is_set():
                        break
                    self._publish(snapshot)
                except Exception as e:
                    log.exception("tick_failed", error=str(e))

                # Sleep for remaining interval (keeps a steady cadence)
                sleep_time = self.interval - (loop.time() - started)
                if sleep_time > 0:
                    try:
                        await asyncio.wait_for(stop.wait(), timeout=sleep_time)
                    except asyncio.TimeoutError:
                        pass
        finally:
            self.state = PollerState.STOPPED
            log.info(
                "poller_stopped",
                ticks=self.tick_count,
                published=self.store.published,
                skipped=self.store.skipped,
            )
