"""HTTP facade serving snapshots as JSON.

Routes are thin adapters over ``SnapshotStore.lease()``. A store that is
contended or has not received its first snapshot answers 503, which clients
can tell apart from an empty list (no sensors of that category).
"""

import gc
import time
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import psutil
from fastapi import FastAPI, HTTPException, Request

from fps_monitor.models import SUBSETS
from fps_monitor.store import UNAVAILABLE, SnapshotStore

SERVICE_NAME = "FPS Monitor"


def _package_version() -> str:
    try:
        return version("fps-monitor")
    except PackageNotFoundError:
        return "0.0.0"


def create_app(store: SnapshotStore) -> FastAPI:
    """Build the FastAPI application serving ``store``."""
    app = FastAPI(title=SERVICE_NAME, version=_package_version())

    root_response = {
        "service": SERVICE_NAME,
        "version": app.version,
        "endpoints": {name: f"/{name}" for name in SUBSETS},
    }

    @app.middleware("http")
    async def allow_any_origin(request: Request, call_next):
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    def subset_readings(name: str) -> list[dict[str, Any]]:
        with store.lease() as snapshot:
            if snapshot is UNAVAILABLE:
                raise HTTPException(status_code=503, detail="Data not available")
            return [reading.to_dict() for reading in snapshot.subset(name)]

    @app.get("/")
    async def root() -> dict:
        return root_response

    @app.get("/fps")
    async def fps() -> list[dict[str, Any]]:
        return subset_readings("fps")

    @app.get("/gpu")
    async def gpu() -> list[dict[str, Any]]:
        return subset_readings("gpu")

    @app.get("/cpu")
    async def cpu() -> list[dict[str, Any]]:
        return subset_readings("cpu")

    @app.get("/memory")
    async def memory() -> list[dict[str, Any]]:
        return subset_readings("memory")

    @app.get("/all")
    async def all_readings() -> list[dict[str, Any]]:
        return subset_readings("all")

    @app.get("/status")
    async def status() -> dict[str, Any]:
        """Full snapshot: every subset plus counts and capture time."""
        with store.lease() as snapshot:
            if snapshot is UNAVAILABLE:
                raise HTTPException(status_code=503, detail="Data not available")
            return snapshot.to_dict()

    @app.get("/debug/memory")
    def debug_memory() -> dict[str, Any]:
        """Memory statistics of this process."""
        proc = psutil.Process()
        mem = proc.memory_info()
        return {
            "rss_mb": round(mem.rss / 1024 / 1024, 1),
            "vms_mb": round(mem.vms / 1024 / 1024, 1),
            "num_threads": proc.num_threads(),
            "gc_collections": sum(stat["collections"] for stat in gc.get_stats()),
            "snapshots_published": store.published,
            "snapshots_skipped": store.skipped,
            "timestamp": int(time.time()),
        }

    return app
