"""Tests for the HTTP facade."""

import pytest
from fastapi.testclient import TestClient

from fps_monitor.api import SERVICE_NAME, create_app
from fps_monitor.decoder import decode
from fps_monitor.models import Snapshot
from fps_monitor.store import SnapshotStore
from tests.conftest import build_region, make_entry, make_reading, make_snapshot


@pytest.fixture
def store() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def client(store: SnapshotStore) -> TestClient:
    return TestClient(create_app(store))


@pytest.fixture
def populated(store: SnapshotStore) -> SnapshotStore:
    """Store holding one reading per category plus an uncategorized one."""
    store.try_publish(
        make_snapshot(
            [
                make_reading("Framerate", 144.0, "FPS"),
                make_reading("GPU temperature", 65.0, "C"),
                make_reading("GPU usage", None, "%"),
                make_reading("CPU usage", 12.0, "%"),
                make_reading("Memory usage", 8192.0, "MB"),
                make_reading("Fan speed", 40.0, "%"),
            ],
            timestamp=1700000000,
        )
    )
    return store


class TestRoot:
    """Tests for the index route."""

    def test_root(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == SERVICE_NAME
        assert "version" in data
        assert data["endpoints"] == {
            "fps": "/fps",
            "gpu": "/gpu",
            "cpu": "/cpu",
            "memory": "/memory",
            "all": "/all",
        }

    def test_root_available_before_first_publish(self, client: TestClient) -> None:
        assert client.get("/").status_code == 200


class TestUnavailable:
    """Unavailable data answers 503, distinct from an empty list."""

    @pytest.mark.parametrize("path", ["/fps", "/gpu", "/cpu", "/memory", "/all", "/status"])
    def test_before_first_publish(self, client: TestClient, path: str) -> None:
        response = client.get(path)
        assert response.status_code == 503
        assert response.json() == {"detail": "Data not available"}

    def test_while_slot_held(self, client: TestClient, populated: SnapshotStore) -> None:
        with populated.lease():
            response = client.get("/fps")
        assert response.status_code == 503

    def test_empty_snapshot_is_empty_list(self, client: TestClient, store: SnapshotStore) -> None:
        store.try_publish(Snapshot.empty(1700000000))
        response = client.get("/fps")
        assert response.status_code == 200
        assert response.json() == []


@pytest.mark.usefixtures("populated")
class TestSubsets:
    """Tests for the subset routes."""

    def test_fps(self, client: TestClient) -> None:
        response = client.get("/fps")
        assert response.status_code == 200
        assert response.json() == [
            {
                "name": "Framerate",
                "value": 144.0,
                "unit": "FPS",
                "gpu_index": 0,
                "category": "fps",
                "timestamp": 1700000000,
            }
        ]

    def test_gpu_missing_value_omitted(self, client: TestClient) -> None:
        readings = client.get("/gpu").json()
        assert [r["name"] for r in readings] == ["GPU temperature", "GPU usage"]
        assert readings[0]["value"] == 65.0
        assert "value" not in readings[1]

    def test_cpu(self, client: TestClient) -> None:
        assert [r["name"] for r in client.get("/cpu").json()] == ["CPU usage"]

    def test_memory(self, client: TestClient) -> None:
        assert [r["value"] for r in client.get("/memory").json()] == [8192.0]

    def test_all_includes_other(self, client: TestClient) -> None:
        readings = client.get("/all").json()
        assert len(readings) == 6
        assert readings[-1]["category"] == "other"


class TestStatus:
    """Tests for the full status document."""

    def test_status(self, client: TestClient, populated: SnapshotStore) -> None:
        data = client.get("/status").json()
        assert data["timestamp"] == 1700000000
        assert data["fps_count"] == 1
        assert data["gpu_count"] == 2
        assert data["cpu_count"] == 1
        assert data["memory_count"] == 1
        assert data["all_count"] == 6
        assert len(data["all"]) == 6


class TestDebugMemory:
    """Tests for the process diagnostics route."""

    def test_debug_memory(self, client: TestClient, populated: SnapshotStore) -> None:
        data = client.get("/debug/memory").json()
        assert data["rss_mb"] > 0
        assert data["num_threads"] >= 1
        assert data["gc_collections"] >= 0
        assert data["snapshots_published"] == 1
        assert data["snapshots_skipped"] == 0
        assert isinstance(data["timestamp"], int)


class TestCors:
    """Every response allows any origin."""

    def test_success(self, client: TestClient, populated: SnapshotStore) -> None:
        response = client.get("/fps")
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unavailable(self, client: TestClient) -> None:
        response = client.get("/gpu")
        assert response.status_code == 503
        assert response.headers["access-control-allow-origin"] == "*"

    def test_root(self, client: TestClient) -> None:
        assert client.get("/").headers["access-control-allow-origin"] == "*"


class TestValueEncoding:
    """Values decoded from the region serialize as their float32 decimal."""

    def test_decoded_value_is_short(self, client: TestClient, store: SnapshotStore) -> None:
        data = build_region([make_entry("Framerate", 144.2, "FPS")])
        store.try_publish(decode(data, 1700000000))

        response = client.get("/fps")

        assert response.status_code == 200
        assert '"value":144.2' in response.text
        assert response.json()[0]["value"] == 144.2

    def test_status_uses_short_values(self, client: TestClient, store: SnapshotStore) -> None:
        data = build_region([make_entry("GPU temperature", 65.3, "C")])
        store.try_publish(decode(data, 1700000000))

        status = client.get("/status").json()

        assert status["gpu"][0]["value"] == 65.3
        assert status["all"][0]["value"] == 65.3
