"""Tests for the liveness and readiness endpoints.

The app lifespan (env loading, Kubernetes config, operator thread) is not run;
`app.state` is populated directly instead.
"""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from es_provisioner.main import app
from es_provisioner.services.search_backend_service import SearchBackendService
from fake_search_cluster import FakeSearchCluster


class FakeThread:
    def __init__(self, alive: bool) -> None:
        self.alive = alive

    def is_alive(self) -> bool:
        return self.alive


@pytest.fixture
def client(backend_service: SearchBackendService) -> Iterator[TestClient]:
    app.state.search_backend = backend_service
    app.state.operator_thread = FakeThread(alive=True)
    yield TestClient(app)
    del app.state.search_backend
    del app.state.operator_thread


class TestHealthRoutes:
    def test_root(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "es-provisioner is running."}

    def test_healthz(self, client: TestClient) -> None:
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readyz(self, client: TestClient, cluster: FakeSearchCluster) -> None:
        response = client.get("/readyz")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}
        assert cluster.calls_to("GET", "/") == 1

    def test_readyz_operator_stopped(self, client: TestClient, cluster: FakeSearchCluster) -> None:
        app.state.operator_thread.alive = False

        response = client.get("/readyz")

        assert response.status_code == 503
        assert response.json() == {"detail": "Operator is not running"}
        assert cluster.calls == []

    def test_readyz_backend_unreachable(self, client: TestClient, cluster: FakeSearchCluster) -> None:
        cluster.unreachable = True

        response = client.get("/readyz")

        assert response.status_code == 503
        assert "failed after 4 attempts" in response.json()["detail"]

    def test_readyz_backend_error(self, client: TestClient, cluster: FakeSearchCluster) -> None:
        cluster.fail("GET", "/", 401)

        response = client.get("/readyz")

        assert response.status_code == 503
        assert "Cannot ping backend" in response.json()["detail"]
