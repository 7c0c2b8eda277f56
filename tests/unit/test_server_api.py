"""Unit tests for the HTTP tool surface."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from workflow_phase_engine.engine.workflow.engine import WorkflowEngine
from workflow_phase_engine.engine.workflow.state_store import JsonFileStateStore
from workflow_phase_engine.server.app import create_app


@pytest.fixture
def client(clean_env: Path, engine: WorkflowEngine) -> TestClient:
    return TestClient(create_app(engine))


def test_health(client: TestClient) -> None:
    health = client.get("/api/health").json()

    assert health["status"] == "healthy"
    assert health["version"] == "0.1.0"
    assert health["uptimeSeconds"] >= 0
    assert "timestamp" in health


def test_workflow_roundtrip(client: TestClient, content_workflow: Path) -> None:
    content_workflow.write_text("article", encoding="utf-8")

    started = client.post(
        "/api/workflows/test_conditional_v1/start", json={"metadata": {"who": "agent"}}
    ).json()
    assert started["success"] is True
    assert started["state"]["currentPhase"] == "phase_0"

    moved = client.post("/api/workflow/next").json()
    assert moved == {
        "success": True,
        "newPhase": "phase_1_article",
        "completed": False,
        "message": "Transitioned from phase_0 to phase_1_article",
        "errors": [],
    }

    status = client.get("/api/workflow/status").json()
    assert status["state"]["branchHistory"] == ["phase_0 -> phase_1_article (article)"]
    assert status["state"]["metadata"] == {"who": "agent"}

    cleared = client.delete("/api/workflow/state").json()
    assert cleared == {"success": True, "cleared": 1, "error": None}
    assert client.get("/api/workflow/status").json() == {"state": None}


def test_failures_are_structured(client: TestClient) -> None:
    response = client.post("/api/workflow/next")
    assert response.status_code == 200
    assert response.json()["success"] is False

    started = client.post("/api/workflows/missing/start").json()
    assert started["success"] is False
    assert "not found" in started["error"]


def test_slots_and_admin_endpoints(client: TestClient, linear_definition: str) -> None:
    assert client.get("/api/workflows").json() == {"workflows": [linear_definition]}
    assert client.get(f"/api/workflows/{linear_definition}/validate").json()["success"] is True

    client.post(f"/api/workflows/{linear_definition}/start", params={"slot": "x"})
    assert client.get("/api/workflow/status").json()["state"] is None
    assert client.get("/api/workflow/status", params={"slot": "x"}).json()["state"] is not None

    assert client.post("/api/workflows/cache/clear").json() == {"success": True}
    assert client.delete("/api/workflow/state", params={"all": "true"}).json()["cleared"] == 1


def test_storage_failure_on_clear(clean_env: Path, registry) -> None:
    blocker = clean_env / "blocker"
    blocker.write_text("", encoding="utf-8")
    engine = WorkflowEngine(registry, JsonFileStateStore(blocker / "state.json"))
    client = TestClient(create_app(engine))

    cleared = client.delete("/api/workflow/state")

    assert cleared.status_code == 200
    assert cleared.json()["success"] is False
    assert "storage failed" in cleared.json()["error"]
