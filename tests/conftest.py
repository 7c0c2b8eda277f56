"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from workflow_phase_engine.engine.workflow.engine import WorkflowEngine
from workflow_phase_engine.engine.workflow.registry import (
    DefinitionRegistry,
    DirectoryDefinitionSource,
)
from workflow_phase_engine.engine.workflow.state_store import JsonFileStateStore

WriteDefinition = Callable[[dict[str, Any]], Path]


@pytest.fixture
def definitions_dir(tmp_path: Path) -> Path:
    """Provide an empty definitions directory."""
    path = tmp_path / "config" / "workflows"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def signals_dir(tmp_path: Path) -> Path:
    """Directory holding the files conditions look at."""
    path = tmp_path / "signals"
    path.mkdir()
    return path


@pytest.fixture
def write_definition(definitions_dir: Path) -> WriteDefinition:
    """Write a definition record to `<definitions_dir>/<id>.json`."""

    def _write(record: dict[str, Any]) -> Path:
        path = definitions_dir / f"{record['id']}.json"
        path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def registry(definitions_dir: Path) -> DefinitionRegistry:
    return DefinitionRegistry(DirectoryDefinitionSource(definitions_dir))


@pytest.fixture
def engine(registry: DefinitionRegistry, tmp_path: Path) -> WorkflowEngine:
    """Provide an engine persisting run-state under tmp_path."""
    return WorkflowEngine(registry, JsonFileStateStore(tmp_path / "state" / "state.json"))


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with no engine variables set."""
    for name in (
        "WORKFLOW_DEFINITIONS_DIR",
        "WORKFLOW_STATE_BACKEND",
        "WORKFLOW_STATE_PATH",
        "WORKFLOW_DEFAULT_SLOT",
        "WORKFLOW_CORS_ORIGINS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def content_type_workflow(source: Path) -> dict[str, Any]:
    """Content pipeline branching on the text of `source`."""
    return {
        "id": "test_conditional_v1",
        "name": "Conditional Branching Test Workflow",
        "version": "1.0.0",
        "description": "Test workflow for conditional branching",
        "phases": [
            {
                "id": "phase_0",
                "name": "Planning",
                "description": "Choose content type",
                "conditionalNext": {
                    "condition": {
                        "type": "file_content",
                        "source": str(source),
                        "pattern": "^(video|article|podcast)$",
                    },
                    "branches": {
                        "video": "phase_1_video",
                        "article": "phase_1_article",
                        "podcast": "phase_1_podcast",
                    },
                    "defaultNext": "phase_error",
                },
            },
            {"id": "phase_1_video", "name": "Video Script", "nextPhase": "phase_final"},
            {"id": "phase_1_article", "name": "Article Writing", "nextPhase": "phase_final"},
            {"id": "phase_1_podcast", "name": "Podcast Script", "nextPhase": "phase_final"},
            {"id": "phase_error", "name": "Error Phase", "nextPhase": None},
            {"id": "phase_final", "name": "Final Phase", "nextPhase": None},
        ],
    }


def linear_workflow(workflow_id: str = "linear_v1") -> dict[str, Any]:
    return {
        "id": workflow_id,
        "name": "Linear",
        "version": "1.0.0",
        "phases": [
            {"id": "phase_0", "name": "Phase 0", "nextPhase": "phase_1"},
            {"id": "phase_1", "name": "Phase 1", "nextPhase": None},
        ],
    }


@pytest.fixture
def content_workflow(write_definition: WriteDefinition, signals_dir: Path) -> Path:
    """Register the content pipeline; returns the signal file it branches on."""
    source = signals_dir / "content_type.txt"
    write_definition(content_type_workflow(source))
    return source


@pytest.fixture
def linear_definition(write_definition: WriteDefinition) -> str:
    record = linear_workflow()
    write_definition(record)
    return record["id"]
