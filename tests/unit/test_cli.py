"""Unit tests for the command-line surface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import workflow_phase_engine.engine.main as cli


@pytest.fixture
def run_cli(
    clean_env: Path,
    definitions_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
):
    monkeypatch.setenv("WORKFLOW_DEFINITIONS_DIR", str(definitions_dir))
    monkeypatch.setenv("WORKFLOW_STATE_PATH", str(clean_env / "state" / "state.json"))
    monkeypatch.setattr(cli, "configure_logging", lambda *_a, **_k: None)

    def _run(*argv: str) -> tuple[int, dict]:
        code = cli.main(list(argv))
        out = capsys.readouterr().out
        return code, json.loads(out) if out.strip() else {}

    return _run


def test_start_next_status_across_invocations(run_cli, content_workflow: Path) -> None:
    content_workflow.write_text("video\n", encoding="utf-8")

    code, started = run_cli("start", "test_conditional_v1", "--meta", "owner=me")
    assert code == 0
    assert started["state"]["currentPhase"] == "phase_0"
    assert started["state"]["metadata"] == {"owner": "me"}

    code, moved = run_cli("next")
    assert code == 0
    assert moved["newPhase"] == "phase_1_video"

    code, status = run_cli("status")
    assert code == 0
    assert status["state"]["branchHistory"] == ["phase_0 -> phase_1_video (video)"]


def test_failed_transition_exit_code(run_cli) -> None:
    code, result = run_cli("next")
    assert code == 1
    assert result["success"] is False


def test_metadata_json_and_slot(run_cli, linear_definition: str) -> None:
    code, started = run_cli(
        "--slot", "s1", "start", linear_definition, "--metadata-json", '{"n": 2, "k": "a"}', "--meta", "k=b"
    )
    assert code == 0
    assert started["state"]["metadata"] == {"n": 2, "k": "b"}

    _, status = run_cli("status")
    assert status["state"] is None

    _, cleared = run_cli("clear-state", "--all")
    assert cleared == {"success": True, "cleared": 1}


def test_bad_metadata_is_usage_error(run_cli, linear_definition: str) -> None:
    code, _ = run_cli("start", linear_definition, "--meta", "novalue")
    assert code == 2


def test_list_and_validate(run_cli, linear_definition: str) -> None:
    _, listed = run_cli("list")
    assert listed == {"workflows": [linear_definition]}

    code, report = run_cli("validate", linear_definition)
    assert code == 0 and report["success"] is True

    code, report = run_cli("validate", "missing")
    assert code == 1 and report["errors"]


def test_configuration_error(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKFLOW_STATE_BACKEND", "nope")
    assert cli.main(["status"]) == 2


def test_storage_failure_is_reported_as_json(
    run_cli, linear_definition: str, clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    blocker = clean_env / "blocker"
    blocker.write_text("", encoding="utf-8")
    monkeypatch.setenv("WORKFLOW_STATE_PATH", str(blocker / "state.json"))

    code, started = run_cli("start", linear_definition)
    assert code == 1
    assert started["success"] is False

    code, status = run_cli("status")
    assert code == 1
    assert status["state"] is None and status["error"]

    code, cleared = run_cli("clear-state")
    assert code == 1
    assert cleared["success"] is False and cleared["cleared"] == 0
