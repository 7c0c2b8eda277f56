#!/usr/bin/env python3
"""Programmatic usage example.

This drives the bundled `content_production_v1` workflow through its branches:

* load settings from `.env`
* start a run with metadata
* write the branch signal file and transition
* print the branch history

Run it from the repository root so the relative paths in the definition resolve.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Sequence

from workflow_phase_engine.engine.config import EngineSettings
from workflow_phase_engine.engine.factory import EngineFactory
from workflow_phase_engine.engine.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk the content production workflow.")
    parser.add_argument(
        "--content-type",
        default="article",
        help="Value written to workspace/content_type.txt (video | article | podcast)",
    )
    parser.add_argument("--approve", action="store_true", help="Create workspace/approved")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)
    engine = EngineFactory.create(settings)

    workspace = Path("workspace")
    workspace.mkdir(exist_ok=True)
    (workspace / "content_type.txt").write_text(args.content_type + "\n", encoding="utf-8")
    approved = workspace / "approved"
    if args.approve:
        approved.touch()
    elif approved.exists():
        approved.unlink()

    started = engine.start_workflow("content_production_v1", metadata={"author": "example"})
    if not started.success:
        print(started.error)
        return 1

    for _ in range(3):
        result = engine.transition_to_next_phase()
        print(json.dumps(result.model_dump(mode="json", by_alias=True)))
        if not result.success or result.completed:
            break

    status = engine.get_status()
    if status.state is not None:
        print("Branch history:")
        for entry in status.state.branch_history:
            print(f"  {entry}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
