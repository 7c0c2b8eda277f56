"""CLI entrypoint for the workflow phase engine.

Every subcommand prints its result as JSON on stdout so that an agent can drive
a pipeline one step at a time from a shell.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from pydantic import BaseModel, ValidationError

from workflow_phase_engine import __version__
from workflow_phase_engine.engine.config import EngineSettings
from workflow_phase_engine.engine.factory import EngineFactory
from workflow_phase_engine.engine.logging import configure_logging
from workflow_phase_engine.engine.workflow.errors import StateStorageError

logger = logging.getLogger(__name__)


def _parse_meta(values: list[str] | None) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {item!r}")
        metadata[key.strip()] = value
    return metadata


def _parse_metadata_json(value: str | None) -> dict[str, Any]:
    if value is None:
        return {}
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError("--metadata-json must be a JSON object")
    return parsed


def _emit(payload: BaseModel | dict[str, Any] | list[Any]) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-engine",
        description="Decide and record phase transitions for multi-phase workflows",
    )
    parser.add_argument(
        "--version", action="version", version=f"workflow-phase-engine {__version__}"
    )
    parser.add_argument(
        "--slot",
        default=None,
        help="Run slot to operate on (defaults to WORKFLOW_DEFAULT_SLOT)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Start (or resume) a workflow run")
    start.add_argument("workflow_id", help="Id of the workflow definition")
    start.add_argument(
        "--resume",
        action="store_true",
        help="Keep an existing run of the same workflow instead of restarting it",
    )
    start.add_argument(
        "--meta",
        action="append",
        metavar="KEY=VALUE",
        help="Run metadata entry (repeatable); values are strings",
    )
    start.add_argument(
        "--metadata-json",
        default=None,
        help="Run metadata as a JSON object; merged under --meta entries",
    )

    subparsers.add_parser("next", help="Transition the active run to its next phase")
    subparsers.add_parser("status", help="Show the active run")

    clear_state = subparsers.add_parser("clear-state", help="Remove the active run")
    clear_state.add_argument(
        "--all", action="store_true", help="Remove the runs of every slot"
    )

    subparsers.add_parser("list", help="List available workflow definitions")

    validate = subparsers.add_parser("validate", help="Check a workflow definition")
    validate.add_argument("workflow_id", help="Id of the workflow definition")

    serve = subparsers.add_parser("serve", help="Run the HTTP tool surface")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    slot = args.slot or settings.default_slot

    try:
        engine = EngineFactory.create(settings)

        if args.command == "start":
            try:
                metadata = _parse_metadata_json(args.metadata_json)
                metadata.update(_parse_meta(args.meta))
            except ValueError as e:
                print(f"Invalid metadata: {e}", file=sys.stderr)
                return 2
            started = engine.start_workflow(
                args.workflow_id, resume=args.resume, metadata=metadata, slot=slot
            )
            _emit(started)
            return 0 if started.success else 1

        if args.command == "next":
            result = engine.transition_to_next_phase(slot=slot)
            _emit(result)
            return 0 if result.success else 1

        if args.command == "status":
            status = engine.get_status(slot=slot)
            _emit(status)
            return 0 if status.error is None else 1

        if args.command == "clear-state":
            try:
                cleared = engine.clear_state(None if args.all else slot)
            except StateStorageError as e:
                _emit({"success": False, "cleared": 0, "error": e.message})
                return 1
            _emit({"success": True, "cleared": cleared})
            return 0

        if args.command == "list":
            _emit({"workflows": engine.list_workflows()})
            return 0

        if args.command == "validate":
            report = engine.validate_definition(args.workflow_id)
            _emit(report)
            return 0 if report.success else 1

        if args.command == "serve":
            import uvicorn

            from workflow_phase_engine.server.app import create_app

            uvicorn.run(create_app(engine), host=args.host, port=args.port, log_config=None)
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
