"""Workflow definition registry.

Definitions are human-editable records kept outside the process. The registry
reads them through an injectable source, checks their structure and caches the
result per workflow id until `clear_cache()` is called, so an edited definition
takes effect without a restart.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .errors import DefinitionInvalid, DefinitionNotFound, PhaseNotFound
from .models import Phase, WorkflowDefinition

logger = logging.getLogger(__name__)

_WORKFLOW_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class DefinitionSource(Protocol):
    """Where raw definition records come from."""

    def load(self, workflow_id: str) -> Mapping[str, Any]: ...

    def list_ids(self) -> list[str]: ...


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise ValueError(f"duplicate key {key!r}")
        out[key] = value
    return out


class DirectoryDefinitionSource:
    """One JSON file per workflow: `<root>/<workflow_id>.json`."""

    suffix = ".json"

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, workflow_id: str) -> Path | None:
        if not _WORKFLOW_ID_RE.match(workflow_id) or ".." in workflow_id:
            return None
        return self._root / f"{workflow_id}{self.suffix}"

    def load(self, workflow_id: str) -> Mapping[str, Any]:
        path = self._path_for(workflow_id)
        if path is None or not path.is_file():
            raise DefinitionNotFound(workflow_id)

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise DefinitionInvalid(workflow_id, [f"cannot read {path}: {e}"]) from e

        try:
            raw = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
        except ValueError as e:
            raise DefinitionInvalid(workflow_id, [f"{path.name} is not valid JSON: {e}"]) from e

        if not isinstance(raw, dict):
            raise DefinitionInvalid(workflow_id, [f"{path.name} must contain a JSON object"])
        return raw

    def list_ids(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            p.stem
            for p in self._root.iterdir()
            if p.is_file() and p.suffix == self.suffix and _WORKFLOW_ID_RE.match(p.stem)
        )


class InMemoryDefinitionSource:
    """Definitions embedded as constants (or registered by tests)."""

    def __init__(self, records: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._records: dict[str, Mapping[str, Any]] = dict(records or {})

    def put(self, record: Mapping[str, Any]) -> None:
        workflow_id = record.get("id")
        if not isinstance(workflow_id, str) or not workflow_id:
            raise ValueError("definition record needs a non-empty string 'id'")
        self._records[workflow_id] = record

    def load(self, workflow_id: str) -> Mapping[str, Any]:
        record = self._records.get(workflow_id)
        if record is None:
            raise DefinitionNotFound(workflow_id)
        return record

    def list_ids(self) -> list[str]:
        return sorted(self._records)


def _format_validation_error(e: ValidationError) -> list[str]:
    problems: list[str] = []
    for err in e.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        problems.append(f"{loc}: {msg}" if loc else msg)
    return problems


def integrity_errors(definition: WorkflowDefinition) -> list[str]:
    """Return every structural problem of a parsed definition."""

    problems: list[str] = []
    seen: set[str] = set()
    for phase in definition.phases:
        if phase.id in seen:
            problems.append(f"duplicate phase id: {phase.id}")
        seen.add(phase.id)

    def _check_target(phase_id: str, field_name: str, target: str | None) -> None:
        if target is not None and target not in seen:
            problems.append(f"phase {phase_id}: {field_name} references unknown phase {target!r}")

    for phase in definition.phases:
        _check_target(phase.id, "nextPhase", phase.next_phase)
        if phase.conditional_next is None:
            continue
        for key, target in phase.conditional_next.branches.items():
            _check_target(phase.id, f"branches[{key!r}]", target)
        _check_target(phase.id, "defaultNext", phase.conditional_next.default_next)

    return problems


def parse_definition(workflow_id: str, raw: Mapping[str, Any]) -> WorkflowDefinition:
    """Parse and structurally check a raw record; raise `DefinitionInvalid` on any problem."""

    try:
        definition = WorkflowDefinition.model_validate(raw)
    except ValidationError as e:
        raise DefinitionInvalid(workflow_id, _format_validation_error(e)) from e

    problems: list[str] = []
    if definition.id != workflow_id:
        problems.append(f"definition id {definition.id!r} does not match requested id")
    problems.extend(integrity_errors(definition))
    if problems:
        raise DefinitionInvalid(workflow_id, problems)
    return definition


class DefinitionRegistry:
    """Loads, validates and caches workflow definitions by id."""

    def __init__(self, source: DefinitionSource) -> None:
        self._source = source
        self._cache: dict[str, WorkflowDefinition] = {}
        self._lock = threading.Lock()

    @property
    def source(self) -> DefinitionSource:
        return self._source

    def load(self, workflow_id: str) -> WorkflowDefinition:
        cached = self._cache.get(workflow_id)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._cache.get(workflow_id)
            if cached is not None:
                return cached
            definition = parse_definition(workflow_id, self._source.load(workflow_id))
            # Copy-on-write so a concurrent clear_cache never sees a half-built mapping.
            self._cache = {**self._cache, workflow_id: definition}

        logger.info(
            "Workflow definition loaded",
            extra={
                "workflow_id": workflow_id,
                "version": definition.version,
                "phases": len(definition.phases),
            },
        )
        return definition

    def check(self, workflow_id: str) -> WorkflowDefinition:
        """Parse the current source record without reading or filling the cache."""

        return parse_definition(workflow_id, self._source.load(workflow_id))

    def clear_cache(self) -> None:
        with self._lock:
            dropped = len(self._cache)
            self._cache = {}
        logger.info("Definition cache cleared", extra={"dropped": dropped})

    def cached_ids(self) -> list[str]:
        return sorted(self._cache)

    def list_ids(self) -> list[str]:
        return self._source.list_ids()

    @staticmethod
    def get_phase(definition: WorkflowDefinition, phase_id: str) -> Phase:
        for phase in definition.phases:
            if phase.id == phase_id:
                return phase
        raise PhaseNotFound(definition.id, phase_id)
