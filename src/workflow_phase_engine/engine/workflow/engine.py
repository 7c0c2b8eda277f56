"""Transition engine.

The engine never runs phase work. Given the active run in a slot it decides
which phase comes next, commits that decision and reports the outcome. Every
public operation returns a structured result; expected failures never escape
as exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .conditions import ConditionContext, evaluate
from .errors import (
    ConditionUnresolved,
    NoActiveWorkflow,
    StateStorageError,
    TerminalPhase,
    WorkflowError,
)
from .models import (
    Phase,
    StartResult,
    StatusResult,
    TransitionResult,
    ValidationReport,
    WorkflowState,
)
from .registry import DefinitionRegistry
from .state_store import DEFAULT_SLOT, StateStore

logger = logging.getLogger(__name__)

END_LABEL = "END"
DEFAULT_MARKER = "[default]"


def branch_entry(current: str, target: str | None, key: str) -> str:
    return f"{current} -> {target or END_LABEL} ({key})"


def default_entry(current: str, target: str | None) -> str:
    return f"{current} -> {target or END_LABEL} {DEFAULT_MARKER}"


@dataclass(frozen=True, slots=True)
class Resolution:
    """Where a phase leads and the history line describing the step (if any)."""

    target: str | None
    history_entry: str | None = None


def resolve_next(phase: Phase, state: WorkflowState) -> Resolution:
    """Decide the successor of `phase` for the given run.

    Raises:
        ConditionUnresolved: the condition matched no branch and there is no default.
    """

    conditional = phase.conditional_next
    if conditional is None:
        return Resolution(target=phase.next_phase)

    key = evaluate(conditional.condition, ConditionContext(metadata=state.metadata))
    if key is not None and key in conditional.branches:
        target = conditional.branches[key]
        return Resolution(target=target, history_entry=branch_entry(phase.id, target, key))

    if conditional.default_next is not None:
        return Resolution(
            target=conditional.default_next,
            history_entry=default_entry(phase.id, conditional.default_next),
        )

    raise ConditionUnresolved(phase.id, key, sorted(conditional.branches))


class WorkflowEngine:
    """Public operations over a definition registry and a state store."""

    def __init__(self, registry: DefinitionRegistry, store: StateStore) -> None:
        self.registry = registry
        self.store = store

    def start_workflow(
        self,
        workflow_id: str,
        resume: bool = False,
        metadata: Mapping[str, Any] | None = None,
        *,
        slot: str = DEFAULT_SLOT,
    ) -> StartResult:
        try:
            definition = self.registry.load(workflow_id)
            with self.store.lock(slot):
                state = self.store.start(definition, resume=resume, metadata=metadata, slot=slot)
        except WorkflowError as e:
            logger.warning(
                "Workflow start failed",
                extra={"workflow_id": workflow_id, "slot": slot, "error": e.message},
            )
            return StartResult(success=False, error=e.message)
        return StartResult(success=True, state=state)

    def transition_to_next_phase(self, *, slot: str = DEFAULT_SLOT) -> TransitionResult:
        try:
            with self.store.lock(slot):
                return self._transition_locked(slot)
        except WorkflowError as e:
            logger.warning(
                "Transition failed",
                extra={"slot": slot, "error_type": type(e).__name__, "error": e.message},
            )
            return TransitionResult(success=False, message=e.message, errors=e.errors)

    def _transition_locked(self, slot: str) -> TransitionResult:
        state = self.store.get(slot)
        if state is None:
            raise NoActiveWorkflow(slot)
        if state.completed:
            raise TerminalPhase(state.workflow_id, state.current_phase)

        definition = self.registry.load(state.workflow_id)
        phase = self.registry.get_phase(definition, state.current_phase)
        resolution = resolve_next(phase, state)

        updated = self.store.commit(slot, resolution.target, resolution.history_entry)
        logger.info(
            "Phase transition",
            extra={
                "workflow_id": state.workflow_id,
                "slot": slot,
                "from_phase": phase.id,
                "to_phase": resolution.target,
                "history_entry": resolution.history_entry,
            },
        )

        if resolution.target is None:
            return TransitionResult(
                success=True,
                completed=True,
                message=f"Workflow {updated.workflow_id} completed at phase {phase.id}",
            )
        return TransitionResult(
            success=True,
            new_phase=resolution.target,
            message=f"Transitioned from {phase.id} to {resolution.target}",
        )

    def get_status(self, *, slot: str = DEFAULT_SLOT) -> StatusResult:
        try:
            state = self.store.get(slot)
        except StateStorageError as e:
            logger.error("Status read failed", extra={"slot": slot, "error": e.message})
            return StatusResult(error=e.message)
        return StatusResult(state=state)

    def clear_state(self, slot: str | None = DEFAULT_SLOT) -> int:
        """Drop the run in `slot`, or every run when `slot` is None.

        Returns the number of runs removed.

        Raises:
            StateStorageError: the backend could not be locked or written.
        """

        if slot is None:
            return self.store.clear_all()
        with self.store.lock(slot):
            return 1 if self.store.clear(slot) else 0

    def clear_cache(self) -> None:
        self.registry.clear_cache()

    def list_workflows(self) -> list[str]:
        return self.registry.list_ids()

    def validate_definition(self, workflow_id: str) -> ValidationReport:
        """Check a definition without touching any run-state."""

        try:
            self.registry.check(workflow_id)
        except WorkflowError as e:
            return ValidationReport(workflow_id=workflow_id, success=False, errors=e.errors)
        return ValidationReport(workflow_id=workflow_id, success=True)
