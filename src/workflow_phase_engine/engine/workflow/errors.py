"""Failure taxonomy for the phase engine.

Internals raise these; the public engine operations turn them into structured
`success=False` results so that no caller ever sees an unhandled exception for
an expected failure.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for expected workflow failures."""

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]


class DefinitionNotFound(WorkflowError):
    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow definition not found: {workflow_id}")


class DefinitionInvalid(WorkflowError):
    """Raised when a definition cannot be parsed or is structurally inconsistent."""

    def __init__(self, workflow_id: str, errors: list[str]) -> None:
        self.workflow_id = workflow_id
        summary = "; ".join(errors) if errors else "unknown problem"
        super().__init__(f"Workflow definition is invalid: {workflow_id} ({summary})", errors=errors)


class PhaseNotFound(WorkflowError):
    def __init__(self, workflow_id: str, phase_id: str) -> None:
        self.workflow_id = workflow_id
        self.phase_id = phase_id
        super().__init__(f"Phase not found in workflow {workflow_id}: {phase_id}")


class NoActiveWorkflow(WorkflowError):
    def __init__(self, slot: str) -> None:
        self.slot = slot
        super().__init__(f"No active workflow in slot {slot!r}")


class ConditionUnresolved(WorkflowError):
    """Raised when no branch matched and the phase has no default."""

    def __init__(self, phase_id: str, key: str | None, branches: list[str]) -> None:
        self.phase_id = phase_id
        self.key = key
        self.branches = branches
        evaluated = "no match" if key is None else repr(key)
        super().__init__(
            f"Conditional branch could not be resolved for phase {phase_id}: "
            f"evaluated {evaluated}, expected one of {branches} and no defaultNext is set"
        )


class TerminalPhase(WorkflowError):
    def __init__(self, workflow_id: str, phase_id: str) -> None:
        self.workflow_id = workflow_id
        self.phase_id = phase_id
        super().__init__(
            f"Workflow {workflow_id} is already completed at phase {phase_id}; "
            "no further transition is possible"
        )


class InvalidMetadata(WorkflowError):
    """Raised when run metadata cannot be represented as JSON."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Run metadata must be JSON-compatible: {detail}")


class StateStorageError(WorkflowError):
    """Raised when run-state cannot be read, written or locked."""

    def __init__(self, location: str, detail: str) -> None:
        self.location = location
        super().__init__(f"Workflow state storage failed at {location}: {detail}")
