"""Pydantic models for workflow definitions, run-state and operation results.

Python attributes are snake_case; the wire format (definition files, persisted
state, CLI/HTTP output) is camelCase. Both spellings are accepted on input.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ConditionType = Literal["file_content", "file_exists", "metadata_value"]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenWireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Condition(_FrozenWireModel):
    """Where to read a raw value from, and how to classify it into a branch key."""

    type: ConditionType
    source: str = Field(min_length=1)
    pattern: str | None = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"pattern does not compile: {e}") from e
        return value


class ConditionalNext(_FrozenWireModel):
    condition: Condition
    branches: dict[str, str | None] = Field(default_factory=dict)
    default_next: str | None = None


class Phase(_FrozenWireModel):
    """One node of a workflow graph.

    A phase is terminal (`next_phase` is None and no `conditional_next`),
    statically linked (`next_phase` set) or conditionally branching
    (`conditional_next` set).
    """

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    required_artifacts: list[str] = Field(default_factory=list)
    next_phase: str | None = None
    conditional_next: ConditionalNext | None = None

    @model_validator(mode="after")
    def _single_successor_rule(self) -> Phase:
        if self.next_phase is not None and self.conditional_next is not None:
            raise ValueError(
                f"phase {self.id!r} defines both nextPhase and conditionalNext; use one"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.next_phase is None and self.conditional_next is None


class WorkflowDefinition(_FrozenWireModel):
    id: str = Field(min_length=1)
    name: str
    version: str
    description: str | None = None
    phases: list[Phase] = Field(min_length=1)

    @property
    def first_phase(self) -> Phase:
        return self.phases[0]

    def phase_ids(self) -> list[str]:
        return [phase.id for phase in self.phases]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class WorkflowState(_WireModel):
    """The mutable record of where one workflow run currently is."""

    workflow_id: str
    current_phase: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    branch_history: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    completed: bool = False

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class StartResult(_WireModel):
    success: bool
    state: WorkflowState | None = None
    error: str | None = None


class TransitionResult(_WireModel):
    success: bool
    new_phase: str | None = None
    completed: bool = False
    message: str | None = None
    errors: list[str] = Field(default_factory=list)


class StatusResult(_WireModel):
    state: WorkflowState | None = None
    error: str | None = None


class ValidationReport(_WireModel):
    workflow_id: str
    success: bool
    errors: list[str] = Field(default_factory=list)
