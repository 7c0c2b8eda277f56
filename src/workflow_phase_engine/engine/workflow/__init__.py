"""Workflow phase engine domain.

- `models`: definitions, run-state and operation results
- `conditions`: branch-key evaluation against files and run metadata
- `registry`: definition sources and the validating, cached registry
- `state_store`: slot-keyed run-state storage
- `engine`: the transition algorithm and the public operations
"""

from .engine import WorkflowEngine
from .errors import (
    ConditionUnresolved,
    DefinitionInvalid,
    DefinitionNotFound,
    InvalidMetadata,
    NoActiveWorkflow,
    PhaseNotFound,
    StateStorageError,
    TerminalPhase,
    WorkflowError,
)
from .models import WorkflowDefinition, WorkflowState
from .registry import DefinitionRegistry, DirectoryDefinitionSource, InMemoryDefinitionSource
from .state_store import DEFAULT_SLOT, InMemoryStateStore, JsonFileStateStore, StateStore

__all__ = [
    "DEFAULT_SLOT",
    "ConditionUnresolved",
    "DefinitionInvalid",
    "DefinitionNotFound",
    "DefinitionRegistry",
    "DirectoryDefinitionSource",
    "InMemoryDefinitionSource",
    "InMemoryStateStore",
    "InvalidMetadata",
    "JsonFileStateStore",
    "NoActiveWorkflow",
    "PhaseNotFound",
    "StateStorageError",
    "StateStore",
    "TerminalPhase",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowState",
]
