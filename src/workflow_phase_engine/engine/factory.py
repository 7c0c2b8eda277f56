"""Factory wiring an engine from settings."""

from __future__ import annotations

import logging

from workflow_phase_engine.engine.config import EngineSettings
from workflow_phase_engine.engine.workflow.engine import WorkflowEngine
from workflow_phase_engine.engine.workflow.registry import (
    DefinitionRegistry,
    DirectoryDefinitionSource,
)
from workflow_phase_engine.engine.workflow.state_store import (
    InMemoryStateStore,
    JsonFileStateStore,
    StateStore,
)

logger = logging.getLogger(__name__)


class EngineFactory:
    """Factory for creating configured engine instances."""

    @staticmethod
    def create_store(settings: EngineSettings) -> StateStore:
        """Create the run-state store selected by `settings.state_backend`.

        Raises:
            ValueError: If the backend is not supported.
        """
        if settings.state_backend == "file":
            return JsonFileStateStore(settings.state_path)
        elif settings.state_backend == "memory":
            return InMemoryStateStore()
        else:
            raise ValueError(f"Unsupported state backend: {settings.state_backend}")

    @staticmethod
    def create(settings: EngineSettings) -> WorkflowEngine:
        """Create an engine reading definitions from `settings.definitions_dir`."""
        logger.info(
            "Creating workflow engine",
            extra={
                "definitions_dir": str(settings.definitions_dir),
                "state_backend": settings.state_backend,
            },
        )
        registry = DefinitionRegistry(DirectoryDefinitionSource(settings.definitions_dir))
        return WorkflowEngine(registry, EngineFactory.create_store(settings))
