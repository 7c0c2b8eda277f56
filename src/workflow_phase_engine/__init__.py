"""Workflow Phase Engine.

Tracks which phase of a long-running, multi-phase task is active and decides,
on demand, which phase comes next:
- workflow definitions loaded from editable JSON files and cached
- conditional branches driven by files and run metadata
- slot-keyed run-state with an append-only branch history
- a CLI and an HTTP surface over the same operations
"""

__version__ = "0.1.0"

from workflow_phase_engine.engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
