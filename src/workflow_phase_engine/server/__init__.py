"""FastAPI server adapter for workflow-phase-engine.

This module exposes the engine operations as an HTTP tool surface.

Design intent:
- Keep transition logic in `workflow_phase_engine.engine.*`
- Keep server-specific concerns (routing, CORS, request models) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from workflow_phase_engine.server.app import create_app
