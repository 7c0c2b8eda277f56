"""FastAPI app factory.

Endpoints are intentionally thin wrappers over `WorkflowEngine`. Expected engine
failures come back as structured results (`success: false`) with HTTP 200, the
same shape a tool-calling agent receives from the CLI.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workflow_phase_engine import __version__
from workflow_phase_engine.engine.factory import EngineFactory
from workflow_phase_engine.engine.workflow.engine import WorkflowEngine
from workflow_phase_engine.engine.workflow.errors import StateStorageError
from workflow_phase_engine.engine.workflow.models import (
    StartResult,
    StatusResult,
    TransitionResult,
    ValidationReport,
)
from workflow_phase_engine.server.config import ServerSettings
from workflow_phase_engine.server.models import (
    AckResponse,
    ClearStateResponse,
    HealthResponse,
    StartRequest,
    WorkflowListResponse,
)

logger = logging.getLogger(__name__)


def create_app(engine: WorkflowEngine | None = None) -> FastAPI:
    settings = ServerSettings()
    active: WorkflowEngine = engine if engine is not None else EngineFactory.create(settings)
    started_monotonic = time.monotonic()

    app = FastAPI(
        title="Workflow Phase Engine",
        version=__version__,
        description="Tool surface over the workflow phase engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.engine = active

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _slot(slot: str | None) -> str:
        return slot or settings.default_slot

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            version=__version__,
            uptime_seconds=round(time.monotonic() - started_monotonic, 3),
            timestamp=datetime.now(tz=UTC).isoformat(),
        )

    @app.get("/api/workflows", response_model=WorkflowListResponse)
    def list_workflows() -> WorkflowListResponse:
        return WorkflowListResponse(workflows=active.list_workflows())

    @app.post("/api/workflows/cache/clear", response_model=AckResponse)
    def clear_cache() -> AckResponse:
        active.clear_cache()
        return AckResponse()

    @app.get("/api/workflows/{workflow_id}/validate", response_model=ValidationReport)
    def validate(workflow_id: str) -> ValidationReport:
        return active.validate_definition(workflow_id)

    @app.post("/api/workflows/{workflow_id}/start", response_model=StartResult)
    def start(
        workflow_id: str, req: StartRequest | None = None, slot: str | None = None
    ) -> StartResult:
        req = req or StartRequest()
        return active.start_workflow(
            workflow_id, resume=req.resume, metadata=req.metadata, slot=_slot(slot)
        )

    @app.post("/api/workflow/next", response_model=TransitionResult)
    def next_phase(slot: str | None = None) -> TransitionResult:
        return active.transition_to_next_phase(slot=_slot(slot))

    @app.get("/api/workflow/status", response_model=StatusResult)
    def status(slot: str | None = None) -> StatusResult:
        return active.get_status(slot=_slot(slot))

    @app.delete("/api/workflow/state", response_model=ClearStateResponse)
    def clear_state(slot: str | None = None, all: bool = False) -> ClearStateResponse:  # noqa: A002
        try:
            cleared = active.clear_state(None if all else _slot(slot))
        except StateStorageError as e:
            return ClearStateResponse(success=False, cleared=0, error=e.message)
        return ClearStateResponse(cleared=cleared)

    logger.info(
        "Workflow API ready",
        extra={"default_slot": settings.default_slot, "state_backend": settings.state_backend},
    )
    return app
