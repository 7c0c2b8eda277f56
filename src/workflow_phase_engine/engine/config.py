"""Configuration for the workflow phase engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing is required: every setting has a local-first default, so the CLI and
the HTTP surface work from a fresh checkout that keeps its definitions under
`config/workflows/`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the engine, its CLI and its HTTP surface.

    Environment variables:
    - WORKFLOW_DEFINITIONS_DIR  (optional)
    - WORKFLOW_STATE_BACKEND    (optional, `file` or `memory`)
    - WORKFLOW_STATE_PATH       (optional)
    - WORKFLOW_DEFAULT_SLOT     (optional)
    - LOG_LEVEL                 (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    definitions_dir: Path = Field(
        default=Path("config/workflows"),
        validation_alias="WORKFLOW_DEFINITIONS_DIR",
        description="Directory holding one `<workflow_id>.json` definition per workflow",
    )

    state_backend: Literal["file", "memory"] = Field(
        default="file",
        validation_alias="WORKFLOW_STATE_BACKEND",
        description=(
            "Where run-state lives. `file` survives restarts (needed by the CLI, where "
            "every invocation is a new process); `memory` is process-local."
        ),
    )

    state_path: Path = Field(
        default=Path("workflow_state/state.json"),
        validation_alias="WORKFLOW_STATE_PATH",
        description="JSON file used by the `file` state backend",
    )

    default_slot: str = Field(
        default="default",
        validation_alias="WORKFLOW_DEFAULT_SLOT",
        description="Slot used when a caller does not name one",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("default_slot")
    @classmethod
    def _slot_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("WORKFLOW_DEFAULT_SLOT must not be blank")
        return value.strip()
