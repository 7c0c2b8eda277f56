"""Run-state storage.

Each slot holds at most one workflow run. The store itself only keeps records
consistent; callers that read, decide and then commit must hold `lock(slot)`
for the whole sequence so concurrent transitions on one slot never interleave.
Distinct slots never share a lock.

`JsonFileStateStore` extends both locks across processes with `flock` on
sidecar files, since every CLI call is a separate process working on the same
state file.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager, nullcontext
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .errors import InvalidMetadata, NoActiveWorkflow, StateStorageError
from .models import WorkflowDefinition, WorkflowState

logger = logging.getLogger(__name__)

DEFAULT_SLOT = "default"

_METADATA = TypeAdapter(dict[str, Any])


def normalize_metadata(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    """Reduce metadata to plain JSON values so every backend stores the same thing.

    Raises:
        InvalidMetadata: a value has no JSON representation.
    """

    try:
        return _METADATA.dump_python(dict(metadata or {}), mode="json")
    except (ValueError, TypeError) as e:
        raise InvalidMetadata(str(e)) from e


@dataclass(slots=True)
class _SlotLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class StateStore:
    """Base store: slot locking plus the start/commit/clear semantics.

    Subclasses provide `_load_all_unlocked` and `_save_all_unlocked`, and may
    widen the locks beyond this process through `_slot_guard`/`_io_guard`.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._io_lock = threading.Lock()
        self._slot_locks: dict[str, _SlotLock] = {}

    def _load_all_unlocked(self) -> dict[str, WorkflowState]:
        raise NotImplementedError

    def _save_all_unlocked(self, states: dict[str, WorkflowState]) -> None:
        raise NotImplementedError

    def _slot_guard(self, slot: str) -> AbstractContextManager[Any]:
        return nullcontext()

    def _io_guard(self) -> AbstractContextManager[Any]:
        return nullcontext()

    @contextmanager
    def lock(self, slot: str = DEFAULT_SLOT) -> Iterator[None]:
        """Exclusive access to one slot for a read -> decide -> commit sequence.

        The in-process entry for a slot lives only while someone holds or waits
        for it, so arbitrary slot names never accumulate.
        """

        with self._guard:
            entry = self._slot_locks.get(slot)
            if entry is None:
                entry = self._slot_locks[slot] = _SlotLock()
            entry.users += 1
        try:
            with entry.lock, self._slot_guard(slot):
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0 and self._slot_locks.get(slot) is entry:
                    del self._slot_locks[slot]

    def locked_slots(self) -> list[str]:
        """Slots currently held or awaited through `lock`."""

        with self._guard:
            return sorted(self._slot_locks)

    @contextmanager
    def _io(self) -> Iterator[None]:
        with self._io_lock, self._io_guard():
            yield

    def get(self, slot: str = DEFAULT_SLOT) -> WorkflowState | None:
        with self._io():
            state = self._load_all_unlocked().get(slot)
        return state.model_copy(deep=True) if state is not None else None

    def slots(self) -> list[str]:
        with self._io():
            return sorted(self._load_all_unlocked())

    def start(
        self,
        definition: WorkflowDefinition,
        *,
        resume: bool = False,
        metadata: Mapping[str, Any] | None = None,
        slot: str = DEFAULT_SLOT,
    ) -> WorkflowState:
        """Create a fresh run in `slot`, or keep the existing one when resuming.

        Raises:
            InvalidMetadata: `metadata` holds a value with no JSON representation.
            StateStorageError: the backend could not be read or written.
        """

        normalized = normalize_metadata(metadata)
        with self._io():
            states = self._load_all_unlocked()
            existing = states.get(slot)
            if resume and existing is not None and existing.workflow_id == definition.id:
                logger.info(
                    "Resuming workflow",
                    extra={
                        "workflow_id": definition.id,
                        "slot": slot,
                        "current_phase": existing.current_phase,
                    },
                )
                return existing.model_copy(deep=True)

            state = WorkflowState(
                workflow_id=definition.id,
                current_phase=definition.first_phase.id,
                metadata=normalized,
            )
            states[slot] = state
            self._save_all_unlocked(states)

        logger.info(
            "Workflow started",
            extra={
                "workflow_id": definition.id,
                "slot": slot,
                "current_phase": state.current_phase,
                "replaced": existing is not None,
            },
        )
        return state.model_copy(deep=True)

    def commit(
        self,
        slot: str,
        new_phase: str | None,
        history_entry: str | None = None,
    ) -> WorkflowState:
        """Apply one transition.

        `new_phase=None` is the terminal sentinel: the run is marked completed
        and `current_phase` keeps its last value.
        """

        with self._io():
            states = self._load_all_unlocked()
            current = states.get(slot)
            if current is None:
                raise NoActiveWorkflow(slot)

            history = [*current.branch_history]
            if history_entry:
                history.append(history_entry)

            update: dict[str, Any] = {
                "branch_history": history,
                "updated_at": datetime.now(UTC),
            }
            if new_phase is None:
                update["completed"] = True
            else:
                update["current_phase"] = new_phase

            updated = current.model_copy(update=update, deep=True)
            states[slot] = updated
            self._save_all_unlocked(states)
        return updated.model_copy(deep=True)

    def clear(self, slot: str = DEFAULT_SLOT) -> bool:
        with self._io():
            states = self._load_all_unlocked()
            removed = states.pop(slot, None)
            if removed is not None:
                self._save_all_unlocked(states)
        if removed is not None:
            logger.warning("Workflow state cleared", extra={"slot": slot})
        return removed is not None

    def clear_all(self) -> int:
        with self._io():
            states = self._load_all_unlocked()
            count = len(states)
            self._save_all_unlocked({})
        logger.warning("All workflow state cleared", extra={"cleared": count})
        return count


class InMemoryStateStore(StateStore):
    """Process-local store; state disappears with the process."""

    def __init__(self) -> None:
        super().__init__()
        self._states: dict[str, WorkflowState] = {}

    def _load_all_unlocked(self) -> dict[str, WorkflowState]:
        return dict(self._states)

    def _save_all_unlocked(self, states: dict[str, WorkflowState]) -> None:
        self._states = dict(states)


class JsonFileStateStore(StateStore):
    """All slots persisted in one JSON object keyed by slot.

    A missing, corrupt or oddly shaped file is treated as empty so that a bad
    state file never prevents starting a fresh run. Lock files live in a
    `<name>.locks/` directory next to the state file.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path
        self._lock_dir = path.with_name(path.name + ".locks")

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _locked_file(self, lock_path: Path) -> Iterator[None]:
        """Hold an exclusive `flock` on `lock_path` for the duration of the block."""

        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as e:
            raise StateStorageError(str(lock_path), str(e)) from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def _slot_guard(self, slot: str) -> AbstractContextManager[Any]:
        digest = hashlib.sha256(slot.encode("utf-8")).hexdigest()[:16]
        return self._locked_file(self._lock_dir / f"slot-{digest}.lock")

    def _io_guard(self) -> AbstractContextManager[Any]:
        return self._locked_file(self._lock_dir / "io.lock")

    def _load_all_unlocked(self) -> dict[str, WorkflowState]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Workflow state file is unreadable; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}

        if not isinstance(raw, dict):
            logger.warning(
                "Workflow state file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}

        states: dict[str, WorkflowState] = {}
        for slot, item in raw.items():
            try:
                states[slot] = WorkflowState.model_validate(item)
            except ValidationError:
                logger.warning(
                    "Dropping malformed workflow state entry",
                    extra={"path": str(self._path), "slot": slot},
                )
        return states

    def _save_all_unlocked(self, states: dict[str, WorkflowState]) -> None:
        payload = {slot: state.to_json() for slot, state in states.items()}
        text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f"{self._path.name}.",
                suffix=".tmp",
                delete=False,
            )
        except OSError as e:
            raise StateStorageError(str(self._path), str(e)) from e

        tmp = Path(tmp_file.name)
        try:
            with tmp_file:
                tmp_file.write(text)
            tmp.replace(self._path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StateStorageError(str(self._path), str(e)) from e
