"""Persistence for Streakline scoring state and tasks.

Two interchangeable stores: FileStore (per-user JSON state + YAML tasks
under the workspace root, atomic writes) and MemoryStore (ephemeral, used
for guests and tests). Both enforce compare-and-swap on ScoringState.version.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Iterator, Protocol

import yaml

from streakline.models import ScoringState, Task, TasksFile
from streakline.workspace import lock_path, state_path, tasks_path, validate_user_id


class RecordNotFoundError(LookupError):
    """A user's scoring state or a task does not exist."""


class StaleStateError(RuntimeError):
    """The scoring state changed since it was loaded."""


class Store(Protocol):
    def load_state(self, user_id: str) -> ScoringState: ...
    def create_state(self, user_id: str) -> ScoringState: ...
    def save_state(self, user_id: str, state: ScoringState) -> None: ...
    def load_task(self, user_id: str, task_id: str) -> Task: ...
    def save_task(self, task: Task) -> None: ...
    def delete_task(self, user_id: str, task_id: str) -> Task: ...
    def list_tasks(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
        status: str | None = None,
    ) -> list[Task]: ...


def _filter_tasks(
    tasks: list[Task],
    start: date | None,
    end: date | None,
    status: str | None,
) -> list[Task]:
    lo = start.isoformat() if start else None
    hi = end.isoformat() if end else None
    out = [
        t for t in tasks
        if (lo is None or t.date >= lo)
        and (hi is None or t.date <= hi)
        and (status is None or t.status == status)
    ]
    out.sort(key=lambda t: (t.date, t.created_at))
    return out


# ── File I/O ──────────────────────────────────────────────────


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON file, returning empty dict if missing or blank."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    return json.loads(text) if text.strip() else {}


def read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping, returning empty dict if missing, blank or not a mapping."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    result = yaml.safe_load(text)
    return result if isinstance(result, dict) else {}


def _atomic_write(path: Path, content: str, suffix: str) -> None:
    """Temp file + flock + fsync + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n", ".json")


def write_yaml_atomic(path: Path, data: dict[str, Any]) -> None:
    content = yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    _atomic_write(path, content, ".yaml")


# ── File store ────────────────────────────────────────────────


class FileStore:
    """Per-user directory: state.json + tasks.yaml."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @contextmanager
    def _locked(self, user_id: str) -> Iterator[None]:
        path = lock_path(self.root, user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _read_state(self, user_id: str) -> ScoringState | None:
        path = state_path(self.root, user_id)
        if not path.exists():
            return None
        return ScoringState.from_dict(read_json(path))

    def load_state(self, user_id: str) -> ScoringState:
        state = self._read_state(user_id)
        if state is None:
            raise RecordNotFoundError(f"User not found: {user_id}")
        return state

    def create_state(self, user_id: str) -> ScoringState:
        """Create default scoring state for a new user; returns existing state if present."""
        validate_user_id(user_id)
        with self._locked(user_id):
            state = self._read_state(user_id)
            if state is None:
                state = ScoringState()
                write_json_atomic(state_path(self.root, user_id), state.to_dict())
        return state

    def save_state(self, user_id: str, state: ScoringState) -> None:
        with self._locked(user_id):
            stored = self._read_state(user_id)
            if stored is None:
                raise RecordNotFoundError(f"User not found: {user_id}")
            if stored.version != state.version:
                raise StaleStateError(
                    f"State for {user_id} changed (stored v{stored.version}, loaded v{state.version})"
                )
            state.version += 1
            write_json_atomic(state_path(self.root, user_id), state.to_dict())

    def _read_tasks(self, user_id: str) -> TasksFile:
        return TasksFile.from_dict(read_yaml(tasks_path(self.root, user_id)))

    def load_task(self, user_id: str, task_id: str) -> Task:
        for t in self._read_tasks(user_id).tasks:
            if t.id == task_id:
                return t
        raise RecordNotFoundError(f"Task not found: {task_id}")

    def save_task(self, task: Task) -> None:
        with self._locked(task.user_id):
            tasks_file = self._read_tasks(task.user_id)
            for i, t in enumerate(tasks_file.tasks):
                if t.id == task.id:
                    tasks_file.tasks[i] = task
                    break
            else:
                tasks_file.tasks.append(task)
            write_yaml_atomic(tasks_path(self.root, task.user_id), tasks_file.to_dict())

    def delete_task(self, user_id: str, task_id: str) -> Task:
        with self._locked(user_id):
            tasks_file = self._read_tasks(user_id)
            for i, t in enumerate(tasks_file.tasks):
                if t.id == task_id:
                    removed = tasks_file.tasks.pop(i)
                    write_yaml_atomic(tasks_path(self.root, user_id), tasks_file.to_dict())
                    return removed
        raise RecordNotFoundError(f"Task not found: {task_id}")

    def list_tasks(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
        status: str | None = None,
    ) -> list[Task]:
        return _filter_tasks(self._read_tasks(user_id).tasks, start, end, status)


# ── Memory store ──────────────────────────────────────────────


class MemoryStore:
    """Ephemeral store. Values are copied in and out like a real backend."""

    def __init__(self) -> None:
        self._states: dict[str, dict[str, Any]] = {}
        self._tasks: dict[str, dict[str, dict[str, Any]]] = {}

    def load_state(self, user_id: str) -> ScoringState:
        if user_id not in self._states:
            raise RecordNotFoundError(f"User not found: {user_id}")
        return ScoringState.from_dict(self._states[user_id])

    def create_state(self, user_id: str) -> ScoringState:
        if user_id not in self._states:
            self._states[user_id] = ScoringState().to_dict()
        return self.load_state(user_id)

    def save_state(self, user_id: str, state: ScoringState) -> None:
        stored = self.load_state(user_id)
        if stored.version != state.version:
            raise StaleStateError(
                f"State for {user_id} changed (stored v{stored.version}, loaded v{state.version})"
            )
        state.version += 1
        self._states[user_id] = state.to_dict()

    def load_task(self, user_id: str, task_id: str) -> Task:
        raw = self._tasks.get(user_id, {}).get(task_id)
        if raw is None:
            raise RecordNotFoundError(f"Task not found: {task_id}")
        return Task.from_dict(raw)

    def save_task(self, task: Task) -> None:
        self._tasks.setdefault(task.user_id, {})[task.id] = task.to_dict()

    def delete_task(self, user_id: str, task_id: str) -> Task:
        raw = self._tasks.get(user_id, {}).pop(task_id, None)
        if raw is None:
            raise RecordNotFoundError(f"Task not found: {task_id}")
        return Task.from_dict(raw)

    def list_tasks(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
        status: str | None = None,
    ) -> list[Task]:
        tasks = [Task.from_dict(raw) for raw in self._tasks.get(user_id, {}).values()]
        return _filter_tasks(tasks, start, end, status)

    def drop_user(self, user_id: str) -> None:
        """Forget a user's state and tasks."""
        if self._states.pop(user_id, None) is None:
            raise RecordNotFoundError(f"User not found: {user_id}")
        self._tasks.pop(user_id, None)
