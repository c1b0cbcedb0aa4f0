"""Tests for streakline/store.py — file and memory stores, compare-and-swap."""

import json
from datetime import date

import pytest
import yaml

from streakline.models import Task
from streakline.store import FileStore, MemoryStore, RecordNotFoundError, StaleStateError
from streakline.workspace import state_path, tasks_path


@pytest.fixture(params=["memory", "file"])
def store(request, workspace):
    s = MemoryStore() if request.param == "memory" else FileStore(workspace)
    s.create_state("alice")
    return s


def _task(task_id: str, day: str, status: str = "pending", created: str = "") -> Task:
    return Task(
        id=task_id, user_id="alice", title=task_id, date=day, status=status,
        created_at=created or f"{day}T09:00:00+00:00",
    )


def test_create_state_is_idempotent(store):
    state = store.load_state("alice")
    state.category_points["work"] = 14
    store.save_state("alice", state)
    assert store.create_state("alice").category_points["work"] == 14


def test_load_missing_user(store):
    with pytest.raises(RecordNotFoundError):
        store.load_state("bob")


def test_save_state_bumps_version(store):
    state = store.load_state("alice")
    assert state.version == 0
    store.save_state("alice", state)
    assert state.version == 1
    assert store.load_state("alice").version == 1


def test_stale_save_rejected(store):
    first = store.load_state("alice")
    second = store.load_state("alice")
    first.category_points["work"] = 12
    store.save_state("alice", first)
    second.category_points["work"] = 18
    with pytest.raises(StaleStateError):
        store.save_state("alice", second)
    assert store.load_state("alice").category_points["work"] == 12


def test_save_state_for_missing_user(store):
    state = store.load_state("alice")
    with pytest.raises(RecordNotFoundError):
        store.save_state("bob", state)


def test_loaded_state_is_a_copy(store):
    state = store.load_state("alice")
    state.category_points["work"] = 20
    assert store.load_state("alice").category_points["work"] == 10


def test_task_upsert_and_load(store):
    task = _task("t1", "2026-02-11")
    store.save_task(task)
    task.title = "renamed"
    store.save_task(task)
    assert store.load_task("alice", "t1").title == "renamed"
    assert len(store.list_tasks("alice")) == 1


def test_load_missing_task(store):
    with pytest.raises(RecordNotFoundError):
        store.load_task("alice", "nope")


def test_delete_task_returns_removed(store):
    store.save_task(_task("t1", "2026-02-11", status="done"))
    removed = store.delete_task("alice", "t1")
    assert removed.status == "done"
    assert store.list_tasks("alice") == []
    with pytest.raises(RecordNotFoundError):
        store.delete_task("alice", "t1")


def test_list_tasks_filters_and_sorts(store):
    store.save_task(_task("late", "2026-02-12"))
    store.save_task(_task("b", "2026-02-11", created="2026-02-11T10:00:00+00:00"))
    store.save_task(_task("a", "2026-02-11", status="done", created="2026-02-11T08:00:00+00:00"))
    store.save_task(_task("old", "2026-02-01"))

    assert [t.id for t in store.list_tasks("alice")] == ["old", "a", "b", "late"]
    assert [t.id for t in store.list_tasks("alice", date(2026, 2, 11), date(2026, 2, 11))] == ["a", "b"]
    assert [t.id for t in store.list_tasks("alice", start=date(2026, 2, 11), status="pending")] == ["b", "late"]


def test_tasks_are_scoped_per_user(store):
    store.create_state("bob")
    store.save_task(_task("t1", "2026-02-11"))
    assert store.list_tasks("bob") == []
    with pytest.raises(RecordNotFoundError):
        store.load_task("bob", "t1")


# ── File layout ───────────────────────────────────────────────


def test_file_store_layout(file_store, workspace):
    file_store.save_task(_task("t1", "2026-02-11"))
    state = json.loads(state_path(workspace, "alice").read_text(encoding="utf-8"))
    assert state["categoryPoints"]["work"] == 10
    assert state["version"] == 0
    tasks = yaml.safe_load(tasks_path(workspace, "alice").read_text(encoding="utf-8"))
    assert tasks["tasks"][0]["id"] == "t1"
    assert not list((workspace / "users" / "alice").glob(".tmp_*"))


def test_file_store_rejects_bad_user_id(workspace):
    store = FileStore(workspace)
    with pytest.raises(ValueError):
        store.create_state("../etc")
    with pytest.raises(ValueError):
        store.load_state("a/b")


def test_memory_store_drop_user():
    store = MemoryStore()
    store.create_state("guest-1")
    store.save_task(Task(id="t1", user_id="guest-1", title="x", date="2026-02-11"))
    store.drop_user("guest-1")
    with pytest.raises(RecordNotFoundError):
        store.load_state("guest-1")
    assert store.list_tasks("guest-1") == []
    with pytest.raises(RecordNotFoundError):
        store.drop_user("guest-1")
