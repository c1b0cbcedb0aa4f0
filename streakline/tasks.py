"""Task creation, review, editing, deletion and queries for Streakline.

Each mutating operation is one read-modify-write of the owner's
ScoringState plus the task record itself.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Any

from streakline import weekly
from streakline.badges import evaluate
from streakline.classifier import Classification, Classifier, safe_classify
from streakline.clock import Clock, parse_day
from streakline.models import ScoringState, Settings, Task
from streakline.points import current_points
from streakline.scheduler import settle_if_due
from streakline.store import Store
from streakline.streaks import on_task_completed

logger = logging.getLogger("streakline.tasks")

REVIEW_STATUSES = {"done", "missed"}
MAX_TITLE_LENGTH = 200


class ValidationError(ValueError):
    """Invalid task input. ``errors`` holds one message per problem."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class InvalidTransitionError(ValueError):
    """A reviewed task cannot change status again."""


# ── Validation ────────────────────────────────────────────────


def validate_task_input(data: dict[str, Any]) -> list[str]:
    """Validate create/edit input and return list of errors (empty if valid)."""
    errors = []
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Task title is required")
    elif len(title.strip()) > MAX_TITLE_LENGTH:
        errors.append(f"Task title must be at most {MAX_TITLE_LENGTH} characters")

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        errors.append("description must be a string")

    raw_date = data.get("date")
    if raw_date not in (None, ""):
        try:
            parse_day(str(raw_date))
        except ValueError:
            errors.append("Invalid date format")
    return errors


def _task_day(data: dict[str, Any], clock: Clock) -> date:
    raw_date = data.get("date")
    return parse_day(str(raw_date)) if raw_date else clock.today()


# ── Mutations ─────────────────────────────────────────────────


def create_task(
    store: Store,
    user_id: str,
    data: dict[str, Any],
    classifier: Classifier | None,
    clock: Clock,
) -> tuple[Task, Classification]:
    """Categorize, price and persist a new pending task."""
    errors = validate_task_input(data)
    if errors:
        raise ValidationError(errors)

    state = store.load_state(user_id)
    now = clock.now()
    settle_if_due(store, user_id, state, clock, now)
    title = data["title"].strip()
    description = (data.get("description") or "").strip()

    result = safe_classify(classifier, title, description)
    task = Task(
        id=uuid.uuid4().hex,
        user_id=user_id,
        title=title,
        description=description,
        category=result.category,
        points=current_points(state, result.category),
        date=_task_day(data, clock).isoformat(),
        ai_confidence=result.confidence,
        created_at=now.isoformat(timespec="seconds"),
    )
    weekly.record_created(state, task.category)
    store.save_state(user_id, state)
    store.save_task(task)
    logger.info("Created task %s as %s (%d pts, confidence %.2f)", task.id, task.category, task.points, task.ai_confidence)
    return task, result


def review_task(
    store: Store,
    user_id: str,
    task_id: str,
    status: str,
    clock: Clock,
    settings: Settings | None = None,
) -> Task:
    """Mark a pending task done or missed. Done tasks feed weekly stats, streak and badges."""
    if status not in REVIEW_STATUSES:
        raise ValidationError(['Status must be either "done" or "missed"'])
    settings = settings or Settings()

    task = store.load_task(user_id, task_id)
    if task.status != "pending":
        raise InvalidTransitionError(f"Task {task_id} is already {task.status}")
    state = store.load_state(user_id)

    now = clock.now()
    settle_if_due(store, user_id, state, clock, now)
    stamp = now.isoformat(timespec="seconds")
    task.status = status
    task.reviewed = True
    task.reviewed_at = stamp

    if status == "done":
        task.completed_at = stamp
        weekly.record_completed(state, task.category)
        on_task_completed(state, clock.local_day(now), reset_on_gap=settings.reset_streak_on_gap)
        # Streak badges only; Perfect Week is judged at settlement.
        evaluate(state, [], now)

    store.save_state(user_id, state)
    store.save_task(task)
    return task


def edit_task(store: Store, user_id: str, task_id: str, data: dict[str, Any]) -> Task:
    """Change title, description or date. Category and points stay as snapshotted."""
    errors = validate_task_input(data)
    if errors:
        raise ValidationError(errors)
    task = store.load_task(user_id, task_id)
    task.title = data["title"].strip()
    task.description = (data.get("description") or "").strip()
    if data.get("date"):
        task.date = parse_day(str(data["date"])).isoformat()
    store.save_task(task)
    return task


def _done_this_cycle(task: Task, state: ScoringState, clock: Clock) -> bool:
    if task.status != "done":
        return False
    completed = clock.parse_timestamp(task.completed_at)
    settled = clock.parse_timestamp(state.last_weekly_update)
    return completed is None or settled is None or completed >= settled


def delete_task(store: Store, user_id: str, task_id: str, clock: Clock) -> Task:
    """Remove a task, taking back its weekly credit if it was done this cycle."""
    state = store.load_state(user_id)
    task = store.load_task(user_id, task_id)
    changed = settle_if_due(store, user_id, state, clock, clock.now()) is not None
    if _done_this_cycle(task, state, clock):
        weekly.record_deleted(state, task.category, was_completed=True)
        changed = True
    if changed:
        store.save_state(user_id, state)
    return store.delete_task(user_id, task_id)


# ── Queries ───────────────────────────────────────────────────


def tasks_for_day(store: Store, user_id: str, day: date) -> list[Task]:
    return store.list_tasks(user_id, start=day, end=day)


def tasks_between(store: Store, user_id: str, start: date, end: date) -> list[Task]:
    return store.list_tasks(user_id, start=start, end=end)


def pending_review(store: Store, user_id: str, clock: Clock, day: date | None = None) -> list[Task]:
    """Pending tasks from *day* (yesterday by default)."""
    if day is None:
        day = clock.today() - timedelta(days=1)
    return store.list_tasks(user_id, start=day, end=day, status="pending")


def task_history(store: Store, user_id: str, clock: Clock) -> list[Task]:
    """All tasks before today, newest day first."""
    tasks = store.list_tasks(user_id, end=clock.today() - timedelta(days=1))
    # Stable sort keeps creation order within a day.
    return sorted(tasks, key=lambda t: t.date, reverse=True)
