from __future__ import annotations

import logging
import os
import re
import secrets
import uuid
from typing import Any

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from streakline import (
    Clock,
    FileStore,
    InvalidTransitionError,
    MemoryStore,
    RecordNotFoundError,
    Settings,
    StaleStateError,
    Store,
    ValidationError,
    build_classifier,
    check_and_perform_weekly_update,
    create_task,
    delete_task,
    edit_task,
    force_weekly_update,
    get_timezone,
    load_settings,
    parse_day,
    pending_review,
    review_task,
    task_history,
    tasks_for_day,
    weekly_summary,
    workspace_root,
)

logging.basicConfig(
    level=os.environ.get("STREAKLINE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("streakline.api")

GUEST = "guest"
GUEST_PREFIX = "guest-"
_GUEST_ID_RE = re.compile(r"^[0-9a-f]{32}$")

app = FastAPI(title="Streakline API", version="0.1.0")

security = HTTPBasic(auto_error=False)

# Guests get the same engine over an ephemeral store. Callers without an
# X-Guest-Id header share the "guest" user.
guest_store = MemoryStore()


# ── Auth ──────────────────────────────────────────────────────

def _guest_user(guest_id: str | None) -> str:
    if not guest_id:
        return GUEST
    if not _GUEST_ID_RE.match(guest_id):
        raise HTTPException(status_code=400, detail="Invalid guest id")
    return GUEST_PREFIX + guest_id


def is_guest(username: str) -> bool:
    return username == GUEST or username.startswith(GUEST_PREFIX)


def get_current_user(
    credentials: HTTPBasicCredentials | None = Depends(security),
    x_guest_id: str | None = Header(default=None),
) -> str:
    expected_username = os.environ.get("STREAKLINE_USERNAME", "")
    expected_password = os.environ.get("STREAKLINE_PASSWORD", "")

    if credentials is None:
        if not expected_username or not expected_password:
            return _guest_user(x_guest_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    if not expected_username or not expected_password:
        return _guest_user(x_guest_id)

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# ── Dependencies ──────────────────────────────────────────────

def get_settings() -> Settings:
    return load_settings(workspace_root())


def get_clock(settings: Settings = Depends(get_settings)) -> Clock:
    return Clock(get_timezone(settings))


def get_store(username: str = Depends(get_current_user)) -> Store:
    store: Store = guest_store if is_guest(username) else FileStore(workspace_root())
    store.create_state(username)
    return store


# ── Error mapping ─────────────────────────────────────────────

@app.exception_handler(ValidationError)
def _validation_error(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"errors": exc.errors})


@app.exception_handler(InvalidTransitionError)
def _transition_error(_request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RecordNotFoundError)
def _not_found(_request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc.args[0]) if exc.args else "Not found"})


@app.exception_handler(StaleStateError)
def _stale_state(_request: Request, exc: StaleStateError) -> JSONResponse:
    logger.warning("Concurrent update rejected: %s", exc)
    return JSONResponse(status_code=409, content={"error": "Concurrent update, please retry"})


def _day_param(value: str | None, clock: Clock):
    if not value:
        return clock.today()
    try:
        return parse_day(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.post("/api/guest", status_code=201)
def api_create_guest() -> dict[str, str]:
    """Issue a guest id; send it back as X-Guest-Id to get a private scoring state."""
    if os.environ.get("STREAKLINE_USERNAME") and os.environ.get("STREAKLINE_PASSWORD"):
        raise HTTPException(status_code=403, detail="Guest mode is disabled")
    guest_id = uuid.uuid4().hex
    guest_store.create_state(GUEST_PREFIX + guest_id)
    return {"guestId": guest_id}


@app.delete("/api/guest")
def api_delete_guest(username: str = Depends(get_current_user)) -> dict[str, str]:
    """Drop a guest's state and tasks."""
    if not username.startswith(GUEST_PREFIX):
        raise HTTPException(status_code=400, detail="X-Guest-Id header required")
    guest_store.drop_user(username)
    return {"message": "Guest data deleted successfully"}


@app.post("/api/tasks", status_code=201)
def api_create_task(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Add a task; the classifier picks its category and the point store its value."""
    task, categorization = create_task(store, username, payload, build_classifier(settings), clock)
    return {"task": task.to_dict(), "categorization": categorization.to_dict()}


@app.get("/api/tasks")
def api_list_tasks(
    date: str | None = None,
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> list[dict[str, Any]]:
    day = _day_param(date, clock)
    return [t.to_dict() for t in tasks_for_day(store, username, day)]


@app.get("/api/tasks/review")
def api_review_queue(
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> list[dict[str, Any]]:
    """Yesterday's tasks still waiting for done/missed."""
    return [t.to_dict() for t in pending_review(store, username, clock)]


@app.get("/api/tasks/all")
def api_task_history(
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> list[dict[str, Any]]:
    return [t.to_dict() for t in task_history(store, username, clock)]


@app.put("/api/tasks/{task_id}/edit")
def api_edit_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> dict[str, Any]:
    return edit_task(store, username, task_id, payload).to_dict()


@app.put("/api/tasks/{task_id}")
def api_review_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Mark a task done or missed."""
    task = review_task(store, username, task_id, str(payload.get("status", "")), clock, settings)
    return task.to_dict()


@app.delete("/api/tasks/{task_id}")
def api_delete_task(
    task_id: str,
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> dict[str, Any]:
    delete_task(store, username, task_id, clock)
    return {"message": "Task deleted successfully", "task_id": task_id}


@app.get("/api/summary")
def api_summary(
    week: str | None = None,
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Weekly summary; settles the user first if Sunday 21:00 has passed."""
    week_start = _day_param(week, clock) if week else None
    return weekly_summary(store, username, clock, week_start=week_start, settings=settings)


@app.post("/api/summary/update-points")
def api_update_points(
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> dict[str, Any]:
    """Run the weekly settlement now, regardless of the boundary."""
    result = force_weekly_update(store, username, clock)
    state = store.load_state(username)
    return {
        "message": "Category points updated successfully",
        "newPoints": result.category_points,
        "badges": [b.to_dict() for b in state.badges],
    }


@app.get("/api/summary/streaks")
def api_streaks(
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> dict[str, Any]:
    return store.load_state(username).streaks.to_dict()


@app.get("/api/summary/badges")
def api_badges(
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> list[dict[str, Any]]:
    return [b.to_dict() for b in store.load_state(username).badges]


@app.get("/api/state")
def api_get_state(
    username: str = Depends(get_current_user),
    store: Store = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> dict[str, Any]:
    """Full scoring state dump, after the lazy weekly check (login-time hook)."""
    check_and_perform_weekly_update(store, username, clock)
    return store.load_state(username).to_dict()
