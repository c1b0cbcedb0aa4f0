"""Streakline core library — scoring, streak and badge engine.

Public API re-exports for convenient imports:
    from streakline import FileStore, create_task, review_task, weekly_summary, ...
"""

# Clock & workspace
from streakline.clock import Clock, parse_day
from streakline.workspace import (
    workspace_root,
    load_settings,
    get_timezone,
    get_clock,
    config_path,
)

# Models
from streakline.models import (
    CATEGORIES,
    STATUSES,
    CategoryStats,
    Streaks,
    Badge,
    ScoringState,
    Task,
    TasksFile,
    Settings,
)

# Persistence
from streakline.store import (
    Store,
    FileStore,
    MemoryStore,
    RecordNotFoundError,
    StaleStateError,
)

# Engine
from streakline.classifier import (
    Classification,
    KeywordClassifier,
    GeminiClassifier,
    build_classifier,
    safe_classify,
)
from streakline.points import current_points, apply_weekly_adjustment
from streakline.streaks import on_task_completed, current_streak_view
from streakline.badges import evaluate as evaluate_badges
from streakline.scheduler import (
    WeeklyUpdateResult,
    needs_weekly_update,
    perform_weekly_update,
    check_and_perform_weekly_update,
    force_weekly_update,
    next_update_time,
    settlement_window,
    settle_if_due,
)

# Tasks & summary
from streakline.tasks import (
    ValidationError,
    InvalidTransitionError,
    validate_task_input,
    create_task,
    review_task,
    edit_task,
    delete_task,
    tasks_for_day,
    tasks_between,
    pending_review,
    task_history,
)
from streakline.summary import weekly_summary
