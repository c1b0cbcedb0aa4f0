#!/usr/bin/env python3
"""Streakline TUI — terminal dashboard for today's tasks, points, streak and badges."""

from __future__ import annotations

import logging
import os
import sys

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import DataTable, Footer, Header, Input, Label, Static

from streakline import (
    CATEGORIES,
    FileStore,
    InvalidTransitionError,
    RecordNotFoundError,
    StaleStateError,
    ValidationError,
    build_classifier,
    check_and_perform_weekly_update,
    create_task,
    delete_task,
    get_timezone,
    load_settings,
    review_task,
    tasks_for_day,
    weekly,
    workspace_root,
)
from streakline.clock import Clock
from streakline.streaks import current_streak_view

logger = logging.getLogger("streakline.cli")


# ── Stylesheet ─────────────────────────────────────────────────

CSS = """
Screen {
    background: $surface;
}

#main-layout {
    height: 1fr;
}

#left-pane {
    width: 2fr;
    min-width: 40;
    border-right: tall $primary-background-darken-2;
    padding: 0 1;
}

#right-pane {
    width: 1fr;
    min-width: 30;
    padding: 0 1;
}

.section-title {
    text-style: bold;
    color: $text;
    margin: 1 0 0 0;
    padding: 0 1;
}

#task-input {
    height: 3;
}

#tasks-table {
    height: 1fr;
}

#streak-info {
    height: auto;
    padding: 1 2;
    border: tall $primary-background-darken-2;
}

#points-table {
    height: auto;
}

#badge-list {
    height: auto;
    padding: 0 1;
    color: $text-muted;
}

#status-bar {
    dock: bottom;
    height: 1;
    background: $primary-background;
    color: $text-muted;
    padding: 0 2;
}
"""


# ── App ────────────────────────────────────────────────────────


class StreaklineApp(App):
    """Dashboard over one user's scoring state."""

    CSS = CSS
    TITLE = "Streakline"

    BINDINGS = [
        Binding("a", "focus_input", "Add"),
        Binding("d", "mark('done')", "Done"),
        Binding("x", "mark('missed')", "Missed"),
        Binding("delete", "delete_task", "Delete"),
        Binding("r", "refresh", "Refresh"),
        Binding("escape", "blur_focus", "Back"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, user_id: str) -> None:
        super().__init__()
        self.user_id = user_id
        root = workspace_root()
        self.settings = load_settings(root)
        self.clock = Clock(get_timezone(self.settings))
        self.store = FileStore(root)
        self.classifier = build_classifier(self.settings)

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Vertical(
                Label("Today", classes="section-title"),
                Input(placeholder="New task (Enter to add)", id="task-input"),
                DataTable(id="tasks-table", cursor_type="row"),
                id="left-pane",
            ),
            Vertical(
                Static(id="streak-info"),
                Label("Points this week", classes="section-title"),
                DataTable(id="points-table", cursor_type="none"),
                Label("Badges", classes="section-title"),
                Static(id="badge-list"),
                id="right-pane",
            ),
            id="main-layout",
        )
        yield Static(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        tasks = self.query_one("#tasks-table", DataTable)
        tasks.add_columns("Status", "Task", "Category", "Pts")
        points = self.query_one("#points-table", DataTable)
        points.add_columns("Category", "Pts", "Done", "Rate")

        self.store.create_state(self.user_id)
        result = check_and_perform_weekly_update(self.store, self.user_id, self.clock)
        if result.updated:
            self.notify("Weekly points updated", title="New week")
        self._load_data()

    def _status(self, message: str) -> None:
        self.query_one("#status-bar", Static).update(message)

    def _load_data(self) -> None:
        state = self.store.load_state(self.user_id)
        today = self.clock.today()

        table = self.query_one("#tasks-table", DataTable)
        table.clear()
        for task in tasks_for_day(self.store, self.user_id, today):
            mark = {"pending": "·", "done": "✓", "missed": "✗"}.get(task.status, "?")
            table.add_row(mark, task.title, task.category, str(task.points), key=task.id)

        points = self.query_one("#points-table", DataTable)
        points.clear()
        rates = weekly.completion_rates(state)
        for category in CATEGORIES:
            stats = state.weekly_stats[category]
            points.add_row(
                category,
                str(state.category_points[category]),
                f"{stats.completed}/{stats.total}",
                f"{rates[category]:.0f}%",
            )

        streak = current_streak_view(state, today, self.settings.reset_streak_on_gap)
        self.query_one("#streak-info", Static).update(
            f"\U0001f525 Streak: [b]{streak}[/b]   Longest: {state.streaks.longest}"
        )
        badges = "\n".join(f"\U0001f3c5 {b.name}: {b.description}" for b in state.badges)
        self.query_one("#badge-list", Static).update(badges or "(none yet)")
        self._status(f"{self.user_id} · {today.isoformat()} · {self.clock.tz.key}")

    def _selected_task_id(self) -> str | None:
        table = self.query_one("#tasks-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    # ── Actions ───────────────────────────────────────────────

    @on(Input.Submitted, "#task-input")
    def _on_task_submitted(self, event: Input.Submitted) -> None:
        title = event.value.strip()
        if not title:
            return
        event.input.value = ""
        self._status("Categorizing…")
        self._add_task(title)

    @work(thread=True)
    def _add_task(self, title: str) -> None:
        """Classify and create in a worker thread; the upstream call may be slow."""
        try:
            task, result = create_task(self.store, self.user_id, {"title": title}, self.classifier, self.clock)
            self.call_from_thread(self.notify,
                f"{task.title}: {result.category} ({task.points} pts)",
                title="Task added", severity="information")
        except (ValidationError, StaleStateError) as e:
            self.call_from_thread(self.notify, str(e), title="Not added", severity="warning")
        self.call_from_thread(self._load_data)

    def action_mark(self, status: str) -> None:
        task_id = self._selected_task_id()
        if task_id is None:
            return
        try:
            task = review_task(self.store, self.user_id, task_id, status, self.clock, self.settings)
            self.notify(f"{task.title}: {status}", severity="information")
        except (InvalidTransitionError, RecordNotFoundError, StaleStateError) as e:
            self.notify(str(e), severity="warning")
        self._load_data()

    def action_delete_task(self) -> None:
        task_id = self._selected_task_id()
        if task_id is None:
            return
        try:
            delete_task(self.store, self.user_id, task_id, self.clock)
        except (RecordNotFoundError, StaleStateError) as e:
            self.notify(str(e), severity="warning")
        self._load_data()

    def action_focus_input(self) -> None:
        self.query_one("#task-input", Input).focus()

    def action_blur_focus(self) -> None:
        self.set_focus(None)

    def action_refresh(self) -> None:
        self._load_data()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("STREAKLINE_LOG_LEVEL", "WARNING").upper(),
        filename=os.environ.get("STREAKLINE_LOG_FILE") or None,
    )
    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set STREAKLINE_ROOT or create the directory first.")
        sys.exit(1)

    app = StreaklineApp(os.environ.get("STREAKLINE_USER", "local"))
    app.run()


if __name__ == "__main__":
    main()
