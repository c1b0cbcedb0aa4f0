"""Weekly summary for Streakline: task outcomes, points, streak and badges."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from streakline import weekly
from streakline.clock import Clock
from streakline.models import CATEGORIES, Settings, Task
from streakline.scheduler import check_and_perform_weekly_update
from streakline.store import Store
from streakline.streaks import current_streak_view


def _outcome_counts(tasks: list[Task]) -> dict[str, int]:
    done = [t for t in tasks if t.status == "done"]
    return {
        "total": len(tasks),
        "completed": len(done),
        "missed": sum(1 for t in tasks if t.status == "missed"),
        "pending": sum(1 for t in tasks if t.status == "pending"),
        "points": sum(t.points for t in done),
    }


def weekly_summary(
    store: Store,
    user_id: str,
    clock: Clock,
    week_start: date | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Summarize the 7 days from *week_start* (default: this Sunday-start week).

    Settles the user first if a weekly boundary has passed.
    """
    settings = settings or Settings()
    update = check_and_perform_weekly_update(store, user_id, clock)
    state = store.load_state(user_id)

    if week_start is None:
        start, end = clock.week_range(clock.today())
    else:
        start, end = week_start, week_start + timedelta(days=6)
    tasks = store.list_tasks(user_id, start=start, end=end)

    overall = _outcome_counts(tasks)
    stats = {
        "total": overall["total"],
        "completed": overall["completed"],
        "missed": overall["missed"],
        "pending": overall["pending"],
        "totalPoints": overall["points"],
    }

    category_stats = {}
    for category in CATEGORIES:
        counts = _outcome_counts([t for t in tasks if t.category == category])
        total = counts["total"]
        category_stats[category] = {
            "total": total,
            "completed": counts["completed"],
            "missed": counts["missed"],
            "pending": counts["pending"],
            "completionRate": round(counts["completed"] / total * 100, 1) if total else 0.0,
            "points": counts["points"],
        }

    rates = weekly.completion_rates(state)
    streaks = state.streaks.to_dict()
    streaks["display"] = current_streak_view(state, clock.today(), settings.reset_streak_on_gap)

    return {
        "week": {"start": start.isoformat(), "end": end.isoformat()},
        "stats": stats,
        "categoryStats": category_stats,
        "currentPoints": dict(state.category_points),
        "weeklyStats": {
            c: {**state.weekly_stats[c].to_dict(), "completionRate": rates[c]}
            for c in CATEGORIES
        },
        "streaks": streaks,
        "badges": [b.to_dict() for b in state.badges],
        "weeklyUpdate": update.to_dict(),
    }
