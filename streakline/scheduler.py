"""Lazy weekly settlement for Streakline.

A user is due for settlement when their last update predates the most
recent Sunday 21:00 boundary. Settlement adjusts points from the weekly
counters, resets the counters, evaluates badges and stamps the update
time, all persisted in one state save. Nothing runs on a timer; callers
check on demand (summary fetch, dashboard load, login).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from streakline import weekly
from streakline.badges import evaluate
from streakline.clock import Clock
from streakline.models import Badge, ScoringState, Task
from streakline.points import apply_weekly_adjustment
from streakline.store import Store

logger = logging.getLogger("streakline.scheduler")


@dataclass
class WeeklyUpdateResult:
    updated: bool = False
    point_changes: dict[str, tuple[int, int]] = field(default_factory=dict)
    new_badges: list[Badge] = field(default_factory=list)
    category_points: dict[str, int] = field(default_factory=dict)
    next_update: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "updated": self.updated,
            "pointChanges": {c: {"old": o, "new": n} for c, (o, n) in self.point_changes.items()},
            "newBadges": [b.to_dict() for b in self.new_badges],
            "newPoints": dict(self.category_points),
            "nextUpdate": self.next_update,
        }


def needs_weekly_update(state: ScoringState, now: datetime, clock: Clock) -> bool:
    """True if no settlement has happened since the last boundary."""
    last = clock.parse_timestamp(state.last_weekly_update)
    if last is None:
        return True
    return last < clock.last_boundary(now)


def next_update_time(clock: Clock, now: datetime | None = None) -> datetime:
    return clock.next_boundary(now)


def perform_weekly_update(
    state: ScoringState,
    week_tasks: list[Task],
    now: datetime,
    clock: Clock,
) -> WeeklyUpdateResult:
    """Settle one cycle on *state* in place."""
    changes = apply_weekly_adjustment(state)
    weekly.reset(state)
    new_badges = evaluate(state, week_tasks, now)
    state.last_weekly_update = now.isoformat(timespec="seconds")
    return WeeklyUpdateResult(
        updated=True,
        point_changes=changes,
        new_badges=new_badges,
        category_points=dict(state.category_points),
        next_update=next_update_time(clock, now).isoformat(timespec="seconds"),
    )


def settlement_window(state: ScoringState, now: datetime, clock: Clock, forced: bool = False) -> tuple[date, date]:
    """Days whose tasks are judged for Perfect Week.

    The window opens on the Monday of the cycle in which the previous
    settlement ran, so a late settlement judges every week its counters
    cover. A regular settlement closes on the boundary Sunday; a forced one
    runs through today.
    """
    if forced:
        end = clock.local_day(now)
        first_cycle = clock.cycle_days(clock.next_boundary(now))
    else:
        end = clock.last_boundary(now).date()
        first_cycle = clock.cycle_days(clock.last_boundary(now))
    last = clock.parse_timestamp(state.last_weekly_update)
    start = clock.cycle_days(clock.next_boundary(last))[0] if last is not None else first_cycle[0]
    return min(start, end), end


def settle_if_due(
    store: Store,
    user_id: str,
    state: ScoringState,
    clock: Clock,
    now: datetime,
) -> WeeklyUpdateResult | None:
    """Settle *state* in memory if a boundary has passed; the caller saves it.

    Task mutations call this first so their counts land in the new cycle.
    """
    if not needs_weekly_update(state, now, clock):
        return None
    logger.info("Weekly boundary passed, updating points for %s", user_id)
    start, end = settlement_window(state, now, clock)
    week_tasks = store.list_tasks(user_id, start=start, end=end)
    return perform_weekly_update(state, week_tasks, now, clock)


def _settle(
    store: Store,
    user_id: str,
    state: ScoringState,
    clock: Clock,
    now: datetime,
    forced: bool = False,
) -> WeeklyUpdateResult:
    start, end = settlement_window(state, now, clock, forced=forced)
    week_tasks = store.list_tasks(user_id, start=start, end=end)
    result = perform_weekly_update(state, week_tasks, now, clock)
    store.save_state(user_id, state)
    logger.info("Weekly update completed for %s", user_id)
    return result


def check_and_perform_weekly_update(store: Store, user_id: str, clock: Clock) -> WeeklyUpdateResult:
    """Settle *user_id* if a boundary has passed since their last update."""
    now = clock.now()
    state = store.load_state(user_id)
    if not needs_weekly_update(state, now, clock):
        return WeeklyUpdateResult(
            updated=False,
            category_points=dict(state.category_points),
            next_update=next_update_time(clock, now).isoformat(timespec="seconds"),
        )
    logger.info("Weekly boundary passed, updating points for %s", user_id)
    return _settle(store, user_id, state, clock, now)


def force_weekly_update(store: Store, user_id: str, clock: Clock) -> WeeklyUpdateResult:
    """Settle *user_id* now, regardless of the boundary.

    Perfect Week is judged on the cycle in progress.
    """
    now = clock.now()
    state = store.load_state(user_id)
    return _settle(store, user_id, state, clock, now, forced=True)
