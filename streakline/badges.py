"""Badge rules for Streakline.

Rules are evaluated in declaration order; a badge name is awarded at most
once per user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from streakline.models import Badge, ScoringState, Task

logger = logging.getLogger("streakline.badges")


@dataclass(frozen=True)
class BadgeRule:
    name: str
    description: str
    check: Callable[[ScoringState, list[Task]], bool]


def _streak_at_least(n: int) -> Callable[[ScoringState, list[Task]], bool]:
    return lambda state, _tasks: state.streaks.current >= n


def _perfect_week(_state: ScoringState, week_tasks: list[Task]) -> bool:
    return bool(week_tasks) and all(t.status == "done" for t in week_tasks)


BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule("First Task", "Completed your first task!", _streak_at_least(1)),
    BadgeRule("3 Day Streak", "Maintained a 3-day completion streak!", _streak_at_least(3)),
    BadgeRule("7 Day Streak", "Maintained a 7-day completion streak!", _streak_at_least(7)),
    BadgeRule("30 Day Streak", "Maintained a 30-day completion streak!", _streak_at_least(30)),
    BadgeRule("Perfect Week", "Completed all tasks in a week!", _perfect_week),
)


def evaluate(state: ScoringState, week_tasks: Iterable[Task], now: datetime) -> list[Badge]:
    """Append every qualifying badge the user does not own yet.

    Returns only the newly earned badges, in rule order.
    """
    tasks = list(week_tasks)
    owned = set(state.badge_names())
    earned_at = now.isoformat(timespec="seconds")
    new_badges: list[Badge] = []
    for rule in BADGE_RULES:
        if rule.name in owned or not rule.check(state, tasks):
            continue
        badge = Badge(name=rule.name, description=rule.description, earned_at=earned_at)
        new_badges.append(badge)
        owned.add(rule.name)
    if new_badges:
        state.badges.extend(new_badges)
        logger.info("Awarded badges: %s", ", ".join(b.name for b in new_badges))
    return new_badges
