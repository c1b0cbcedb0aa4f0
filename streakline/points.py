"""Adaptive per-category point values for Streakline.

Points move on raw under/over-completion, not on completion rate:
an incomplete category gets +2 (max 20), a perfectly completed one -1 (min 5).
"""

from __future__ import annotations

import logging

from streakline.models import CATEGORIES, MAX_POINTS, MIN_POINTS, ScoringState, clamp_points

logger = logging.getLogger("streakline.points")

INCOMPLETE_STEP = 2
PERFECT_STEP = 1


def current_points(state: ScoringState, category: str) -> int:
    """Point value a task in *category* is worth right now."""
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category: {category}")
    return clamp_points(state.category_points.get(category))


def apply_weekly_adjustment(state: ScoringState) -> dict[str, tuple[int, int]]:
    """Adjust point values from this cycle's weekly stats.

    Returns {category: (old, new)} for every category whose value changed.
    A user with no tasks at all this cycle is left untouched.
    """
    changes: dict[str, tuple[int, int]] = {}
    if state.weekly_total() == 0:
        logger.info("No tasks this cycle, keeping current points")
        return changes

    for category in CATEGORIES:
        stats = state.weekly_stats[category]
        if stats.total == 0:
            continue
        old = current_points(state, category)
        if stats.completed < stats.total:
            new = min(old + INCOMPLETE_STEP, MAX_POINTS)
        else:
            new = max(old - PERFECT_STEP, MIN_POINTS)
        state.category_points[category] = new
        if new != old:
            changes[category] = (old, new)
        logger.info(
            "%s points %d -> %d (completed %d/%d)",
            category, old, new, stats.completed, stats.total,
        )
    return changes
