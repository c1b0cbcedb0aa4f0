"""Day-based completion streak for Streakline.

A streak advances at most once per calendar day. By default a skipped day
is not detected (the streak only ever grows); with reset_on_gap the streak
restarts at 1 when more than one calendar day has passed since the last
completion.
"""

from __future__ import annotations

import logging
from datetime import date

from streakline.clock import parse_day
from streakline.models import ScoringState

logger = logging.getLogger("streakline.streaks")


def _last_day(state: ScoringState) -> date | None:
    raw = state.streaks.last_completed_date
    if not raw:
        return None
    try:
        return parse_day(raw)
    except ValueError:
        logger.warning("Ignoring malformed lastCompletedDate %r", raw)
        return None


def on_task_completed(state: ScoringState, completion_day: date, reset_on_gap: bool = False) -> bool:
    """Advance the streak for a completion on *completion_day*.

    Returns True if the streak changed.
    """
    streaks = state.streaks
    last = _last_day(state)

    if last == completion_day:
        return False

    if reset_on_gap and last is not None:
        gap = (completion_day - last).days
        if gap < 0:
            # Late review of an older task; never move the streak backwards.
            return False
        streaks.current = 1 if gap > 1 else streaks.current + 1
    else:
        streaks.current += 1

    streaks.longest = max(streaks.current, streaks.longest)
    if last is None or completion_day > last:
        streaks.last_completed_date = completion_day.isoformat()
    logger.info("Streak advanced to %d (longest %d)", streaks.current, streaks.longest)
    return True


def current_streak_view(state: ScoringState, today: date, reset_on_gap: bool = False) -> int:
    """Streak value to show on *today*, without touching state.

    In reset_on_gap mode a streak whose last completion is older than
    yesterday reads as 0.
    """
    current = state.streaks.current
    if not reset_on_gap:
        return current
    last = _last_day(state)
    if last is None or (today - last).days > 1:
        return 0
    return current
