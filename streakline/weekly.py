"""Weekly performance counters (completed/total per category)."""

from __future__ import annotations

from streakline.models import CATEGORIES, CategoryStats, ScoringState


def _stats(state: ScoringState, category: str) -> CategoryStats:
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category: {category}")
    return state.weekly_stats.setdefault(category, CategoryStats())


def record_created(state: ScoringState, category: str) -> None:
    _stats(state, category).total += 1


def record_completed(state: ScoringState, category: str) -> None:
    """Count a completion. Capped at total so completed <= total always holds."""
    stats = _stats(state, category)
    stats.completed = min(stats.completed + 1, stats.total)


def record_deleted(state: ScoringState, category: str, was_completed: bool) -> None:
    """Take back the weekly credit of a deleted task that had been done."""
    if not was_completed:
        return
    stats = _stats(state, category)
    stats.completed = max(0, stats.completed - 1)
    stats.total = max(0, stats.total - 1)


def reset(state: ScoringState) -> None:
    for category in CATEGORIES:
        state.weekly_stats[category] = CategoryStats()


def completion_rates(state: ScoringState) -> dict[str, float]:
    """Completion percentage (0-100) per category; 0 for an empty category."""
    rates = {}
    for category in CATEGORIES:
        stats = _stats(state, category)
        rates[category] = round(stats.completed / stats.total * 100, 1) if stats.total else 0.0
    return rates
