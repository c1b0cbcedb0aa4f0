"""Typed dataclasses for the Streakline data model.

All models use from_dict/to_dict for JSON/YAML serialization.
camelCase on disk is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults; loaded values
are clamped back into their invariants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ── Constants ─────────────────────────────────────────────────

CATEGORIES = ("work", "health", "personal", "learning")
STATUSES = ("pending", "done", "missed")

DEFAULT_POINTS = 10
MIN_POINTS = 5
MAX_POINTS = 20


def clamp_points(value: Any) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = DEFAULT_POINTS
    return max(MIN_POINTS, min(n, MAX_POINTS))


# ── Scoring state ─────────────────────────────────────────────


@dataclass
class CategoryStats:
    completed: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> CategoryStats:
        if not d or not isinstance(d, dict):
            return cls()
        total = max(0, int(d.get("total", 0) or 0))
        completed = max(0, min(int(d.get("completed", 0) or 0), total))
        return cls(completed=completed, total=total)

    def to_dict(self) -> dict[str, int]:
        return {"completed": self.completed, "total": self.total}


@dataclass
class Streaks:
    current: int = 0
    longest: int = 0
    last_completed_date: str | None = None  # ISO day

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> Streaks:
        if not d or not isinstance(d, dict):
            return cls()
        current = max(0, int(d.get("current", 0) or 0))
        return cls(
            current=current,
            longest=max(current, int(d.get("longest", 0) or 0)),
            last_completed_date=d.get("lastCompletedDate") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "longest": self.longest,
            "lastCompletedDate": self.last_completed_date,
        }


@dataclass
class Badge:
    name: str = ""
    description: str = ""
    earned_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Badge:
        return cls(
            name=str(d.get("name", "")),
            description=str(d.get("description", "")),
            earned_at=str(d.get("earnedAt", "")),
        )

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "description": self.description, "earnedAt": self.earned_at}


def _default_points() -> dict[str, int]:
    return {c: DEFAULT_POINTS for c in CATEGORIES}


def _default_stats() -> dict[str, CategoryStats]:
    return {c: CategoryStats() for c in CATEGORIES}


@dataclass
class ScoringState:
    """Per-user points, weekly counters, streak and badges."""

    category_points: dict[str, int] = field(default_factory=_default_points)
    weekly_stats: dict[str, CategoryStats] = field(default_factory=_default_stats)
    streaks: Streaks = field(default_factory=Streaks)
    badges: list[Badge] = field(default_factory=list)
    last_weekly_update: str | None = None
    version: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ScoringState:
        if not d or not isinstance(d, dict):
            return cls()
        raw_points = d.get("categoryPoints") or {}
        raw_stats = d.get("weeklyStats") or {}
        badges: list[Badge] = []
        seen: set[str] = set()
        for b in d.get("badges") or []:
            if not isinstance(b, dict):
                continue
            badge = Badge.from_dict(b)
            if badge.name and badge.name not in seen:
                seen.add(badge.name)
                badges.append(badge)
        return cls(
            category_points={c: clamp_points(raw_points.get(c, DEFAULT_POINTS)) for c in CATEGORIES},
            weekly_stats={c: CategoryStats.from_dict(raw_stats.get(c)) for c in CATEGORIES},
            streaks=Streaks.from_dict(d.get("streaks")),
            badges=badges,
            last_weekly_update=d.get("lastWeeklyUpdate") or None,
            version=int(d.get("version", 0) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "categoryPoints": dict(self.category_points),
            "weeklyStats": {c: s.to_dict() for c, s in self.weekly_stats.items()},
            "streaks": self.streaks.to_dict(),
            "badges": [b.to_dict() for b in self.badges],
            "lastWeeklyUpdate": self.last_weekly_update,
            "version": self.version,
        }

    def badge_names(self) -> list[str]:
        return [b.name for b in self.badges]

    def weekly_total(self) -> int:
        return sum(s.total for s in self.weekly_stats.values())


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: str = ""
    user_id: str = ""
    title: str = ""
    description: str = ""
    category: str = "personal"
    status: str = "pending"  # pending, done, missed
    points: int = DEFAULT_POINTS
    date: str = ""  # ISO day
    completed_at: str | None = None
    reviewed: bool = False
    reviewed_at: str | None = None
    ai_confidence: float = 0.0
    created_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        category = str(d.get("category", "personal"))
        status = str(d.get("status", "pending"))
        return cls(
            id=str(d.get("id", "")),
            user_id=str(d.get("userId", "")),
            title=str(d.get("title", "")),
            description=str(d.get("description", "") or ""),
            category=category if category in CATEGORIES else "personal",
            status=status if status in STATUSES else "pending",
            points=int(d.get("points", DEFAULT_POINTS)),
            date=str(d.get("date", "")),
            completed_at=d.get("completedAt"),
            reviewed=bool(d.get("reviewed", False)),
            reviewed_at=d.get("reviewedAt"),
            ai_confidence=float(d.get("aiConfidence", 0.0) or 0.0),
            created_at=str(d.get("createdAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "points": self.points,
            "date": self.date,
            "reviewed": self.reviewed,
            "aiConfidence": self.ai_confidence,
            "createdAt": self.created_at,
        }
        if self.completed_at:
            d["completedAt"] = self.completed_at
        if self.reviewed_at:
            d["reviewedAt"] = self.reviewed_at
        return d


@dataclass
class TasksFile:
    tasks: list[Task] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TasksFile:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(tasks=[Task.from_dict(t) for t in (d.get("tasks") or []) if isinstance(t, dict)])

    def to_dict(self) -> dict[str, Any]:
        return {"tasks": [t.to_dict() for t in self.tasks]}


# ── Settings ──────────────────────────────────────────────────


@dataclass
class Settings:
    timezone: str = "UTC"
    classifier_model: str = "gemini-2.5-flash"
    classifier_timeout_seconds: float = 10.0
    reset_streak_on_gap: bool = False

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        classifier = d.get("classifier") or {}
        streaks = d.get("streaks") or {}
        if not isinstance(classifier, dict):
            classifier = {}
        if not isinstance(streaks, dict):
            streaks = {}
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            classifier_model=str(classifier.get("model", "gemini-2.5-flash")),
            classifier_timeout_seconds=float(classifier.get("timeout_seconds", 10.0)),
            reset_streak_on_gap=bool(streaks.get("reset_on_gap", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "classifier": {
                "model": self.classifier_model,
                "timeout_seconds": self.classifier_timeout_seconds,
            },
            "streaks": {"reset_on_gap": self.reset_streak_on_gap},
        }
