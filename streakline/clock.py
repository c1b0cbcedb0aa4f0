"""Calendar-day normalization and weekly boundary math for Streakline.

Every date computation in the engine goes through a Clock bound to one
authoritative time zone.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo


BOUNDARY_WEEKDAY = 6  # Sunday (Monday == 0)
BOUNDARY_TIME = time(21, 0)


def parse_day(text: str) -> date:
    """Parse a strict YYYY-MM-DD string."""
    text = (text or "").strip()
    if len(text) != 10:
        raise ValueError(f"Invalid date: {text!r}")
    return date.fromisoformat(text)


class Clock:
    """Source of "now" and calendar days in a fixed time zone."""

    def __init__(self, tz: ZoneInfo | None = None, now_fn: Callable[[], datetime] | None = None) -> None:
        self.tz = tz or ZoneInfo("UTC")
        self._now_fn = now_fn

    def now(self) -> datetime:
        if self._now_fn is not None:
            return self._localize(self._now_fn())
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def local_day(self, value: datetime | date | str) -> date:
        """Normalize a datetime, date or ISO string to a calendar day in this zone.

        Naive datetimes are taken as already local.
        """
        if isinstance(value, datetime):
            return self._localize(value).date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            if len(value.strip()) == 10:
                return parse_day(value)
            return self._localize(datetime.fromisoformat(value)).date()
        raise TypeError(f"Cannot normalize {type(value).__name__} to a day")

    def parse_timestamp(self, text: str | None) -> datetime | None:
        if not text:
            return None
        return self._localize(datetime.fromisoformat(text))

    # ── Weekly boundary ───────────────────────────────────────

    def _boundary_on(self, day: date) -> datetime:
        return datetime.combine(day, BOUNDARY_TIME, tzinfo=self.tz)

    def last_boundary(self, now: datetime | None = None) -> datetime:
        """Most recent Sunday 21:00 local at or before *now*."""
        now = self._localize(now) if now is not None else self.now()
        days_back = (now.weekday() - BOUNDARY_WEEKDAY) % 7
        boundary = self._boundary_on(now.date() - timedelta(days=days_back))
        if boundary > now:
            boundary = self._boundary_on(boundary.date() - timedelta(days=7))
        return boundary

    def next_boundary(self, now: datetime | None = None) -> datetime:
        """First Sunday 21:00 local strictly after *now*."""
        now = self._localize(now) if now is not None else self.now()
        last = self.last_boundary(now)
        return self._boundary_on(last.date() + timedelta(days=7))

    # ── Week ranges ───────────────────────────────────────────

    @staticmethod
    def week_range(day: date) -> tuple[date, date]:
        """Sunday..Saturday of the calendar week containing *day*."""
        start = day - timedelta(days=(day.weekday() + 1) % 7)
        return start, start + timedelta(days=6)

    @staticmethod
    def cycle_days(boundary: datetime) -> tuple[date, date]:
        """Monday..Sunday ending on the boundary's Sunday."""
        end = boundary.date()
        return end - timedelta(days=6), end
