"""Tests for streakline/scheduler.py — lazy weekly settlement."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from streakline.models import CategoryStats, ScoringState, Task
from streakline.scheduler import (
    check_and_perform_weekly_update,
    force_weekly_update,
    needs_weekly_update,
    next_update_time,
    settlement_window,
)

UTC = ZoneInfo("UTC")
SETTLED_MONDAY = "2026-02-09T08:00:00+00:00"
SUNDAY_9PM = datetime(2026, 2, 15, 21, 0, tzinfo=UTC)


def _prime(store, **stats) -> None:
    """Mark alice as settled after the 2026-02-08 boundary, with weekly counters."""
    state = store.load_state("alice")
    state.last_weekly_update = SETTLED_MONDAY
    for category, (completed, total) in stats.items():
        state.weekly_stats[category] = CategoryStats(completed=completed, total=total)
    store.save_state("alice", state)


def _task(task_id: str, day: str, status: str) -> Task:
    return Task(id=task_id, user_id="alice", title=task_id, date=day, status=status,
                created_at=f"{day}T09:00:00+00:00")


def test_never_settled_needs_update(clock):
    assert needs_weekly_update(ScoringState(), clock.now(), clock) is True


def test_settled_after_boundary_is_current(clock):
    state = ScoringState(last_weekly_update=SETTLED_MONDAY)
    assert needs_weekly_update(state, clock.now(), clock) is False


def test_boundary_passing_triggers_update(clock):
    state = ScoringState(last_weekly_update=SETTLED_MONDAY)
    assert needs_weekly_update(state, datetime(2026, 2, 15, 20, 59, tzinfo=UTC), clock) is False
    assert needs_weekly_update(state, SUNDAY_9PM, clock) is True


def test_next_update_time(clock):
    assert next_update_time(clock, clock.now()) == SUNDAY_9PM


def test_check_is_noop_before_boundary(memory_store, clock):
    _prime(memory_store, work=(1, 2))
    result = check_and_perform_weekly_update(memory_store, "alice", clock)
    assert result.updated is False
    assert result.next_update == "2026-02-15T21:00:00+00:00"
    state = memory_store.load_state("alice")
    assert state.weekly_stats["work"].to_dict() == {"completed": 1, "total": 2}
    assert state.last_weekly_update == SETTLED_MONDAY


def test_settlement_adjusts_resets_and_stamps(memory_store, clock):
    _prime(memory_store, work=(4, 4), health=(1, 5))
    clock.set(SUNDAY_9PM)
    result = check_and_perform_weekly_update(memory_store, "alice", clock)

    assert result.updated is True
    assert result.point_changes == {"work": (10, 9), "health": (10, 12)}
    state = memory_store.load_state("alice")
    assert state.category_points["work"] == 9
    assert state.category_points["health"] == 12
    assert state.weekly_total() == 0
    assert state.last_weekly_update == "2026-02-15T21:00:00+00:00"
    assert result.to_dict()["pointChanges"]["work"] == {"old": 10, "new": 9}
    assert result.to_dict()["nextUpdate"] == "2026-02-22T21:00:00+00:00"


def test_settles_once_per_boundary(memory_store, clock):
    _prime(memory_store, health=(0, 1))
    clock.set(SUNDAY_9PM)
    check_and_perform_weekly_update(memory_store, "alice", clock)
    clock.set(datetime(2026, 2, 16, 9, 0, tzinfo=UTC))
    second = check_and_perform_weekly_update(memory_store, "alice", clock)
    assert second.updated is False
    assert memory_store.load_state("alice").category_points["health"] == 12


def test_missed_weeks_settle_once(memory_store, clock):
    _prime(memory_store, health=(0, 1))
    clock.set(datetime(2026, 3, 11, 12, 0, tzinfo=UTC))
    check_and_perform_weekly_update(memory_store, "alice", clock)
    assert memory_store.load_state("alice").category_points["health"] == 12


def test_inactive_week_still_stamps(memory_store, clock):
    _prime(memory_store)
    clock.set(SUNDAY_9PM)
    result = check_and_perform_weekly_update(memory_store, "alice", clock)
    assert result.updated is True
    assert result.point_changes == {}
    assert memory_store.load_state("alice").last_weekly_update == "2026-02-15T21:00:00+00:00"


def test_force_ignores_boundary(memory_store, clock):
    _prime(memory_store, learning=(0, 3))
    result = force_weekly_update(memory_store, "alice", clock)
    assert result.updated is True
    state = memory_store.load_state("alice")
    assert state.category_points["learning"] == 12
    assert state.weekly_total() == 0


def test_perfect_week_awarded_for_cycle(memory_store, clock):
    _prime(memory_store, work=(2, 2))
    memory_store.save_task(_task("mon", "2026-02-09", "done"))
    memory_store.save_task(_task("sun", "2026-02-15", "done"))
    # Outside the Mon..Sun cycle ending on the boundary Sunday.
    memory_store.save_task(_task("prev", "2026-02-08", "missed"))
    clock.set(SUNDAY_9PM)
    result = check_and_perform_weekly_update(memory_store, "alice", clock)
    assert [b.name for b in result.new_badges] == ["Perfect Week"]


def test_no_perfect_week_with_missed_task(memory_store, clock):
    _prime(memory_store, work=(1, 2))
    memory_store.save_task(_task("a", "2026-02-10", "done"))
    memory_store.save_task(_task("b", "2026-02-12", "missed"))
    clock.set(SUNDAY_9PM)
    result = check_and_perform_weekly_update(memory_store, "alice", clock)
    assert "Perfect Week" not in [b.name for b in result.new_badges]


def test_settlement_persists_on_file_store(file_store, clock):
    _prime(file_store, personal=(1, 1))
    clock.set(SUNDAY_9PM)
    check_and_perform_weekly_update(file_store, "alice", clock)
    state = file_store.load_state("alice")
    assert state.category_points["personal"] == 9
    assert state.version == 2


def test_settlement_in_configured_zone(memory_store, make_clock):
    ny = ZoneInfo("America/New_York")
    _prime(memory_store, work=(0, 1))
    # Sunday 21:30 UTC is only 16:30 in New York.
    clock = make_clock(datetime(2026, 2, 15, 21, 30, tzinfo=UTC), ny)
    assert check_and_perform_weekly_update(memory_store, "alice", clock).updated is False
    clock.set(datetime(2026, 2, 16, 2, 0, tzinfo=UTC))
    assert check_and_perform_weekly_update(memory_store, "alice", clock).updated is True


def test_forced_update_judges_current_week(memory_store, clock):
    _prime(memory_store, work=(2, 2))
    memory_store.save_task(_task("mon", "2026-02-09", "done"))
    memory_store.save_task(_task("wed", "2026-02-11", "done"))
    # Last cycle had a miss; it was already settled.
    memory_store.save_task(_task("prev", "2026-02-05", "missed"))
    result = force_weekly_update(memory_store, "alice", clock)
    assert [b.name for b in result.new_badges] == ["Perfect Week"]


def test_forced_update_ignores_future_days(memory_store, clock):
    _prime(memory_store, work=(1, 1))
    memory_store.save_task(_task("mon", "2026-02-09", "done"))
    memory_store.save_task(_task("fri", "2026-02-13", "pending"))
    result = force_weekly_update(memory_store, "alice", clock)
    assert [b.name for b in result.new_badges] == ["Perfect Week"]


def test_late_settlement_window_covers_every_unsettled_week(clock):
    clock.set(datetime(2026, 3, 11, 12, 0, tzinfo=UTC))
    state = ScoringState(last_weekly_update=SETTLED_MONDAY)
    assert settlement_window(state, clock.now(), clock) == (date(2026, 2, 9), date(2026, 3, 8))


def test_late_settlement_judges_whole_window(memory_store, clock):
    _prime(memory_store, work=(2, 3))
    memory_store.save_task(_task("early", "2026-02-10", "missed"))
    memory_store.save_task(_task("late", "2026-03-03", "done"))
    clock.set(datetime(2026, 3, 11, 12, 0, tzinfo=UTC))
    result = check_and_perform_weekly_update(memory_store, "alice", clock)
    assert "Perfect Week" not in [b.name for b in result.new_badges]


def test_window_right_after_settling_on_boundary_day(clock):
    state = ScoringState(last_weekly_update="2026-02-08T21:30:00+00:00")
    # Settled just after the 02-08 boundary: the next window opens Monday 02-09.
    assert settlement_window(state, SUNDAY_9PM, clock) == (date(2026, 2, 9), date(2026, 2, 15))


def test_window_for_never_settled_user(clock):
    assert settlement_window(ScoringState(), clock.now(), clock) == (date(2026, 2, 2), date(2026, 2, 8))
    assert settlement_window(ScoringState(), clock.now(), clock, forced=True) == (date(2026, 2, 9), date(2026, 2, 11))
