"""Classification predicates and board ordering for tasks, goals and habits."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from functools import cmp_to_key
from typing import Any, Iterable, Protocol

from devjournal.dates import parse_calendar_day, parse_timestamp
from devjournal.models import Goal, GoalStatus, Task, TaskPriority, TaskStatus


PRIORITY_RANK = {
    TaskPriority.URGENT: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}

GOAL_STATUS_RANK = {
    GoalStatus.ACTIVE: 0,
    GoalStatus.PAUSED: 1,
    GoalStatus.COMPLETED: 2,
    GoalStatus.ARCHIVED: 3,
}

CLOSED_GOAL_STATUSES = {GoalStatus.COMPLETED, GoalStatus.ARCHIVED}


class HabitLike(Protocol):
    this_week_count: int
    target_per_week: int
    current_streak: int
    updated_at: str | None


# ── Predicates ────────────────────────────────────────────────


def is_overdue(task: Task, today: date) -> bool:
    """Open task whose due day is before today."""
    if task.status == TaskStatus.DONE:
        return False
    due = parse_calendar_day(task.due_date)
    return due is not None and due < today


def is_due_today(task: Task, today: date) -> bool:
    if task.status == TaskStatus.DONE:
        return False
    return parse_calendar_day(task.due_date) == today


def is_goal_near_deadline(goal: Goal, threshold_days: int, today: date) -> bool:
    """Open goal whose target day lies within ``[today, today + threshold_days]``."""
    if goal.status in CLOSED_GOAL_STATUSES:
        return False
    target = parse_calendar_day(goal.target_date)
    if target is None:
        return False
    return today <= target <= today + timedelta(days=threshold_days)


def is_goal_overdue(goal: Goal, today: date) -> bool:
    if goal.status in CLOSED_GOAL_STATUSES:
        return False
    target = parse_calendar_day(goal.target_date)
    return target is not None and target < today


# ── Comparators ───────────────────────────────────────────────


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _cmp_present_first(a: date | None, b: date | None) -> int:
    """Ascending, with a present value sorting before an absent one."""
    if a is not None and b is not None:
        return _cmp(a, b)
    if a is not None:
        return -1
    if b is not None:
        return 1
    return 0


def _cmp_recent_first(a: str | None, b: str | None) -> int:
    ta: datetime | None = parse_timestamp(a)
    tb: datetime | None = parse_timestamp(b)
    if ta is not None and tb is not None:
        return _cmp(tb, ta)
    return _cmp_present_first(ta, tb)


def compare_tasks(a: Task, b: Task) -> int:
    """Priority, then due date (dated first), then most recently updated."""
    diff = PRIORITY_RANK[a.priority] - PRIORITY_RANK[b.priority]
    if diff:
        return diff
    by_due = _cmp_present_first(parse_calendar_day(a.due_date), parse_calendar_day(b.due_date))
    if by_due:
        return by_due
    return _cmp_recent_first(a.updated_at, b.updated_at)


def compare_goals(a: Goal, b: Goal) -> int:
    diff = GOAL_STATUS_RANK[a.status] - GOAL_STATUS_RANK[b.status]
    if diff:
        return diff
    by_target = _cmp_present_first(
        parse_calendar_day(a.target_date), parse_calendar_day(b.target_date)
    )
    if by_target:
        return by_target
    return _cmp_recent_first(a.updated_at, b.updated_at)


def compare_habits(a: HabitLike, b: HabitLike) -> int:
    """Habits furthest from their weekly target first."""
    ratio_a = a.this_week_count / max(1, a.target_per_week)
    ratio_b = b.this_week_count / max(1, b.target_per_week)
    if ratio_a != ratio_b:
        return _cmp(ratio_a, ratio_b)
    if a.current_streak != b.current_streak:
        return b.current_streak - a.current_streak
    return _cmp_recent_first(a.updated_at, b.updated_at)


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=cmp_to_key(compare_tasks))


def sort_goals(goals: Iterable[Goal]) -> list[Goal]:
    return sorted(goals, key=cmp_to_key(compare_goals))


def sort_habits(habits: Iterable[HabitLike]) -> list[HabitLike]:
    return sorted(habits, key=cmp_to_key(compare_habits))


# ── Board filters ─────────────────────────────────────────────


def matches_query(query: str, *fields: str) -> bool:
    """Case-insensitive substring search; an empty query matches everything."""
    q = (query or "").strip().lower()
    if not q:
        return True
    return any(q in (f or "").lower() for f in fields)


def filter_tasks(
    tasks: Iterable[Task], query: str = "", status: TaskStatus | None = None
) -> list[Task]:
    result = [
        t for t in tasks
        if (status is None or t.status == status) and matches_query(query, t.title, t.description)
    ]
    return sort_tasks(result)


def filter_goals(
    goals: Iterable[Goal], query: str = "", status: GoalStatus | None = None
) -> list[Goal]:
    result = [
        g for g in goals
        if (status is None or g.status == status) and matches_query(query, g.title, g.description)
    ]
    return sort_goals(result)
