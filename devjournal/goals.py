"""Goal progress normalization and goal board stats."""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterable

from devjournal.dates import as_utc
from devjournal.models import Goal, GoalStatus, coerce_enum, coerce_number
from devjournal.ordering import is_goal_overdue

QUICK_STEP = 10


def normalize_progress(value: Any) -> int:
    """Round half up and clamp to [0, 100]. Numeric text is accepted; garbage becomes 0."""
    number = coerce_number(value)
    if number is None:
        return 0
    return max(0, min(100, int(math.floor(number + 0.5))))


def apply_progress(
    goal: Goal,
    raw_value: Any,
    requested_status: GoalStatus | str,
    now: datetime | None = None,
) -> Goal:
    """Set progress; reaching 100 forces ``completed`` whatever was requested."""
    progress = normalize_progress(raw_value)
    status = coerce_enum(GoalStatus, requested_status, goal.status)
    if progress == 100:
        status = GoalStatus.COMPLETED
    next_goal = replace(goal, progress=progress, status=status)
    if now is not None and (progress, status) != (goal.progress, goal.status):
        next_goal.updated_at = as_utc(now).isoformat(timespec="seconds")
    return next_goal


def adjust_progress(goal: Goal, delta: int, now: datetime | None = None) -> Goal:
    """The quick +10 / -10 buttons.

    A completed goal knocked back down to zero reopens as active.
    """
    requested = goal.status
    target = goal.progress + delta
    if delta < 0 and goal.status == GoalStatus.COMPLETED and target <= 0:
        requested = GoalStatus.ACTIVE
    return apply_progress(goal, target, requested, now)


def increment(goal: Goal, now: datetime | None = None) -> Goal:
    return adjust_progress(goal, QUICK_STEP, now)


def decrement(goal: Goal, now: datetime | None = None) -> Goal:
    return adjust_progress(goal, -QUICK_STEP, now)


def complete_goal(goal: Goal, now: datetime | None = None) -> Goal:
    return apply_progress(goal, 100, GoalStatus.COMPLETED, now)


def goal_stats(goals: Iterable[Goal], today: date) -> dict[str, int]:
    goals = list(goals)
    return {
        "total": len(goals),
        "completed": sum(1 for g in goals if g.status == GoalStatus.COMPLETED),
        "active": sum(1 for g in goals if g.status == GoalStatus.ACTIVE),
        "overdue": sum(1 for g in goals if is_goal_overdue(g, today)),
    }
