"""Habit streaks, weekly targets and the habit board view."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Iterable

from devjournal.dates import consecutive_days, in_window
from devjournal.models import Habit, coerce_number
from devjournal.ordering import matches_query, sort_habits


MIN_TARGET_PER_WEEK = 1
MAX_TARGET_PER_WEEK = 14


def normalize_target_per_week(value: Any) -> int:
    """Round and clamp a weekly target to [1, 14]."""
    number = coerce_number(value)
    if number is None:
        return MIN_TARGET_PER_WEEK
    rounded = int(math.floor(number + 0.5))
    return max(MIN_TARGET_PER_WEEK, min(MAX_TARGET_PER_WEEK, rounded))


def this_week_count(habit: Habit, today: date) -> int:
    """Completions in the rolling window ``[today-6, today]``."""
    return sum(1 for day in habit.completed_dates if in_window(day, today))


def current_streak(habit: Habit, today: date) -> int:
    """Consecutive completed days; an unchecked today does not break it."""
    return consecutive_days(habit.completed_dates, today)


def toggle_completion(habit: Habit, day: date, completed: bool) -> Habit:
    """Mark or unmark *day*. Repeating the same toggle changes nothing."""
    days = set(habit.completed_dates)
    if completed:
        days.add(day)
    else:
        days.discard(day)
    if days == habit.completed_dates:
        return habit
    return replace(habit, completed_dates=days)


# ── Board view ────────────────────────────────────────────────


@dataclass
class HabitView:
    habit: Habit
    this_week_count: int = 0
    current_streak: int = 0
    done_today: bool = False

    @property
    def target_per_week(self) -> int:
        return self.habit.target_per_week

    @property
    def updated_at(self) -> str | None:
        return self.habit.updated_at

    @property
    def target_reached(self) -> bool:
        return self.this_week_count >= self.habit.target_per_week

    def to_dict(self) -> dict[str, Any]:
        d = self.habit.to_dict()
        d["this_week_count"] = self.this_week_count
        d["current_streak"] = self.current_streak
        d["done_today"] = self.done_today
        d["target_reached"] = self.target_reached
        return d


def habit_view(habit: Habit, today: date) -> HabitView:
    return HabitView(
        habit=habit,
        this_week_count=this_week_count(habit, today),
        current_streak=current_streak(habit, today),
        done_today=today in habit.completed_dates,
    )


def habit_board(
    habits: Iterable[Habit],
    today: date,
    query: str = "",
    needs_attention: bool = False,
) -> list[HabitView]:
    """Views for the habit board, filtered then sorted furthest-from-target first."""
    views = []
    for habit in habits:
        view = habit_view(habit, today)
        if needs_attention and view.target_reached:
            continue
        if not matches_query(query, habit.title, habit.description):
            continue
        views.append(view)
    return sort_habits(views)


def habit_stats(views: list[HabitView]) -> dict[str, Any]:
    total_streak = sum(v.current_streak for v in views)
    avg = total_streak / len(views) if views else 0.0
    return {
        "total": len(views),
        "target_reached": sum(1 for v in views if v.target_reached),
        "avg_streak": math.floor(avg * 10 + 0.5) / 10,  # half up, one decimal
    }
