"""Planner dashboard: the daily command center across journal, tasks, goals, habits."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from devjournal.habits import habit_view
from devjournal.journal import current_streak, has_entry_for
from devjournal.models import Goal, Snapshot, Task
from devjournal.ordering import is_due_today, is_goal_near_deadline, is_overdue, sort_goals, sort_tasks
from devjournal.settings import Preferences, local_today
from devjournal.timer import elapsed


@dataclass
class PlannerView:
    today: date
    today_entry_exists: bool = False
    journal_streak: int = 0
    overdue_tasks: list[Task] = field(default_factory=list)
    due_today_tasks: list[Task] = field(default_factory=list)
    near_goals: list[Goal] = field(default_factory=list)
    habits_done_today: int = 0
    habits_total: int = 0
    running_timers: dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today.isoformat(),
            "today_entry_exists": self.today_entry_exists,
            "journal_streak": self.journal_streak,
            "overdue_tasks": [t.to_dict() for t in self.overdue_tasks],
            "due_today_tasks": [t.to_dict() for t in self.due_today_tasks],
            "near_goals": [g.to_dict() for g in self.near_goals],
            "habits_done_today": self.habits_done_today,
            "habits_total": self.habits_total,
            "running_timers": {str(k): v for k, v in self.running_timers.items()},
        }


def planner_view(snapshot: Snapshot, now: datetime, prefs: Preferences | None = None) -> PlannerView:
    """Build the dashboard for *now*, with today taken in the user's timezone."""
    prefs = prefs or Preferences()
    today = local_today(now, prefs)
    limit = prefs.planner_limit

    view = PlannerView(today=today)
    view.today_entry_exists = has_entry_for(snapshot.entries, today)
    view.journal_streak = current_streak(snapshot.entries, today)
    view.overdue_tasks = sort_tasks(t for t in snapshot.tasks if is_overdue(t, today))[:limit]
    view.due_today_tasks = sort_tasks(t for t in snapshot.tasks if is_due_today(t, today))[:limit]
    view.near_goals = sort_goals(
        g for g in snapshot.goals if is_goal_near_deadline(g, prefs.near_deadline_days, today)
    )[:limit]

    views = [habit_view(h, today) for h in snapshot.habits]
    view.habits_total = len(views)
    view.habits_done_today = sum(1 for v in views if v.done_today)

    for task in snapshot.tasks:
        if task.is_running and task.id is not None:
            view.running_timers[task.id] = elapsed(task, now)
    return view
