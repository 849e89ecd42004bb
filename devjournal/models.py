"""Typed dataclasses for the devjournal data model.

All models use from_dict/to_dict for JSON serialization.
Keys are snake_case, matching the record store.
Unknown keys are ignored; missing keys use defaults.
Timestamps and calendar days stay ISO strings; the engine parses them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Union

from devjournal.dates import parse_calendar_day, parse_timestamp


# ── Enums ─────────────────────────────────────────────────────


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


def coerce_enum(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    """Map a raw value onto *enum_cls*, falling back to *default*."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def coerce_number(value: Any) -> float | None:
    """A finite number from a number or numeric text, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return None


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    result = _int(value, default=-1)
    return result if result >= 0 else None


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ── Journal & pages ───────────────────────────────────────────


@dataclass
class JournalEntry:
    """One entry per calendar day, keyed by ``date``."""

    id: int | None = None
    date: str = ""
    yesterday: str = ""
    today: str = ""
    created_at: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JournalEntry:
        return cls(
            id=_opt_int(d.get("id")),
            date=str(d.get("date", "") or "").strip(),
            yesterday=str(d.get("yesterday", "") or ""),
            today=str(d.get("today", "") or ""),
            created_at=_opt_str(d.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "yesterday": self.yesterday,
            "today": self.today,
            "created_at": self.created_at,
        }


@dataclass
class Page:
    id: int | None = None
    title: str = ""
    content: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Page:
        return cls(
            id=_opt_int(d.get("id")),
            title=str(d.get("title", "") or ""),
            content=str(d.get("content", "") or ""),
            created_at=_opt_str(d.get("created_at")),
            updated_at=_opt_str(d.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# ── Task timer ────────────────────────────────────────────────


@dataclass(frozen=True)
class Idle:
    accumulated_seconds: int = 0


@dataclass(frozen=True)
class Running:
    accumulated_seconds: int
    started_at: datetime


TimerState = Union[Idle, Running]


def timer_from_fields(accumulated: Any, started_at: Any) -> TimerState:
    """Build the timer variant from the store's nullable column pair."""
    seconds = max(0, _int(accumulated))
    anchor = started_at if isinstance(started_at, datetime) else parse_timestamp(started_at)
    if anchor is None:
        return Idle(seconds)
    return Running(seconds, anchor)


def timer_to_fields(timer: TimerState) -> dict[str, Any]:
    if isinstance(timer, Running):
        return {
            "timer_accumulated_seconds": timer.accumulated_seconds,
            "timer_started_at": timer.started_at.isoformat(),
        }
    return {
        "timer_accumulated_seconds": timer.accumulated_seconds,
        "timer_started_at": None,
    }


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: int | None = None
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: str | None = None  # ISO date
    completed_at: str | None = None  # ISO timestamp
    time_estimate_minutes: int = 0
    timer: TimerState = field(default_factory=Idle)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_running(self) -> bool:
        return isinstance(self.timer, Running)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        from devjournal.timer import normalize_estimate_minutes

        return cls(
            id=_opt_int(d.get("id")),
            title=str(d.get("title", "") or ""),
            description=str(d.get("description", "") or ""),
            status=coerce_enum(TaskStatus, d.get("status"), TaskStatus.TODO),
            priority=coerce_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            due_date=_opt_str(d.get("due_date")),
            completed_at=_opt_str(d.get("completed_at")),
            time_estimate_minutes=normalize_estimate_minutes(d.get("time_estimate_minutes", 0)),
            timer=timer_from_fields(
                d.get("timer_accumulated_seconds", 0), d.get("timer_started_at")
            ),
            created_at=_opt_str(d.get("created_at")),
            updated_at=_opt_str(d.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "due_date": self.due_date,
            "completed_at": self.completed_at,
            "time_estimate_minutes": self.time_estimate_minutes,
        }
        d.update(timer_to_fields(self.timer))
        d["created_at"] = self.created_at
        d["updated_at"] = self.updated_at
        return d


# ── Goals ─────────────────────────────────────────────────────


@dataclass
class Goal:
    id: int | None = None
    title: str = ""
    description: str = ""
    status: GoalStatus = GoalStatus.ACTIVE
    progress: int = 0
    target_date: str | None = None  # ISO date
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Goal:
        from devjournal.goals import normalize_progress

        return cls(
            id=_opt_int(d.get("id")),
            title=str(d.get("title", "") or ""),
            description=str(d.get("description", "") or ""),
            status=coerce_enum(GoalStatus, d.get("status"), GoalStatus.ACTIVE),
            progress=normalize_progress(d.get("progress", 0)),
            target_date=_opt_str(d.get("target_date")),
            created_at=_opt_str(d.get("created_at")),
            updated_at=_opt_str(d.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "progress": self.progress,
            "target_date": self.target_date,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# ── Habits ────────────────────────────────────────────────────


@dataclass
class Habit:
    id: int | None = None
    title: str = ""
    description: str = ""
    target_per_week: int = 5
    color: str = "#60a5fa"
    completed_dates: set[date] = field(default_factory=set)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Habit:
        from devjournal.habits import normalize_target_per_week

        raw_days = d.get("completed_dates")
        days = set()
        for raw in raw_days if isinstance(raw_days, (list, tuple, set)) else []:
            day = parse_calendar_day(raw)
            if day is not None:
                days.add(day)
        return cls(
            id=_opt_int(d.get("id")),
            title=str(d.get("title", "") or ""),
            description=str(d.get("description", "") or ""),
            target_per_week=normalize_target_per_week(d.get("target_per_week", 5)),
            color=str(d.get("color", "#60a5fa") or "#60a5fa"),
            completed_dates=days,
            created_at=_opt_str(d.get("created_at")),
            updated_at=_opt_str(d.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "target_per_week": self.target_per_week,
            "color": self.color,
            "completed_dates": sorted(day.isoformat() for day in self.completed_dates),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class HabitLog:
    """A stored completion row: habit ``habit_id`` done on ``date``."""

    id: int | None = None
    habit_id: int | None = None
    date: str = ""
    created_at: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HabitLog:
        return cls(
            id=_opt_int(d.get("id")),
            habit_id=_opt_int(d.get("habit_id")),
            date=str(d.get("date", "") or "").strip(),
            created_at=_opt_str(d.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "date": self.date,
            "created_at": self.created_at,
        }


def attach_logs(habits: list[Habit], logs: list[HabitLog]) -> list[Habit]:
    """Fill each habit's completed_dates from its completion-log rows."""
    by_habit: dict[int, set[date]] = {}
    for log in logs:
        day = parse_calendar_day(log.date)
        if log.habit_id is None or day is None:
            continue
        by_habit.setdefault(log.habit_id, set()).add(day)
    for habit in habits:
        if habit.id is not None:
            habit.completed_dates = habit.completed_dates | by_habit.get(habit.id, set())
    return habits


# ── Snapshot ──────────────────────────────────────────────────


SECTIONS = ("entries", "pages", "tasks", "goals", "habits", "habit_logs")


@dataclass
class Snapshot:
    """Everything the caller read from the record store."""

    entries: list[JournalEntry] = field(default_factory=list)
    pages: list[Page] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)
    habit_logs: list[HabitLog] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Snapshot:
        if not d or not isinstance(d, dict):
            return cls()
        snapshot = cls(
            entries=[JournalEntry.from_dict(e) for e in (d.get("entries") or [])],
            pages=[Page.from_dict(p) for p in (d.get("pages") or [])],
            tasks=[Task.from_dict(t) for t in (d.get("tasks") or [])],
            goals=[Goal.from_dict(g) for g in (d.get("goals") or [])],
            habits=[Habit.from_dict(h) for h in (d.get("habits") or [])],
            habit_logs=[HabitLog.from_dict(lg) for lg in (d.get("habit_logs") or [])],
        )
        attach_logs(snapshot.habits, snapshot.habit_logs)
        return snapshot

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "pages": [p.to_dict() for p in self.pages],
            "tasks": [t.to_dict() for t in self.tasks],
            "goals": [g.to_dict() for g in self.goals],
            "habits": [h.to_dict() for h in self.habits],
            "habit_logs": [lg.to_dict() for lg in self.habit_logs],
        }
