"""Stateless HTTP surface over the devjournal engine.

Callers post the records they hold plus (optionally) the current instant,
and get view models or next states back. Nothing is stored here.
"""

from __future__ import annotations

import os
import secrets
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from devjournal import (
    BackupValidationError,
    Goal,
    GoalStatus,
    Habit,
    JournalEntry,
    Snapshot,
    Task,
    TaskStatus,
    adjust_progress,
    apply_progress,
    attach_logs,
    change_status,
    daily_word_series,
    elapsed,
    export_backup,
    filter_goals,
    filter_tasks,
    goal_stats,
    habit_board,
    habit_stats,
    is_due_today,
    is_goal_near_deadline,
    is_goal_overdue,
    is_overdue,
    journal_streak,
    load_preferences,
    local_today,
    longest_streak,
    parse_calendar_day,
    parse_timestamp,
    pause_timer,
    planner_view,
    reconcile,
    reset_timer,
    start_timer,
    timer_display,
    toggle_completion,
    weekly_summary,
)
from devjournal.models import HabitLog, coerce_enum

app = FastAPI(title="devjournal engine", version="0.1.0")

security = HTTPBasic(auto_error=False)


# ── Auth ──────────────────────────────────────────────────────


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("DEVJOURNAL_USERNAME", "")
    expected_password = os.environ.get("DEVJOURNAL_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# ── Helpers ───────────────────────────────────────────────────


def _now(payload: dict[str, Any]) -> datetime:
    return parse_timestamp(payload.get("now")) or datetime.now(timezone.utc)


def _today(payload: dict[str, Any]):
    return local_today(_now(payload), load_preferences())


def _record(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name)
    if not isinstance(value, dict):
        raise HTTPException(status_code=400, detail=f"Missing object: {name}")
    return value


def _records(payload: dict[str, Any], name: str) -> list[dict[str, Any]]:
    value = payload.get(name) or []
    if not isinstance(value, list):
        raise HTTPException(status_code=400, detail=f"Expected an array: {name}")
    return [v for v in value if isinstance(v, dict)]


# ── Endpoints ─────────────────────────────────────────────────


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/tasks/view")
def api_tasks_view(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Sorted task board with timer and due-date flags."""
    now = _now(payload)
    today = local_today(now, load_preferences())
    tasks = [Task.from_dict(t) for t in _records(payload, "tasks")]
    wanted = payload.get("status")
    status_filter = coerce_enum(TaskStatus, wanted, None) if wanted else None

    result = []
    for task in filter_tasks(tasks, payload.get("query", ""), status_filter):
        d = task.to_dict()
        d["elapsed_seconds"] = elapsed(task, now)
        d["elapsed_display"] = timer_display(task, now)
        d["is_overdue"] = is_overdue(task, today)
        d["is_due_today"] = is_due_today(task, today)
        result.append(d)
    return {"today": today.isoformat(), "tasks": result}


@app.post("/api/tasks/timer/{action}")
def api_task_timer(action: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """start / pause / reset. Returns the next task state to persist."""
    transitions = {"start": start_timer, "pause": pause_timer, "reset": reset_timer}
    if action not in transitions:
        raise HTTPException(status_code=404, detail=f"Unknown timer action: {action}")
    task = Task.from_dict(_record(payload, "task"))
    next_task = transitions[action](task, _now(payload))
    return {"ok": True, "changed": next_task is not task, "task": next_task.to_dict()}


@app.post("/api/tasks/status")
def api_task_status(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    task = Task.from_dict(_record(payload, "task"))
    new_status = coerce_enum(TaskStatus, payload.get("status"), None)
    if new_status is None:
        raise HTTPException(status_code=400, detail=f"Invalid status: {payload.get('status')}")
    return {"ok": True, "task": change_status(task, new_status, _now(payload)).to_dict()}


@app.post("/api/goals/view")
def api_goals_view(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    today = _today(payload)
    prefs = load_preferences()
    goals = [Goal.from_dict(g) for g in _records(payload, "goals")]
    wanted = payload.get("status")
    status_filter = coerce_enum(GoalStatus, wanted, None) if wanted else None

    result = []
    for goal in filter_goals(goals, payload.get("query", ""), status_filter):
        d = goal.to_dict()
        d["is_overdue"] = is_goal_overdue(goal, today)
        d["near_deadline"] = is_goal_near_deadline(goal, prefs.near_deadline_days, today)
        result.append(d)
    return {"goals": result, "stats": goal_stats(goals, today)}


@app.post("/api/goals/progress")
def api_goal_progress(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Set progress (``progress`` + ``status``) or quick-adjust it (``delta``)."""
    goal = Goal.from_dict(_record(payload, "goal"))
    now = _now(payload)
    if "delta" in payload:
        delta = payload["delta"]
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise HTTPException(status_code=400, detail="delta must be an integer")
        next_goal = adjust_progress(goal, delta, now)
    elif "progress" in payload:
        next_goal = apply_progress(goal, payload.get("progress"), payload.get("status", goal.status), now)
    else:
        raise HTTPException(status_code=400, detail="Provide progress or delta")
    return {"ok": True, "goal": next_goal.to_dict()}


@app.post("/api/habits/view")
def api_habits_view(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    today = _today(payload)
    habits = [Habit.from_dict(h) for h in _records(payload, "habits")]
    attach_logs(habits, [HabitLog.from_dict(lg) for lg in _records(payload, "habit_logs")])
    views = habit_board(
        habits,
        today,
        query=payload.get("query", ""),
        needs_attention=bool(payload.get("needs_attention", False)),
    )
    return {"habits": [v.to_dict() for v in views], "stats": habit_stats(views)}


@app.post("/api/habits/toggle")
def api_habit_toggle(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    habit = Habit.from_dict(_record(payload, "habit"))
    day = parse_calendar_day(payload.get("date"))
    if day is None:
        raise HTTPException(status_code=400, detail=f"Invalid date: {payload.get('date')}")
    next_habit = toggle_completion(habit, day, bool(payload.get("completed", True)))
    return {"ok": True, "changed": next_habit is not habit, "habit": next_habit.to_dict()}


@app.post("/api/journal/stats")
def api_journal_stats(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    today = _today(payload)
    entries = [JournalEntry.from_dict(e) for e in _records(payload, "entries")]
    tasks = [Task.from_dict(t) for t in _records(payload, "tasks")] if "tasks" in payload else None
    return {
        "current_streak": journal_streak(entries, today),
        "longest_streak": longest_streak(entries),
        "weekly_summary": weekly_summary(entries, today, tasks).to_dict(),
        "words_by_day": daily_word_series(entries, today),
    }


@app.post("/api/planner")
def api_planner(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    snapshot = Snapshot.from_dict(payload.get("snapshot") or {})
    return planner_view(snapshot, _now(payload), load_preferences()).to_dict()


@app.post("/api/backup/plan")
def api_backup_plan(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Validate a backup and return the store operations to apply atomically."""
    snapshot = Snapshot.from_dict(payload.get("snapshot") or {})
    try:
        ops = reconcile(payload.get("payload"), snapshot, bool(payload.get("replace_existing", True)))
    except BackupValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)
    return {"ok": True, "operations": [op.to_dict() for op in ops]}


@app.post("/api/backup/export")
def api_backup_export(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    snapshot = Snapshot.from_dict(payload.get("snapshot") or {})
    return export_backup(snapshot, _now(payload))
