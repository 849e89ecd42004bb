"""Task timer state machine for devjournal.

A task's timer is either ``Idle(accumulated)`` or
``Running(accumulated, started_at)``. Every transition is total: it returns
the next task (to be persisted by the caller) and never raises. Starting a
running timer or pausing an idle one is a no-op, so duplicate clicks are safe.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime
from typing import Any

from devjournal.dates import as_utc, format_duration
from devjournal.models import Idle, Running, Task, TaskStatus, coerce_number

MAX_ESTIMATE_MINUTES = 10080  # one week


def normalize_estimate_minutes(value: Any) -> int:
    """Round and clamp a time estimate to [0, 10080] minutes."""
    number = coerce_number(value)
    if number is None:
        return 0
    return max(0, min(MAX_ESTIMATE_MINUTES, int(math.floor(number + 0.5))))


def _stamp(now: datetime) -> str:
    return as_utc(now).isoformat(timespec="seconds")


def _running_seconds(started_at: datetime, now: datetime) -> int:
    return max(0, int(math.floor((as_utc(now) - as_utc(started_at)).total_seconds())))


def elapsed(task: Task, now: datetime) -> int:
    """Accumulated seconds plus the open session, if the timer is running."""
    timer = task.timer
    if isinstance(timer, Running):
        return timer.accumulated_seconds + _running_seconds(timer.started_at, now)
    return timer.accumulated_seconds


def timer_display(task: Task, now: datetime) -> str:
    return format_duration(elapsed(task, now))


def start(task: Task, now: datetime) -> Task:
    """Start the timer. A done task is reopened as in_progress first."""
    next_task = task
    if task.status == TaskStatus.DONE:
        next_task = replace(
            next_task,
            status=TaskStatus.IN_PROGRESS,
            completed_at=None,
            updated_at=_stamp(now),
        )
    if isinstance(next_task.timer, Running):
        return next_task
    return replace(
        next_task,
        timer=Running(next_task.timer.accumulated_seconds, as_utc(now)),
        updated_at=_stamp(now),
    )


def pause(task: Task, now: datetime) -> Task:
    """Fold the open session into the accumulated seconds."""
    if not isinstance(task.timer, Running):
        return task
    return replace(task, timer=Idle(elapsed(task, now)), updated_at=_stamp(now))


def reset(task: Task, now: datetime | None = None) -> Task:
    if task.timer == Idle(0):
        return task
    next_task = replace(task, timer=Idle(0))
    if now is not None:
        next_task.updated_at = _stamp(now)
    return next_task


def change_status(task: Task, status: TaskStatus, now: datetime) -> Task:
    """Fast status update used by board chips and checkboxes.

    Finishing a task pauses its timer and stamps ``completed_at``;
    reopening one clears it.
    """
    if status == task.status:
        return task
    next_task = replace(task, status=status, updated_at=_stamp(now))
    if status == TaskStatus.DONE:
        next_task = pause(next_task, now)
        next_task.completed_at = _stamp(now)
    else:
        next_task.completed_at = None
    return next_task
