"""Shared test fixtures for devjournal tests."""

from __future__ import annotations

import os
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
import yaml


TODAY = date(2024, 6, 10)
NOW = datetime(2024, 6, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def snapshot_data() -> dict:
    """A small store snapshot in the record store's own shape."""
    return {
        "entries": [
            {"id": 1, "date": "2024-06-01", "yesterday": "Set up the repo", "today": "Write parser tests", "created_at": "2024-06-01T09:00:00Z"},
            {"id": 2, "date": "2024-06-02", "yesterday": "Parser tests", "today": "Refactor tokenizer module", "created_at": "2024-06-02T09:00:00Z"},
            {"id": 3, "date": "2024-06-03", "yesterday": "Tokenizer", "today": "Review pull requests", "created_at": "2024-06-03T09:00:00Z"},
            {"id": 4, "date": "2024-06-05", "yesterday": "Reviews", "today": "Release notes", "created_at": "2024-06-05T09:00:00Z"},
        ],
        "pages": [
            {"id": 1, "title": "Ideas", "content": "Backlog of ideas", "created_at": "2024-05-01T10:00:00Z", "updated_at": "2024-05-02T10:00:00Z"},
        ],
        "tasks": [
            {
                "id": 1, "title": "Ship release", "description": "Tag and publish",
                "status": "in_progress", "priority": "urgent", "due_date": "2024-06-10",
                "time_estimate_minutes": 90, "timer_accumulated_seconds": 120,
                "timer_started_at": "2024-06-10T11:59:00Z",
                "created_at": "2024-06-01T08:00:00Z", "updated_at": "2024-06-09T08:00:00Z",
            },
            {
                "id": 2, "title": "Fix flaky test", "description": "",
                "status": "todo", "priority": "high", "due_date": "2024-06-08",
                "timer_accumulated_seconds": 0, "timer_started_at": None,
                "created_at": "2024-06-01T08:00:00Z", "updated_at": "2024-06-08T08:00:00Z",
            },
            {
                "id": 3, "title": "Write docs", "description": "User guide",
                "status": "done", "priority": "low", "due_date": "2024-06-01",
                "completed_at": "2024-06-02T10:00:00Z",
                "created_at": "2024-05-20T08:00:00Z", "updated_at": "2024-06-02T10:00:00Z",
            },
        ],
        "goals": [
            {"id": 1, "title": "Learn Rust", "description": "", "status": "active", "progress": 40, "target_date": "2024-06-20", "created_at": "2024-01-01T00:00:00Z", "updated_at": "2024-06-01T00:00:00Z"},
            {"id": 2, "title": "Run 10k", "description": "", "status": "paused", "progress": 10, "target_date": None, "created_at": "2024-01-01T00:00:00Z", "updated_at": "2024-05-01T00:00:00Z"},
        ],
        "habits": [
            {"id": 1, "title": "Read", "description": "20 pages", "target_per_week": 5, "color": "#60a5fa", "created_at": "2024-05-01T00:00:00Z", "updated_at": "2024-06-01T00:00:00Z"},
            {"id": 2, "title": "Stretch", "description": "", "target_per_week": 2, "color": "#f59e0b", "created_at": "2024-05-01T00:00:00Z", "updated_at": "2024-06-02T00:00:00Z"},
        ],
        "habit_logs": [
            {"id": 1, "habit_id": 1, "date": "2024-06-08", "created_at": "2024-06-08T20:00:00Z"},
            {"id": 2, "habit_id": 1, "date": "2024-06-09", "created_at": "2024-06-09T20:00:00Z"},
            {"id": 3, "habit_id": 2, "date": "2024-06-10", "created_at": "2024-06-10T07:00:00Z"},
            {"id": 4, "habit_id": 2, "date": "2024-06-09", "created_at": "2024-06-09T07:00:00Z"},
        ],
    }


@pytest.fixture
def prefs_root(tmp_path: Path):
    """Point DEVJOURNAL_ROOT at a temp dir holding a preferences file."""
    root = tmp_path / "devjournal"
    root.mkdir()
    prefs = {
        "timezone": "UTC",
        "reminder_hour": 21,
        "autosave": True,
        "theme": "dark",
        "near_deadline_days": 14,
        "planner_limit": 6,
    }
    (root / "preferences.yaml").write_text(
        yaml.dump(prefs, default_flow_style=False), encoding="utf-8"
    )

    os.environ["DEVJOURNAL_ROOT"] = str(root)
    yield root
    if "DEVJOURNAL_ROOT" in os.environ:
        del os.environ["DEVJOURNAL_ROOT"]
