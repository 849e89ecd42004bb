"""Tests for devjournal/backup.py — validation, replace/merge planning, export."""

import json
from datetime import date, datetime, timezone

import pytest

from devjournal.backup import (
    BackupValidationError,
    OpKind,
    StoreOp,
    apply_operations,
    export_backup,
    load_backup,
    reconcile,
    save_backup,
    validate_payload,
)
from devjournal.habits import toggle_completion
from devjournal.models import Habit, Page, Snapshot

NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def snapshot(snapshot_data) -> Snapshot:
    return Snapshot.from_dict(snapshot_data)


# ── Validation ────────────────────────────────────────────────


def test_non_numeric_progress_rejected_without_ops(snapshot):
    payload = {"goals": [{"id": 1, "title": "x", "progress": "high"}]}
    with pytest.raises(BackupValidationError) as exc_info:
        reconcile(payload, snapshot, replace_existing=False)
    assert any("goals[0].progress" in e for e in exc_info.value.errors)


def test_one_bad_record_rejects_whole_payload(snapshot):
    payload = {
        "entries": [{"date": "2024-06-10", "today": "fine"}],
        "tasks": [{"id": 9, "status": "blocked"}],
    }
    with pytest.raises(BackupValidationError):
        reconcile(payload, snapshot, replace_existing=True)


@pytest.mark.parametrize(
    "payload,fragment",
    [
        ("{not json", "Unparseable JSON"),
        ([1, 2], "must be a JSON object"),
        ({"tasks": {"id": 1}}, "tasks: expected an array"),
        ({"pages": ["oops"]}, "pages[0]: expected an object"),
        ({"entries": [{"today": "no date"}]}, "missing required field date"),
        ({"entries": [{"date": "someday"}]}, "not a calendar day"),
        ({"habit_logs": [{"date": "2024-06-10"}]}, "missing required field habit_id"),
        ({"tasks": [{"id": -1}]}, "tasks[0].id"),
        ({"tasks": [{"id": True}]}, "tasks[0].id"),
        ({"habits": [{"target_per_week": "5"}]}, "habits[0].target_per_week"),
        ({"habits": [{"id": 1, "completed_dates": 5}]}, "habits[0].completed_dates"),
        ({"habits": [{"completed_dates": ["2024-06-10", "soon"]}]}, "habits[0].completed_dates"),
    ],
)
def test_validate_payload_errors(payload, fragment):
    errors = validate_payload(payload)
    assert any(fragment in e for e in errors), errors


def test_validate_accepts_json_text_and_null_sections():
    text = json.dumps({"entries": [{"date": "2024-06-10"}], "tasks": None})
    assert validate_payload(text) == []
    assert validate_payload({}) == []


# ── Replace ───────────────────────────────────────────────────


def test_replace_wipes_then_inserts(snapshot):
    payload = {"entries": [{"date": "2024-06-10", "yesterday": "a", "today": "b"}]}
    ops = reconcile(payload, snapshot, replace_existing=True)
    assert ops[0] == StoreOp(OpKind.DELETE_ALL, "entries")
    assert [op.kind for op in ops[1:]] == [OpKind.INSERT]
    assert ops[1].record["id"] == 1

    result = apply_operations(snapshot, ops, NOW)
    assert [e.date for e in result.entries] == ["2024-06-10"]
    assert result.entries[0].created_at == "2024-06-10T12:00:00+00:00"
    # sections missing from the payload are untouched
    assert len(result.tasks) == 3
    assert len(result.goals) == 2


def test_replace_duplicate_dates_later_wins(snapshot):
    payload = {
        "entries": [
            {"date": "2024-06-01", "today": "first"},
            {"id": 5, "date": "2024-06-02", "today": "kept"},
            {"date": "2024-06-01", "today": "second"},
        ]
    }
    ops = reconcile(payload, snapshot, replace_existing=True)
    inserts = [op.record for op in ops if op.kind == OpKind.INSERT]
    assert [(r["date"], r["today"], r["id"]) for r in inserts] == [
        ("2024-06-01", "second", 6),
        ("2024-06-02", "kept", 5),
    ]


def test_replace_is_deterministic(snapshot):
    payload = {"tasks": [{"title": "a"}, {"id": 3, "title": "b"}, {"title": "c"}]}
    first = reconcile(payload, snapshot, replace_existing=True)
    second = reconcile(payload, snapshot, replace_existing=True)
    assert [op.to_dict() for op in first] == [op.to_dict() for op in second]
    assert [op.record["id"] for op in first[1:]] == [4, 3, 5]


def test_replace_with_empty_section_clears_it(snapshot):
    ops = reconcile({"goals": []}, snapshot, replace_existing=True)
    assert ops == [StoreOp(OpKind.DELETE_ALL, "goals")]
    assert apply_operations(snapshot, ops).goals == []


# ── Merge ─────────────────────────────────────────────────────


def test_merge_upserts_by_natural_key(snapshot):
    payload = {
        "entries": [{"date": "2024-06-01", "yesterday": "new", "today": "text"}],
        "tasks": [{"id": 2, "title": "Fix flaky test", "status": "done"}],
    }
    ops = reconcile(payload, snapshot, replace_existing=False)
    assert [op.kind for op in ops] == [OpKind.UPSERT, OpKind.UPSERT]
    assert ops[0].record["id"] == 1

    result = apply_operations(snapshot, ops, NOW)
    assert len(result.entries) == 4
    entry = next(e for e in result.entries if e.id == 1)
    assert entry.yesterday == "new"
    # existing timestamps survive an upsert that omits them
    assert entry.created_at == "2024-06-01T09:00:00Z"
    task = next(t for t in result.tasks if t.id == 2)
    assert task.status.value == "done"


def test_merge_inserts_new_records_with_fresh_ids(snapshot):
    payload = {
        "tasks": [{"title": "Brand new"}],
        "habit_logs": [{"habit_id": 1, "date": "2024-06-10"}],
    }
    ops = reconcile(payload, snapshot, replace_existing=False)
    assert [op.kind for op in ops] == [OpKind.INSERT, OpKind.INSERT]
    assert ops[0].record["id"] == 4
    assert ops[1].record["id"] == 5
    assert ops[1].key == (1, "2024-06-10")

    result = apply_operations(snapshot, ops, NOW)
    read = next(h for h in result.habits if h.id == 1)
    assert date(2024, 6, 10) in read.completed_dates


def test_merge_twice_creates_no_duplicates(snapshot):
    payload = {
        "entries": [{"date": "2024-06-09", "today": "again"}],
        "tasks": [{"id": 2, "title": "Fix flaky test"}, {"title": "No id here"}],
        "goals": [{"title": "Read more", "progress": 15}],
        "habit_logs": [{"habit_id": 2, "date": "2024-06-10"}],
    }
    once = apply_operations(snapshot, reconcile(payload, snapshot, False), NOW)
    twice = apply_operations(once, reconcile(payload, once, False), NOW)

    for section in ("entries", "tasks", "goals", "habit_logs"):
        assert len(getattr(twice, section)) == len(getattr(once, section)), section
    assert len(once.tasks) == 4
    assert len(once.goals) == 3
    assert len(once.habit_logs) == 4


def test_merge_payload_id_collision_gets_new_id(snapshot):
    payload = {"habit_logs": [{"id": 1, "habit_id": 2, "date": "2024-06-07"}]}
    ops = reconcile(payload, snapshot, replace_existing=False)
    assert ops[0].kind == OpKind.INSERT
    assert ops[0].record["id"] == 5


def test_store_op_to_dict_lists_tuple_keys():
    op = StoreOp(OpKind.UPSERT, "habit_logs", {"habit_id": 1}, (1, "2024-06-10"))
    assert op.to_dict()["key"] == [1, "2024-06-10"]
    assert op.to_dict()["kind"] == "upsert"


# ── Export ────────────────────────────────────────────────────


def test_export_contains_every_section(snapshot):
    data = export_backup(snapshot, NOW)
    assert data["exported_at"].startswith("2024-06-10T12:00:00")
    assert len(data["entries"]) == 4
    assert len(data["habit_logs"]) == 4
    assert "completed_dates" not in data["habits"][0]


def test_export_derives_logs_from_completions():
    snapshot = Snapshot(habits=[Habit(id=7, completed_dates={date(2024, 6, 9), date(2024, 6, 8)})])
    logs = export_backup(snapshot, NOW)["habit_logs"]
    assert [(lg["habit_id"], lg["date"]) for lg in logs] == [(7, "2024-06-08"), (7, "2024-06-09")]


def test_exported_backup_restores_into_empty_store(snapshot):
    text = json.dumps(export_backup(snapshot, NOW))
    restored = apply_operations(Snapshot(), reconcile(text, Snapshot(), True), NOW)
    assert [t.id for t in restored.tasks] == [1, 2, 3]
    assert restored.tasks[0].timer == snapshot.tasks[0].timer
    assert restored.habits[1].completed_dates == snapshot.habits[1].completed_dates


def test_save_and_load_backup(tmp_path, snapshot):
    path = tmp_path / "backups" / "devjournal.json"
    save_backup(path, snapshot, NOW)
    text = load_backup(path)
    assert json.loads(text)["pages"][0]["title"] == "Ideas"
    assert load_backup(tmp_path / "missing.json") == ""


# ── Completions held on habits ────────────────────────────────


def test_malformed_completed_dates_rejected_without_crash():
    payload = {"habits": [{"id": 1, "title": "Read", "completed_dates": 5}]}
    with pytest.raises(BackupValidationError) as exc_info:
        reconcile(payload, Snapshot(), replace_existing=False)
    assert any("completed_dates" in e for e in exc_info.value.errors)


def test_merge_upserts_completion_held_only_on_habit():
    habit = toggle_completion(Habit(id=7, title="Read"), date(2024, 6, 9), True)
    snapshot = Snapshot(habits=[habit])
    ops = reconcile(export_backup(snapshot, NOW), snapshot, replace_existing=False)
    logs = [(op.kind, op.key) for op in ops if op.entity == "habit_logs"]
    assert logs == [(OpKind.UPSERT, (7, "2024-06-09"))]

    result = apply_operations(snapshot, ops, NOW)
    assert len(result.habit_logs) == 1
    assert result.habits[0].completed_dates == {date(2024, 6, 9)}


def test_apply_keeps_completions_held_only_on_habit():
    habit = toggle_completion(Habit(id=7, title="Read"), date(2024, 6, 9), True)
    snapshot = Snapshot(habits=[habit], pages=[Page(id=1, title="Ideas")])
    ops = reconcile({"pages": [{"id": 1, "title": "Ideas v2"}]}, snapshot, replace_existing=False)
    result = apply_operations(snapshot, ops, NOW)
    assert result.pages[0].title == "Ideas v2"
    assert result.habits[0].completed_dates == {date(2024, 6, 9)}


def test_export_merges_logged_and_unlogged_completions(snapshot):
    snapshot.habits[0] = toggle_completion(snapshot.habits[0], date(2024, 6, 10), True)
    logs = export_backup(snapshot, NOW)["habit_logs"]
    assert len(logs) == 5
    assert {"id": None, "habit_id": 1, "date": "2024-06-10", "created_at": None} in logs
