"""Backup import reconciliation, export, and an in-memory store model.

``reconcile`` validates an imported payload and computes every store
operation up front, so the caller can hand the whole list to one store
transaction. A payload that fails validation produces no operations at all.

Natural keys used for merging:
    entries     -> date
    habit_logs  -> (habit_id, date)
    everything else -> id
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from devjournal.dates import as_utc, parse_calendar_day
from devjournal.fileio import atomic_write, read_text
from devjournal.models import (
    SECTIONS,
    Goal,
    GoalStatus,
    Habit,
    HabitLog,
    JournalEntry,
    Page,
    Snapshot,
    Task,
    TaskPriority,
    TaskStatus,
)

logger = logging.getLogger(__name__)


class BackupValidationError(ValueError):
    """The payload is structurally invalid; nothing may be applied."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid backup payload")


class OpKind(str, Enum):
    DELETE_ALL = "delete_all"
    INSERT = "insert"
    UPSERT = "upsert"


@dataclass(frozen=True)
class StoreOp:
    kind: OpKind
    entity: str
    record: dict[str, Any] | None = None
    key: Any = None

    def to_dict(self) -> dict[str, Any]:
        key = list(self.key) if isinstance(self.key, tuple) else self.key
        return {
            "kind": self.kind.value,
            "entity": self.entity,
            "record": self.record,
            "key": key,
        }


# ── Validation ────────────────────────────────────────────────

# Field kinds: "id" (int or null), "str", "num", "day" (str or null),
# "days" (array of day strings), "stamp" (str or null), or an Enum class.
FIELD_SCHEMAS: dict[str, dict[str, Any]] = {
    "entries": {
        "id": "id",
        "date": "day",
        "yesterday": "str",
        "today": "str",
        "created_at": "stamp",
    },
    "pages": {
        "id": "id",
        "title": "str",
        "content": "str",
        "created_at": "stamp",
        "updated_at": "stamp",
    },
    "tasks": {
        "id": "id",
        "title": "str",
        "description": "str",
        "status": TaskStatus,
        "priority": TaskPriority,
        "due_date": "day",
        "completed_at": "stamp",
        "time_estimate_minutes": "num",
        "timer_accumulated_seconds": "num",
        "timer_started_at": "stamp",
        "created_at": "stamp",
        "updated_at": "stamp",
    },
    "goals": {
        "id": "id",
        "title": "str",
        "description": "str",
        "status": GoalStatus,
        "progress": "num",
        "target_date": "day",
        "created_at": "stamp",
        "updated_at": "stamp",
    },
    "habits": {
        "id": "id",
        "title": "str",
        "description": "str",
        "target_per_week": "num",
        "color": "str",
        "completed_dates": "days",
        "created_at": "stamp",
        "updated_at": "stamp",
    },
    "habit_logs": {
        "id": "id",
        "habit_id": "id",
        "date": "day",
        "created_at": "stamp",
    },
}

REQUIRED_KEYS = {
    "entries": ("date",),
    "habit_logs": ("habit_id", "date"),
}

MODELS = {
    "entries": JournalEntry,
    "pages": Page,
    "tasks": Task,
    "goals": Goal,
    "habits": Habit,
    "habit_logs": HabitLog,
}

TIMESTAMP_KEYS = {
    "entries": ("created_at",),
    "pages": ("created_at", "updated_at"),
    "tasks": ("created_at", "updated_at"),
    "goals": ("created_at", "updated_at"),
    "habits": ("created_at", "updated_at"),
    "habit_logs": ("created_at",),
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_field(kind: Any, value: Any) -> str | None:
    """Return a description of the expected type if *value* does not fit *kind*."""
    if kind == "id":
        if value is None or (isinstance(value, int) and not isinstance(value, bool) and value >= 0):
            return None
        return "a non-negative integer or null"
    if kind == "str":
        return None if isinstance(value, str) else "a string"
    if kind == "num":
        return None if _is_number(value) else "a number"
    if kind == "days":
        if value is None or isinstance(value, list) and all(parse_calendar_day(v) is not None for v in value):
            return None
        return "an array of calendar days"
    if kind in ("day", "stamp"):
        return None if value is None or isinstance(value, str) else "a string or null"
    if isinstance(kind, type) and issubclass(kind, Enum):
        allowed = [m.value for m in kind]
        if isinstance(value, str) and value in allowed:
            return None
        return "one of " + ", ".join(allowed)
    return None


def _validate_section(section: str, items: Any) -> list[str]:
    if not isinstance(items, list):
        return [f"{section}: expected an array"]
    errors = []
    schema = FIELD_SCHEMAS[section]
    required = REQUIRED_KEYS.get(section, ())
    for i, item in enumerate(items):
        where = f"{section}[{i}]"
        if not isinstance(item, dict):
            errors.append(f"{where}: expected an object")
            continue
        for name, kind in schema.items():
            if name not in item:
                continue
            expected = _check_field(kind, item[name])
            if expected:
                errors.append(f"{where}.{name}: expected {expected}, got {item[name]!r}")
        for name in required:
            if item.get(name) is None:
                errors.append(f"{where}: missing required field {name}")
            elif schema[name] == "day" and parse_calendar_day(item[name]) is None:
                errors.append(f"{where}.{name}: not a calendar day: {item[name]!r}")
    return errors


def _load_payload(payload: Any) -> tuple[dict[str, Any] | None, list[str]]:
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            return None, [f"Unparseable JSON: {exc}"]
    if not isinstance(payload, dict):
        return None, ["Backup payload must be a JSON object"]
    errors = []
    for section in SECTIONS:
        if payload.get(section) is not None:
            errors.extend(_validate_section(section, payload[section]))
    return payload, errors


def validate_payload(payload: Any) -> list[str]:
    """Validate payload shape. Returns a list of errors (empty if valid)."""
    _, errors = _load_payload(payload)
    return errors


# ── Normalization & keys ──────────────────────────────────────


def _normalize(section: str, raw: dict[str, Any]) -> dict[str, Any]:
    """Payload record -> full store record. Omitted id/timestamps are left out."""
    record = MODELS[section].from_dict(raw).to_dict()
    record.pop("completed_dates", None)
    if record.get("id") is None:
        record.pop("id", None)
    for name in TIMESTAMP_KEYS[section]:
        if raw.get(name) is None:
            record.pop(name, None)
    if section in ("entries", "habit_logs"):
        day = parse_calendar_day(record.get("date"))
        if day is not None:
            record["date"] = day.isoformat()
    return record


def natural_key(section: str, record: dict[str, Any]) -> Any:
    if section == "entries":
        day = parse_calendar_day(record.get("date"))
        return day.isoformat() if day else record.get("date")
    if section == "habit_logs":
        day = parse_calendar_day(record.get("date"))
        return (record.get("habit_id"), day.isoformat() if day else record.get("date"))
    return record.get("id")


def _content(section: str, record: dict[str, Any]) -> dict[str, Any]:
    skip = {"id", "completed_dates", *TIMESTAMP_KEYS[section]}
    return {k: v for k, v in record.items() if k not in skip}


class _IdAllocator:
    """Hands out fresh ids above every id seen, deterministically.

    A requested id is honoured unless it is already taken.
    """

    def __init__(self, seen: Iterable[Any], taken: Iterable[Any] = ()):
        ints = [i for i in seen if isinstance(i, int)]
        self._next = max(ints, default=0) + 1
        self.used = {i for i in taken if isinstance(i, int)}

    def claim(self, wanted: Any = None) -> int:
        if isinstance(wanted, int) and wanted not in self.used:
            self.used.add(wanted)
            return wanted
        while self._next in self.used:
            self._next += 1
        self.used.add(self._next)
        return self._next


def _completion_rows(snapshot: Snapshot) -> list[dict[str, Any]]:
    """Stored log rows plus a row for every completion held only on a habit."""
    rows = [log.to_dict() for log in snapshot.habit_logs]
    logged = {natural_key("habit_logs", row) for row in rows}
    for habit in snapshot.habits:
        if habit.id is None:
            continue
        for day in sorted(habit.completed_dates):
            if (habit.id, day.isoformat()) not in logged:
                rows.append(
                    {"id": None, "habit_id": habit.id, "date": day.isoformat(), "created_at": None}
                )
    return rows


def _existing_records(snapshot: Snapshot, section: str) -> list[dict[str, Any]]:
    if section == "habit_logs":
        return _completion_rows(snapshot)
    records = []
    for model in getattr(snapshot, section):
        d = model.to_dict()
        d.pop("completed_dates", None)
        records.append(d)
    return records


# ── Planning ──────────────────────────────────────────────────


def _plan_replace(section: str, raws: list[dict[str, Any]], existing: list[dict[str, Any]]) -> list[StoreOp]:
    records = [_normalize(section, raw) for raw in raws]
    # the section is wiped first, so only payload ids can collide
    ids = _IdAllocator([r.get("id") for r in records])

    # a later record wins a natural-key collision but keeps the first slot
    slots: dict[Any, dict[str, Any]] = {}
    for i, record in enumerate(records):
        key = natural_key(section, record)
        slots[key if key is not None else ("unkeyed", i)] = record

    ops = [StoreOp(OpKind.DELETE_ALL, section)]
    for record in slots.values():
        record["id"] = ids.claim(record.get("id"))
        ops.append(StoreOp(OpKind.INSERT, section, record, natural_key(section, record)))
    return ops


def _plan_merge(section: str, raws: list[dict[str, Any]], existing: list[dict[str, Any]]) -> list[StoreOp]:
    index: dict[Any, dict[str, Any]] = {}
    for record in existing:
        index.setdefault(natural_key(section, record), record)
    records = [_normalize(section, raw) for raw in raws]
    ids = _IdAllocator(
        [r.get("id") for r in existing] + [r.get("id") for r in records],
        taken=[r.get("id") for r in existing],
    )

    ops = []
    for record in records:
        key = natural_key(section, record)
        if key is None:
            # no id: reuse an identical record so re-imports do not duplicate it
            content = _content(section, record)
            for candidate in index.values():
                if _content(section, candidate) == content:
                    key = candidate.get("id")
                    break
        if key is not None and key in index:
            current = index[key]
            if current.get("id") is None:
                record.pop("id", None)
            else:
                record["id"] = current["id"]
            index[key] = {**current, **record}
            ops.append(StoreOp(OpKind.UPSERT, section, record, key))
            continue
        record["id"] = ids.claim(record.get("id"))
        key = natural_key(section, record)
        index[key] = record
        ops.append(StoreOp(OpKind.INSERT, section, record, key))
    return ops


def reconcile(payload: Any, snapshot: Snapshot, replace_existing: bool) -> list[StoreOp]:
    """Compute the store operations that import *payload* into *snapshot*.

    Raises BackupValidationError, before computing anything, if the payload
    is malformed. Sections absent from the payload are never touched.
    """
    data, errors = _load_payload(payload)
    if errors or data is None:
        logger.warning("Backup payload rejected: %d problem(s)", len(errors))
        raise BackupValidationError(errors)

    plan = _plan_replace if replace_existing else _plan_merge
    ops: list[StoreOp] = []
    for section in SECTIONS:
        raws = data.get(section)
        if raws is None:
            continue
        ops.extend(plan(section, raws, _existing_records(snapshot, section)))

    logger.info(
        "Backup reconcile (%s): %d operation(s)",
        "replace" if replace_existing else "merge",
        len(ops),
    )
    return ops


# ── Store model ───────────────────────────────────────────────


def apply_operations(
    snapshot: Snapshot, ops: Iterable[StoreOp], now: datetime | None = None
) -> Snapshot:
    """Apply *ops* the way the record store would, returning the new snapshot.

    Inserts get ``now`` for omitted timestamps; upserts keep the existing ones.
    Completions held only on a habit are carried as log rows, and habit
    completions are rebuilt from ``habit_logs`` afterwards.
    """
    stamp = as_utc(now).isoformat(timespec="seconds") if now is not None else None
    tables = {section: _existing_records(snapshot, section) for section in SECTIONS}

    for op in ops:
        table = tables[op.entity]
        if op.kind == OpKind.DELETE_ALL:
            table.clear()
            continue
        record = dict(op.record or {})
        for name in TIMESTAMP_KEYS[op.entity]:
            if record.get(name) is None:
                record.pop(name, None)
        if op.kind == OpKind.UPSERT:
            for i, current in enumerate(table):
                if natural_key(op.entity, current) == op.key:
                    table[i] = {**current, **record}
                    break
            else:
                table.append(record)
            continue
        for name in TIMESTAMP_KEYS[op.entity]:
            record.setdefault(name, stamp)
        table.append(record)

    return Snapshot.from_dict(tables)


# ── Export ────────────────────────────────────────────────────


def export_backup(snapshot: Snapshot, now: datetime) -> dict[str, Any]:
    """Build the backup document for *snapshot*."""
    data: dict[str, Any] = {"exported_at": as_utc(now).isoformat()}
    for section in SECTIONS:
        data[section] = _existing_records(snapshot, section)
    return data


def save_backup(path: Path, snapshot: Snapshot, now: datetime) -> None:
    atomic_write(path, json.dumps(export_backup(snapshot, now), indent=2, ensure_ascii=False) + "\n")


def load_backup(path: Path) -> str:
    """Raw backup text, ready for ``reconcile`` (which validates it)."""
    return read_text(path)
