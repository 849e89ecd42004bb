"""Journal streaks and word analytics.

Entries are keyed by calendar day. Entries whose ``date`` does not parse
are ignored by every calculation here rather than raising.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from devjournal.dates import consecutive_days, days_ago, in_window, parse_calendar_day
from devjournal.models import JournalEntry, Task, TaskStatus
from devjournal.ordering import matches_query


STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "to", "of", "in", "on", "for", "is", "it",
    "was", "with", "that", "this", "i", "we", "you", "from", "as", "by", "at",
})

MIN_KEYWORD_LENGTH = 4


def _entry_days(entries: Iterable[JournalEntry]) -> set[date]:
    days = set()
    for entry in entries:
        day = parse_calendar_day(entry.date)
        if day is not None:
            days.add(day)
    return days


def has_entry_for(entries: Iterable[JournalEntry], day: date) -> bool:
    return day in _entry_days(entries)


# ── Streaks ───────────────────────────────────────────────────


def current_streak(entries: Iterable[JournalEntry], today: date) -> int:
    """Consecutive days with an entry, ending today (or yesterday if today is blank)."""
    return consecutive_days(_entry_days(entries), today)


def longest_streak(entries: Iterable[JournalEntry]) -> int:
    """Longest run of consecutive calendar days with an entry."""
    days = sorted(_entry_days(entries))
    if not days:
        return 0
    longest = run = 1
    for prev, cur in zip(days, days[1:]):
        if (cur - prev).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
    return longest


# ── Words ─────────────────────────────────────────────────────


def words_in(text: str) -> int:
    return len((text or "").split())


def word_count(entry: JournalEntry) -> int:
    return words_in(entry.yesterday) + words_in(entry.today)


def top_keywords(texts: Iterable[str], limit: int = 5) -> list[str]:
    """Most frequent meaningful words across *texts*."""
    joined = " ".join(texts).lower()
    cleaned = re.sub(r"[^\w\s]|_", " ", joined)
    words = [
        w for w in cleaned.split()
        if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS
    ]
    return [word for word, _count in Counter(words).most_common(limit)]


@dataclass
class WeeklySummary:
    journal_days: int = 0
    total_words: int = 0
    avg_words: int = 0
    peak_day: tuple[date, int] | None = None
    top_keywords: list[str] = field(default_factory=list)
    completed_tasks: int = 0
    active_tasks: int = 0

    def to_dict(self) -> dict[str, Any]:
        peak = None
        if self.peak_day is not None:
            peak = {"date": self.peak_day[0].isoformat(), "words": self.peak_day[1]}
        return {
            "journal_days": self.journal_days,
            "total_words": self.total_words,
            "avg_words": self.avg_words,
            "peak_day": peak,
            "top_keywords": self.top_keywords,
            "completed_tasks": self.completed_tasks,
            "active_tasks": self.active_tasks,
        }


def weekly_summary(
    entries: Iterable[JournalEntry],
    today: date,
    tasks: Iterable[Task] | None = None,
) -> WeeklySummary:
    """Rolling 7-day snapshot of journal activity (and delivery, if tasks given)."""
    week: list[tuple[date, JournalEntry]] = []
    for entry in entries:
        day = parse_calendar_day(entry.date)
        if day is not None and in_window(day, today):
            week.append((day, entry))

    summary = WeeklySummary(journal_days=len(week))
    if week:
        words_by_day = [(day, word_count(entry)) for day, entry in week]
        summary.total_words = sum(w for _, w in words_by_day)
        summary.avg_words = int(math.floor(summary.total_words / len(week) + 0.5))
        # most words wins; the later day wins a tie
        summary.peak_day = max(words_by_day, key=lambda dw: (dw[1], dw[0]))
        summary.top_keywords = top_keywords(
            (f"{entry.yesterday}\n{entry.today}" for _, entry in week), limit=4
        )

    if tasks is not None:
        for task in tasks:
            if task.status == TaskStatus.DONE:
                summary.completed_tasks += 1
            else:
                summary.active_tasks += 1
    return summary


def daily_word_series(entries: Iterable[JournalEntry], today: date) -> list[dict[str, Any]]:
    """Seven points, oldest first, for the words-written chart."""
    by_day: dict[date, int] = {}
    for entry in entries:
        day = parse_calendar_day(entry.date)
        if day is not None:
            by_day[day] = word_count(entry)
    series = []
    for offset in range(6, -1, -1):
        day = days_ago(today, offset)
        series.append({
            "date": day.isoformat(),
            "day": day.strftime("%a"),
            "words": by_day.get(day, 0),
        })
    return series


def search_entries(entries: Iterable[JournalEntry], query: str) -> list[JournalEntry]:
    """Entries whose text contains *query*, newest first."""
    hits = [e for e in entries if matches_query(query, e.yesterday, e.today)]
    return sorted(hits, key=lambda e: parse_calendar_day(e.date) or date.min, reverse=True)
