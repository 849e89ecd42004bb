"""devjournal core library — derived-state engine for the journal/task/goal/habit tracker.

Public API re-exports for convenient imports:
    from devjournal import sort_tasks, elapsed, reconcile, ...
"""

# Calendar & time
from devjournal.dates import (
    to_calendar_day,
    parse_timestamp,
    parse_calendar_day,
    format_duration,
    consecutive_days,
)

# Models
from devjournal.models import (
    TaskStatus,
    TaskPriority,
    GoalStatus,
    Idle,
    Running,
    JournalEntry,
    Page,
    Task,
    Goal,
    Habit,
    HabitLog,
    Snapshot,
    attach_logs,
)

# Task timer
from devjournal.timer import (
    elapsed,
    timer_display,
    start as start_timer,
    pause as pause_timer,
    reset as reset_timer,
    change_status,
    normalize_estimate_minutes,
)

# Ordering & classification
from devjournal.ordering import (
    is_overdue,
    is_due_today,
    is_goal_near_deadline,
    is_goal_overdue,
    compare_tasks,
    compare_goals,
    compare_habits,
    sort_tasks,
    sort_goals,
    sort_habits,
    filter_tasks,
    filter_goals,
)

# Habits
from devjournal.habits import (
    this_week_count,
    current_streak as habit_streak,
    toggle_completion,
    normalize_target_per_week,
    habit_view,
    habit_board,
    habit_stats,
)

# Goals
from devjournal.goals import (
    normalize_progress,
    apply_progress,
    adjust_progress,
    complete_goal,
    goal_stats,
)

# Journal
from devjournal.journal import (
    current_streak as journal_streak,
    longest_streak,
    word_count,
    weekly_summary,
    top_keywords,
    daily_word_series,
    search_entries,
)

# Backup
from devjournal.backup import (
    BackupValidationError,
    OpKind,
    StoreOp,
    validate_payload,
    reconcile,
    apply_operations,
    export_backup,
    save_backup,
    load_backup,
)

# Planner & preferences
from devjournal.planner import PlannerView, planner_view
from devjournal.settings import (
    Preferences,
    load_preferences,
    save_preferences,
    get_preference,
    set_preference,
    user_timezone,
    local_today,
)
