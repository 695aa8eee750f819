"""
Schedule-aware streaks over a sparse log history. Pure functions, no I/O.

Days a habit is not scheduled for are transparent: they neither extend nor
break a streak. The evaluation day itself may still be open, so an
incomplete as-of day is skipped instead of ending the walk.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date, timedelta

from loop_habits.models import DailyLog, Habit
from loop_habits.schedule import is_due_on

MAX_LOOKBACK_DAYS = 365


def _completed_on(logs: Mapping[date, DailyLog], habit_id: str, day: date) -> bool:
    log = logs.get(day)
    return log is not None and log.is_completed(habit_id)


def current_streak(logs: Mapping[date, DailyLog], habit: Habit, as_of: date) -> int:
    streak = 0
    for offset in range(MAX_LOOKBACK_DAYS):
        day = as_of - timedelta(days=offset)
        if not is_due_on(habit, day):
            continue
        if _completed_on(logs, habit.id, day):
            streak += 1
        elif offset == 0:
            continue
        else:
            break
    return streak


def longest_streak(logs: Mapping[date, DailyLog], habit: Habit, as_of: date) -> int:
    best = 0
    run = 0
    start = as_of - timedelta(days=MAX_LOOKBACK_DAYS - 1)
    for offset in range(MAX_LOOKBACK_DAYS):
        day = start + timedelta(days=offset)
        if not is_due_on(habit, day):
            continue
        if _completed_on(logs, habit.id, day):
            run += 1
            best = max(best, run)
        elif day != as_of:
            run = 0
    return best
