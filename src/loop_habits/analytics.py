from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from loop_habits.badges import BADGES
from loop_habits.gamification import LevelProgress, level_progress
from loop_habits.models import AppState, DailyLog, Habit
from loop_habits.schedule import is_due_on
from loop_habits.streaks import current_streak, longest_streak
from loop_habits.time_utils import last_n_days

COMPLETION_WINDOW_DAYS = 30


@dataclass(frozen=True)
class HabitStats:
    habit: Habit
    current_streak: int
    longest_streak: int
    completion_rate: float
    completed_today: bool
    due_today: bool


@dataclass(frozen=True)
class DayPoint:
    day: date
    completed: int
    sleep_hours: float


@dataclass(frozen=True)
class StatusView:
    name: str
    progress: LevelProgress
    habits: list[HabitStats]
    week: list[DayPoint]
    categories: dict[str, int]
    badges_unlocked: int
    badges_total: int
    today_completed: int
    today_due: int


def completion_rate(
    logs: Mapping[date, DailyLog],
    habit: Habit,
    end: date,
    days: int = COMPLETION_WINDOW_DAYS,
) -> float:
    due = 0
    done = 0
    for offset in range(days):
        day = end - timedelta(days=offset)
        if not is_due_on(habit, day):
            continue
        due += 1
        log = logs.get(day)
        if log is not None and log.is_completed(habit.id):
            done += 1
    if due == 0:
        return 0.0
    return done / due


def last_days_chart(state: AppState, end: date, days: int = 7) -> list[DayPoint]:
    points: list[DayPoint] = []
    for day in last_n_days(end, days):
        log = state.logs.get(day)
        points.append(
            DayPoint(
                day=day,
                completed=log.completed_count if log else 0,
                sleep_hours=log.sleep_hours if log else 0.0,
            )
        )
    return points


def category_breakdown(state: AppState) -> dict[str, int]:
    counts: dict[str, int] = {}
    for habit in state.habits:
        key = habit.category or "Other"
        counts[key] = counts.get(key, 0) + 1
    return counts


def habit_stats(state: AppState, habit: Habit, today: date) -> HabitStats:
    log = state.logs.get(today)
    return HabitStats(
        habit=habit,
        current_streak=current_streak(state.logs, habit, today),
        longest_streak=longest_streak(state.logs, habit, today),
        completion_rate=completion_rate(state.logs, habit, today),
        completed_today=log is not None and log.is_completed(habit.id),
        due_today=is_due_on(habit, today),
    )


def compute_status(state: AppState, today: date) -> StatusView:
    stats = [habit_stats(state, habit, today) for habit in state.habits]
    catalog_ids = {badge.id for badge in BADGES}
    return StatusView(
        name=state.profile.name,
        progress=level_progress(state.profile.points),
        habits=stats,
        week=last_days_chart(state, today),
        categories=category_breakdown(state),
        badges_unlocked=len([b for b in state.profile.unlocked_badges if b in catalog_ids]),
        badges_total=len(BADGES),
        today_completed=len([s for s in stats if s.due_today and s.completed_today]),
        today_due=len([s for s in stats if s.due_today]),
    )
