from __future__ import annotations

import math
import secrets
from dataclasses import dataclass, replace
from datetime import date, time

from loop_habits.badges import Badge, merge_unlocked, newly_unlocked
from loop_habits.gamification import (
    POINTS_PER_COMPLETION,
    clamp_points,
    is_avatar_unlocked,
    level_for_points,
    streak_bonus,
)
from loop_habits.models import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    MOODS,
    AppState,
    DailyLog,
    Habit,
)
from loop_habits.schedule import ALL_DAYS
from loop_habits.streaks import current_streak
from loop_habits.time_utils import format_hhmm, parse_hhmm

DEFAULT_ICON = "💧"
DEFAULT_COLOR = "#007AFF"
MAX_SLEEP_HOURS = 24.0
THEMES = ("light", "dark")


class HabitNotFoundError(LookupError):
    pass


class HabitValidationError(ValueError):
    pass


class AvatarLockedError(ValueError):
    pass


@dataclass(frozen=True)
class ToggleOutcome:
    state: AppState
    found: bool
    completed: bool
    points_delta: int
    streak: int
    streak_bonus: int
    old_level: int
    new_level: int
    new_badges: tuple[Badge, ...]

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


def _with_log(state: AppState, log: DailyLog) -> AppState:
    logs = dict(state.logs)
    logs[log.date] = log
    return replace(state, logs=logs)


def ensure_log(state: AppState, day: date) -> AppState:
    if day in state.logs:
        return state
    return _with_log(state, DailyLog(date=day))


def toggle_completion(state: AppState, habit_id: str, day: date, at: time | None = None) -> ToggleOutcome:
    """Toggle one habit for one day and bring points, level and badges along.

    An unknown ``habit_id`` leaves everything but the lazily created log
    untouched and reports ``found=False``.
    """
    state = ensure_log(state, day)
    log = state.logs[day]
    before = state.profile
    habit = state.habit(habit_id)

    if habit is None:
        return ToggleOutcome(
            state=state,
            found=False,
            completed=log.is_completed(habit_id),
            points_delta=0,
            streak=0,
            streak_bonus=0,
            old_level=before.level,
            new_level=before.level,
            new_badges=(),
        )

    times = dict(log.completion_times)
    was_completed = log.is_completed(habit_id)
    streak_before = current_streak(state.logs, habit, day)
    if was_completed:
        completed_ids = tuple(h for h in log.completed_habit_ids if h != habit_id)
        times.pop(habit_id, None)
    else:
        completed_ids = log.completed_habit_ids + (habit_id,)
        if at is not None:
            times[habit_id] = format_hhmm(at)

    state = _with_log(state, replace(log, completed_habit_ids=completed_ids, completion_times=times))
    streak = current_streak(state.logs, habit, day)

    if was_completed:
        # Un-checking gives back the bonus the matching completion paid.
        bonus = streak_bonus(streak, streak_before)
        delta = -(POINTS_PER_COMPLETION + bonus)
    else:
        bonus = streak_bonus(streak_before, streak)
        delta = POINTS_PER_COMPLETION + bonus

    points = clamp_points(before.points + delta)
    level = level_for_points(points)
    state = replace(state, profile=replace(before, points=points, level=level))

    badges = newly_unlocked(state, day)
    if badges:
        state = replace(state, profile=merge_unlocked(state.profile, badges))

    return ToggleOutcome(
        state=state,
        found=True,
        completed=not was_completed,
        points_delta=points - before.points,
        streak=streak,
        streak_bonus=bonus,
        old_level=before.level,
        new_level=level,
        new_badges=tuple(badges),
    )


def set_sleep_hours(state: AppState, day: date, hours: float) -> AppState:
    if not math.isfinite(hours) or not 0 <= hours <= MAX_SLEEP_HOURS:
        raise HabitValidationError(f"Sleep hours must be between 0 and {MAX_SLEEP_HOURS:g}.")
    state = ensure_log(state, day)
    return _with_log(state, replace(state.logs[day], sleep_hours=float(hours)))


def set_mood(state: AppState, day: date, mood: str | None) -> AppState:
    if mood is not None and mood not in MOODS:
        raise HabitValidationError(f"Unknown mood: {mood}")
    state = ensure_log(state, day)
    return _with_log(state, replace(state.logs[day], mood=mood))


def _validate_habit(habit: Habit) -> Habit:
    title = habit.title.strip()
    if not title:
        raise HabitValidationError("Habit title is required.")
    if not habit.frequency:
        raise HabitValidationError("Pick at least one day for the habit.")
    if not habit.frequency <= ALL_DAYS:
        raise HabitValidationError("Weekdays must be between 0 (Sunday) and 6 (Saturday).")
    if habit.category not in CATEGORIES:
        raise HabitValidationError(f"Unknown category: {habit.category}")
    reminder = habit.reminder_time or None
    if reminder is not None:
        try:
            reminder = format_hhmm(parse_hhmm(reminder))
        except ValueError as exc:
            raise HabitValidationError(f"Reminder time must be HH:MM, got {habit.reminder_time!r}") from exc
    description = (habit.description or "").strip() or None
    return replace(habit, title=title, reminder_time=reminder, description=description)


def new_habit_id() -> str:
    return secrets.token_hex(4)


def add_habit(
    state: AppState,
    title: str,
    created_at: str,
    icon: str = DEFAULT_ICON,
    color: str = DEFAULT_COLOR,
    category: str = DEFAULT_CATEGORY,
    frequency: frozenset[int] = ALL_DAYS,
    description: str | None = None,
    reminder_time: str | None = None,
    habit_id: str | None = None,
) -> tuple[AppState, Habit]:
    habit = _validate_habit(
        Habit(
            id=habit_id or new_habit_id(),
            title=title,
            icon=icon,
            color=color,
            category=category,
            frequency=frozenset(frequency),
            created_at=created_at,
            description=description,
            reminder_time=reminder_time,
        )
    )
    if state.habit(habit.id) is not None:
        raise HabitValidationError(f"Habit id already exists: {habit.id}")
    return replace(state, habits=state.habits + (habit,)), habit


def _require_habit(state: AppState, habit_id: str) -> Habit:
    habit = state.habit(habit_id)
    if habit is None:
        raise HabitNotFoundError(habit_id)
    return habit


def update_habit(state: AppState, habit_id: str, **changes: object) -> AppState:
    current = _require_habit(state, habit_id)
    if "id" in changes or "created_at" in changes:
        raise HabitValidationError("Habit id and creation time cannot change.")
    if "frequency" in changes:
        changes["frequency"] = frozenset(changes["frequency"])  # type: ignore[arg-type]
    updated = _validate_habit(replace(current, **changes))
    return replace(state, habits=tuple(updated if h.id == habit_id else h for h in state.habits))


def delete_habit(state: AppState, habit_id: str) -> AppState:
    _require_habit(state, habit_id)
    return replace(state, habits=tuple(h for h in state.habits if h.id != habit_id))


def move_habit(state: AppState, habit_id: str, index: int) -> AppState:
    habit = _require_habit(state, habit_id)
    others = [h for h in state.habits if h.id != habit_id]
    index = max(0, min(index, len(others)))
    others.insert(index, habit)
    return replace(state, habits=tuple(others))


def complete_onboarding(
    state: AppState,
    name: str,
    first_habit_title: str,
    created_at: str,
    avatar: str | None = None,
    **habit_fields: object,
) -> tuple[AppState, Habit]:
    clean_name = name.strip()
    if not clean_name:
        raise HabitValidationError("Name is required.")
    state, habit = add_habit(state, first_habit_title, created_at, **habit_fields)  # type: ignore[arg-type]
    profile = replace(state.profile, name=clean_name, is_onboarded=True)
    state = replace(state, profile=profile)
    if avatar:
        state = select_avatar(state, avatar)
    return state, habit


def update_profile(
    state: AppState,
    name: str | None = None,
    email: str | None = None,
    theme: str | None = None,
) -> AppState:
    profile = state.profile
    if name is not None:
        if not name.strip():
            raise HabitValidationError("Name is required.")
        profile = replace(profile, name=name.strip())
    if email is not None:
        profile = replace(profile, email=email.strip())
    if theme is not None:
        if theme not in THEMES:
            raise HabitValidationError(f"Unknown theme: {theme}")
        profile = replace(profile, theme=theme)
    return replace(state, profile=profile)


def select_avatar(state: AppState, avatar: str) -> AppState:
    if not is_avatar_unlocked(avatar, state.profile.level):
        raise AvatarLockedError(f"Avatar {avatar} is locked at level {state.profile.level}.")
    return replace(state, profile=replace(state.profile, avatar=avatar))
