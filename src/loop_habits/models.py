from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

CATEGORIES = ("Health", "Work", "Study", "Finance", "Mindfulness", "Other")
DEFAULT_CATEGORY = "Health"
MOODS = ("great", "good", "neutral", "bad")
DEFAULT_AVATAR = "🦊"
DEFAULT_SLEEP_HOURS = 7.0


@dataclass(frozen=True)
class Habit:
    id: str
    title: str
    icon: str
    color: str
    category: str
    frequency: frozenset[int]
    created_at: str
    description: str | None = None
    reminder_time: str | None = None


@dataclass(frozen=True)
class DailyLog:
    date: date
    completed_habit_ids: tuple[str, ...] = ()
    sleep_hours: float = DEFAULT_SLEEP_HOURS
    mood: str | None = None
    completion_times: Mapping[str, str] = field(default_factory=dict)

    def is_completed(self, habit_id: str) -> bool:
        return habit_id in self.completed_habit_ids

    @property
    def completed_count(self) -> int:
        return len(self.completed_habit_ids)


@dataclass(frozen=True)
class UserProfile:
    name: str
    email: str
    avatar: str
    is_onboarded: bool
    points: int
    level: int
    joined_date: str
    unlocked_badges: tuple[str, ...] = ()
    theme: str | None = None


@dataclass(frozen=True)
class AppState:
    profile: UserProfile
    habits: tuple[Habit, ...] = ()
    logs: Mapping[date, DailyLog] = field(default_factory=dict)

    def habit(self, habit_id: str) -> Habit | None:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def log_for(self, day: date) -> DailyLog | None:
        return self.logs.get(day)


def default_profile(joined_date: str) -> UserProfile:
    return UserProfile(
        name="",
        email="",
        avatar=DEFAULT_AVATAR,
        is_onboarded=False,
        points=0,
        level=1,
        joined_date=joined_date,
    )


def default_state(joined_date: str) -> AppState:
    return AppState(profile=default_profile(joined_date))
