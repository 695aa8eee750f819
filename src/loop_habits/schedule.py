from __future__ import annotations

from datetime import date

from loop_habits.models import Habit
from loop_habits.time_utils import weekday_index

ALL_DAYS = frozenset(range(7))
DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def is_due(habit: Habit, weekday: int) -> bool:
    return weekday in habit.frequency


def is_due_on(habit: Habit, day: date) -> bool:
    return is_due(habit, weekday_index(day))


def describe_frequency(frequency: frozenset[int]) -> str:
    if frequency == ALL_DAYS:
        return "every day"
    if not frequency:
        return "never"
    return ", ".join(DAY_LABELS[d] for d in sorted(frequency))


def parse_frequency(raw: str) -> frozenset[int]:
    """Parse "mon,wed,fri", "daily" or "1,3,5" into weekday indexes."""
    text = raw.strip().lower()
    if text in {"daily", "every day", "all", "*"}:
        return ALL_DAYS
    if text in {"weekdays", "workdays"}:
        return frozenset({1, 2, 3, 4, 5})
    if text == "weekends":
        return frozenset({0, 6})

    names = {label.lower(): idx for idx, label in enumerate(DAY_LABELS)}
    days: set[int] = set()
    for part in text.replace(" ", ",").split(","):
        token = part.strip()
        if not token:
            continue
        if token.isdigit() and int(token) in ALL_DAYS:
            days.add(int(token))
        elif token[:3] in names:
            days.add(names[token[:3]])
        else:
            raise ValueError(f"Unknown weekday: {part!r}")
    return frozenset(days)
