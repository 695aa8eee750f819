from __future__ import annotations

import copy
import json
from typing import Any

from loop_habits.gamification import level_for_points
from loop_habits.models import (
    DEFAULT_AVATAR,
    DEFAULT_CATEGORY,
    DEFAULT_SLEEP_HOURS,
    AppState,
    DailyLog,
    Habit,
    UserProfile,
)
from loop_habits.time_utils import day_key, parse_day_key

SCHEMA_VERSION = 2
ALL_DAYS_LIST = [0, 1, 2, 3, 4, 5, 6]


class InvalidBackupError(ValueError):
    pass


def _migrate_v1(payload: dict[str, Any]) -> None:
    # Habits created before schedules and categories existed.
    for habit in payload["habits"]:
        if not isinstance(habit, dict):
            continue
        if habit.get("frequency") is None:
            habit["frequency"] = list(ALL_DAYS_LIST)
        if not habit.get("category"):
            habit["category"] = DEFAULT_CATEGORY


def _migrate_v2(payload: dict[str, Any]) -> None:
    profile = payload["profile"]
    if profile.get("unlockedBadges") is None:
        profile["unlockedBadges"] = []
    for key, log in payload["logs"].items():
        if not isinstance(log, dict):
            continue
        log.setdefault("date", key)
        if log.get("completedHabits") is None:
            log["completedHabits"] = []
        if log.get("sleepHours") is None:
            log["sleepHours"] = DEFAULT_SLEEP_HOURS
        if log.get("completionTimes") is None:
            log["completionTimes"] = {}


MIGRATIONS = {
    1: _migrate_v1,
    2: _migrate_v2,
}


def validate_payload(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidBackupError("Backup must be a JSON object.")
    if not isinstance(payload.get("profile"), dict):
        raise InvalidBackupError("Backup is missing the 'profile' object.")
    if not isinstance(payload.get("habits"), list):
        raise InvalidBackupError("Backup is missing the 'habits' list.")
    if not isinstance(payload.get("logs"), dict):
        raise InvalidBackupError("Backup is missing the 'logs' object.")
    return payload


def migrate_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Bring a stored or imported document up to SCHEMA_VERSION without touching the input."""
    migrated = copy.deepcopy(validate_payload(payload))
    try:
        version = int(migrated.get("schemaVersion") or 0)
    except (TypeError, ValueError):
        version = 0
    for target in sorted(MIGRATIONS):
        if target > version:
            MIGRATIONS[target](migrated)
    migrated["schemaVersion"] = max(version, SCHEMA_VERSION)
    return migrated


def _habit_to_dict(habit: Habit) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": habit.id,
        "title": habit.title,
        "icon": habit.icon,
        "color": habit.color,
        "category": habit.category,
        "frequency": sorted(habit.frequency),
        "created_at": habit.created_at,
    }
    if habit.description is not None:
        data["description"] = habit.description
    if habit.reminder_time is not None:
        data["reminderTime"] = habit.reminder_time
    return data


def _habit_from_dict(data: dict[str, Any]) -> Habit:
    return Habit(
        id=str(data["id"]),
        title=str(data.get("title") or ""),
        icon=str(data.get("icon") or ""),
        color=str(data.get("color") or ""),
        category=str(data["category"]),
        frequency=frozenset(int(d) for d in data["frequency"]),
        created_at=str(data.get("created_at") or ""),
        description=data.get("description") or None,
        reminder_time=data.get("reminderTime") or None,
    )


def _log_to_dict(log: DailyLog) -> dict[str, Any]:
    data: dict[str, Any] = {
        "date": day_key(log.date),
        "completedHabits": list(log.completed_habit_ids),
        "sleepHours": log.sleep_hours,
        "completionTimes": dict(log.completion_times),
    }
    if log.mood is not None:
        data["mood"] = log.mood
    return data


def _log_from_dict(key: str, data: dict[str, Any]) -> DailyLog:
    completed = tuple(dict.fromkeys(str(h) for h in data["completedHabits"]))
    return DailyLog(
        date=parse_day_key(key),
        completed_habit_ids=completed,
        sleep_hours=float(data["sleepHours"]),
        mood=data.get("mood") or None,
        completion_times={str(k): str(v) for k, v in data["completionTimes"].items()},
    )


def _profile_to_dict(profile: UserProfile) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": profile.name,
        "email": profile.email,
        "avatar": profile.avatar,
        "isOnboarded": profile.is_onboarded,
        "points": profile.points,
        "level": profile.level,
        "joinedDate": profile.joined_date,
        "unlockedBadges": list(profile.unlocked_badges),
    }
    if profile.theme is not None:
        data["theme"] = profile.theme
    return data


def _profile_from_dict(data: dict[str, Any]) -> UserProfile:
    points = max(0, int(data.get("points") or 0))
    return UserProfile(
        name=str(data.get("name") or ""),
        email=str(data.get("email") or ""),
        avatar=str(data.get("avatar") or DEFAULT_AVATAR),
        is_onboarded=bool(data.get("isOnboarded", False)),
        points=points,
        level=level_for_points(points),
        joined_date=str(data.get("joinedDate") or ""),
        unlocked_badges=tuple(dict.fromkeys(str(b) for b in data["unlockedBadges"])),
        theme=data.get("theme") or None,
    )


def state_to_dict(state: AppState) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "profile": _profile_to_dict(state.profile),
        "habits": [_habit_to_dict(h) for h in state.habits],
        "logs": {day_key(day): _log_to_dict(state.logs[day]) for day in sorted(state.logs)},
    }


def state_from_dict(payload: dict[str, Any]) -> AppState:
    data = migrate_payload(payload)
    try:
        profile = _profile_from_dict(data["profile"])
        habits = tuple(_habit_from_dict(h) for h in data["habits"])
        logs = {}
        for key, raw in data["logs"].items():
            log = _log_from_dict(key, raw)
            logs[log.date] = log
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise InvalidBackupError(f"Malformed backup: {exc}") from exc
    return AppState(profile=profile, habits=habits, logs=logs)


def dumps_state(state: AppState, indent: int | None = 2) -> str:
    return json.dumps(state_to_dict(state), indent=indent, ensure_ascii=False)


def loads_state(text: str) -> AppState:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidBackupError(f"Backup is not valid JSON: {exc}") from exc
    return state_from_dict(payload)
