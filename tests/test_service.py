from __future__ import annotations

from dataclasses import replace
from datetime import date, time, timedelta

import pytest

from loop_habits.models import AppState, DailyLog, default_state
from loop_habits.service import (
    AvatarLockedError,
    HabitNotFoundError,
    HabitValidationError,
    add_habit,
    complete_onboarding,
    delete_habit,
    move_habit,
    select_avatar,
    set_mood,
    set_sleep_hours,
    toggle_completion,
    update_habit,
    update_profile,
)

DAY = date(2026, 2, 2)
CREATED = "2026-01-01T08:00:00"


def _state_with_habit(points: int = 0, level: int = 1, frequency=frozenset(range(7))) -> AppState:
    state = default_state(CREATED)
    state = replace(state, profile=replace(state.profile, points=points, level=level))
    state, _ = add_habit(state, "Read", CREATED, frequency=frequency, habit_id="read")
    return state


def test_completing_awards_points_and_first_step() -> None:
    outcome = toggle_completion(_state_with_habit(), "read", DAY)
    assert outcome.found is True
    assert outcome.completed is True
    assert outcome.points_delta == 10
    assert outcome.state.profile.points == 10
    assert outcome.state.logs[DAY].completed_habit_ids == ("read",)
    assert [b.id for b in outcome.new_badges] == ["first_step"]
    assert outcome.state.profile.unlocked_badges == ("first_step",)


def test_streak_bonus_fires_once_at_threshold() -> None:
    state = _state_with_habit()
    deltas = []
    for offset in range(4):
        outcome = toggle_completion(state, "read", DAY + timedelta(days=offset))
        deltas.append(outcome.points_delta)
        state = outcome.state
    assert deltas == [10, 10, 15, 10]
    assert state.profile.points == 45
    assert "on_fire" in state.profile.unlocked_badges


def test_rechecking_threshold_day_does_not_farm_bonus() -> None:
    state = _state_with_habit()
    for offset in range(2):
        state = toggle_completion(state, "read", DAY + timedelta(days=offset)).state
    assert state.profile.points == 20

    third = DAY + timedelta(days=2)
    deltas = []
    for _ in range(3):
        for _ in range(2):
            outcome = toggle_completion(state, "read", third)
            deltas.append(outcome.points_delta)
            state = outcome.state
    assert deltas == [15, -15, 15, -15, 15, -15]
    assert state.profile.points == 20


def test_uncompleting_is_floored_at_zero() -> None:
    state = _state_with_habit()
    state = toggle_completion(state, "read", DAY).state
    state = replace(state, profile=replace(state.profile, points=5))

    outcome = toggle_completion(state, "read", DAY)
    assert outcome.completed is False
    assert outcome.state.profile.points == 0
    assert outcome.points_delta == -5
    assert outcome.state.logs[DAY].completed_habit_ids == ()


def test_level_follows_points_both_ways_and_badges_stay() -> None:
    state = _state_with_habit(points=95)
    up = toggle_completion(state, "read", DAY)
    assert up.leveled_up is True
    assert up.state.profile.level == 2
    assert "centurion" in up.state.profile.unlocked_badges

    down = toggle_completion(up.state, "read", DAY)
    assert down.state.profile.points == 95
    assert down.state.profile.level == 1
    assert down.leveled_up is False
    assert "centurion" in down.state.profile.unlocked_badges
    assert "first_step" in down.state.profile.unlocked_badges


def test_unknown_habit_only_touches_the_log() -> None:
    state = _state_with_habit(points=40)
    outcome = toggle_completion(state, "missing", DAY)
    assert outcome.found is False
    assert outcome.points_delta == 0
    assert outcome.state.profile == state.profile
    assert outcome.state.logs[DAY] == DailyLog(date=DAY)


def test_toggle_never_mutates_input_state() -> None:
    state = _state_with_habit()
    toggle_completion(state, "read", DAY)
    assert state.logs == {}
    assert state.profile.points == 0


def test_completion_time_recorded_and_dropped() -> None:
    state = _state_with_habit()
    done = toggle_completion(state, "read", DAY, at=time(7, 5))
    assert done.state.logs[DAY].completion_times == {"read": "07:05"}
    assert "early_bird" in done.state.profile.unlocked_badges

    undone = toggle_completion(done.state, "read", DAY)
    assert undone.state.logs[DAY].completion_times == {}
    assert "early_bird" in undone.state.profile.unlocked_badges


def test_stale_completions_survive_habit_delete() -> None:
    state = toggle_completion(_state_with_habit(), "read", DAY).state
    state = delete_habit(state, "read")
    assert state.habits == ()
    assert state.logs[DAY].completed_habit_ids == ("read",)
    assert toggle_completion(state, "read", DAY).found is False


def test_sleep_and_mood_create_the_log_lazily() -> None:
    state = set_sleep_hours(_state_with_habit(), DAY, 6.5)
    state = set_mood(state, DAY, "good")
    assert state.logs[DAY].sleep_hours == 6.5
    assert state.logs[DAY].mood == "good"
    with pytest.raises(HabitValidationError):
        set_sleep_hours(state, DAY, 25)
    with pytest.raises(HabitValidationError):
        set_sleep_hours(state, DAY, float("nan"))
    with pytest.raises(HabitValidationError):
        set_sleep_hours(state, DAY, float("inf"))
    with pytest.raises(HabitValidationError):
        set_mood(state, DAY, "ecstatic")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": "  "},
        {"title": "Run", "frequency": frozenset()},
        {"title": "Run", "frequency": frozenset({7})},
        {"title": "Run", "category": "Sports"},
        {"title": "Run", "reminder_time": "25:00"},
    ],
)
def test_add_habit_validation(kwargs) -> None:
    with pytest.raises(HabitValidationError):
        add_habit(default_state(CREATED), created_at=CREATED, **kwargs)


def test_update_and_move_habits() -> None:
    state = _state_with_habit()
    state, walk = add_habit(state, "Walk", CREATED, reminder_time="7:30")
    assert walk.reminder_time == "07:30"

    state = update_habit(state, "read", title="Read 20 pages", frequency={1, 3, 5})
    assert state.habit("read").title == "Read 20 pages"
    assert state.habit("read").frequency == frozenset({1, 3, 5})

    state = move_habit(state, walk.id, 0)
    assert [h.id for h in state.habits] == [walk.id, "read"]

    with pytest.raises(HabitNotFoundError):
        update_habit(state, "nope", title="x")
    with pytest.raises(HabitValidationError):
        update_habit(state, "read", id="other")


def test_onboarding_and_profile() -> None:
    state, habit = complete_onboarding(default_state(CREATED), " Sam ", "Meditate", CREATED, category="Mindfulness")
    assert state.profile.is_onboarded is True
    assert state.profile.name == "Sam"
    assert state.habits == (habit,)

    state = update_profile(state, email="sam@example.com", theme="dark")
    assert state.profile.theme == "dark"
    with pytest.raises(AvatarLockedError):
        select_avatar(state, "🦁")
    assert select_avatar(state, "🐼").profile.avatar == "🐼"
