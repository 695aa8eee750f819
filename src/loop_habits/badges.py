from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date, time

from loop_habits.models import AppState, UserProfile
from loop_habits.streaks import current_streak
from loop_habits.time_utils import parse_hhmm

EARLY_BIRD_BEFORE = time(hour=8)
NIGHT_OWL_FROM = time(hour=22)


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    description: str
    icon: str
    color: str
    condition: Callable[[AppState, date], bool]


def _max_completions_in_a_day(state: AppState) -> int:
    return max((log.completed_count for log in state.logs.values()), default=0)


def _best_current_streak(state: AppState, as_of: date) -> int:
    return max((current_streak(state.logs, habit, as_of) for habit in state.habits), default=0)


def _completion_times(state: AppState) -> Iterable[time]:
    for log in state.logs.values():
        for habit_id, raw in log.completion_times.items():
            if not log.is_completed(habit_id):
                continue
            try:
                yield parse_hhmm(raw)
            except ValueError:
                continue


def _any_completion_before(limit: time) -> Callable[[AppState, date], bool]:
    def condition(state: AppState, as_of: date) -> bool:
        return any(t < limit for t in _completion_times(state))

    return condition


def _any_completion_from(limit: time) -> Callable[[AppState, date], bool]:
    def condition(state: AppState, as_of: date) -> bool:
        return any(t >= limit for t in _completion_times(state))

    return condition


BADGES: tuple[Badge, ...] = (
    Badge(
        id="first_step",
        name="First Step",
        description="Complete your first habit.",
        icon="🌱",
        color="#34C759",
        condition=lambda state, as_of: _max_completions_in_a_day(state) >= 1,
    ),
    Badge(
        id="hat_trick",
        name="Hat Trick",
        description="Complete 3 habits in a single day.",
        icon="🎩",
        color="#007AFF",
        condition=lambda state, as_of: _max_completions_in_a_day(state) >= 3,
    ),
    Badge(
        id="on_fire",
        name="On Fire",
        description="Reach a 3-day streak on any habit.",
        icon="🔥",
        color="#FF9500",
        condition=lambda state, as_of: _best_current_streak(state, as_of) >= 3,
    ),
    Badge(
        id="unstoppable",
        name="Unstoppable",
        description="Reach a 7-day streak on any habit.",
        icon="🚀",
        color="#FF2D55",
        condition=lambda state, as_of: _best_current_streak(state, as_of) >= 7,
    ),
    Badge(
        id="early_bird",
        name="Early Bird",
        description="Complete a habit before 8 AM.",
        icon="🌅",
        color="#FFCC00",
        condition=_any_completion_before(EARLY_BIRD_BEFORE),
    ),
    Badge(
        id="night_owl",
        name="Night Owl",
        description="Complete a habit after 10 PM.",
        icon="🦉",
        color="#5856D6",
        condition=_any_completion_from(NIGHT_OWL_FROM),
    ),
    Badge(
        id="centurion",
        name="Centurion",
        description="Earn 100 XP.",
        icon="💯",
        color="#AF52DE",
        condition=lambda state, as_of: state.profile.points >= 100,
    ),
    Badge(
        id="master",
        name="Habit Master",
        description="Reach Level 5.",
        icon="👑",
        color="#FFD60A",
        condition=lambda state, as_of: state.profile.level >= 5,
    ),
)


def badge_by_id(badge_id: str, catalog: Sequence[Badge] = BADGES) -> Badge | None:
    for badge in catalog:
        if badge.id == badge_id:
            return badge
    return None


def newly_unlocked(state: AppState, as_of: date, catalog: Sequence[Badge] = BADGES) -> list[Badge]:
    unlocked = set(state.profile.unlocked_badges)
    return [badge for badge in catalog if badge.id not in unlocked and badge.condition(state, as_of)]


def merge_unlocked(profile: UserProfile, badges: Iterable[Badge]) -> UserProfile:
    merged = list(profile.unlocked_badges)
    for badge in badges:
        if badge.id not in merged:
            merged.append(badge.id)
    if len(merged) == len(profile.unlocked_badges):
        return profile
    return replace(profile, unlocked_badges=tuple(merged))
