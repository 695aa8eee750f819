from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

POINTS_PER_COMPLETION = 10
STREAK_BONUS_POINTS = 5
STREAK_BONUS_THRESHOLD = 3


@dataclass(frozen=True)
class LevelTier:
    min_points: int
    name: str


LEVELS: tuple[LevelTier, ...] = (
    LevelTier(0, "Novice"),
    LevelTier(100, "Apprentice"),
    LevelTier(300, "Practitioner"),
    LevelTier(600, "Expert"),
    LevelTier(1000, "Master"),
    LevelTier(2000, "Grandmaster"),
    LevelTier(5000, "Legend"),
)

AVATARS = ("🦊", "🐼", "🦁", "🐯", "🐨", "🐸", "🦄", "🐙")

AVATAR_LEVELS = {
    "🦊": 0,
    "🐼": 0,
    "🦁": 5,
    "🐯": 10,
    "🐨": 15,
    "🐸": 20,
    "🦄": 30,
    "🐙": 50,
}


@dataclass(frozen=True)
class LevelProgress:
    level: int
    title: str
    points: int
    current_tier_min: int
    next_tier_min: int | None
    progress_ratio: float
    remaining_to_next: int


def _tier_index(points: int, tiers: Sequence[LevelTier]) -> int:
    index = 0
    for i, tier in enumerate(tiers):
        if points >= tier.min_points:
            index = i
        else:
            break
    return index


def level_for_points(points: int, tiers: Sequence[LevelTier] = LEVELS) -> int:
    return _tier_index(points, tiers) + 1


def title_for_points(points: int, tiers: Sequence[LevelTier] = LEVELS) -> str:
    return tiers[_tier_index(points, tiers)].name


def progress_to_next(points: int, tiers: Sequence[LevelTier] = LEVELS) -> float:
    index = _tier_index(points, tiers)
    if index >= len(tiers) - 1:
        return 1.0
    floor = tiers[index].min_points
    span = max(tiers[index + 1].min_points - floor, 1)
    return min(1.0, max(0.0, (points - floor) / span))


def level_progress(points: int, tiers: Sequence[LevelTier] = LEVELS) -> LevelProgress:
    index = _tier_index(points, tiers)
    tier = tiers[index]
    next_min = tiers[index + 1].min_points if index + 1 < len(tiers) else None
    return LevelProgress(
        level=index + 1,
        title=tier.name,
        points=points,
        current_tier_min=tier.min_points,
        next_tier_min=next_min,
        progress_ratio=progress_to_next(points, tiers),
        remaining_to_next=max(next_min - points, 0) if next_min is not None else 0,
    )


def streak_bonus(streak_before: int, streak_after: int) -> int:
    """Bonus for the completion that carries a streak across the threshold."""
    if streak_before < STREAK_BONUS_THRESHOLD <= streak_after:
        return STREAK_BONUS_POINTS
    return 0


def clamp_points(points: int) -> int:
    return max(0, points)


def is_avatar_unlocked(avatar: str, level: int) -> bool:
    required = AVATAR_LEVELS.get(avatar)
    if required is None:
        return False
    return level >= required
