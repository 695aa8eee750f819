from __future__ import annotations

from datetime import date

from loop_habits.analytics import StatusView
from loop_habits.badges import BADGES
from loop_habits.models import AppState, Habit, UserProfile
from loop_habits.schedule import describe_frequency, is_due_on
from loop_habits.service import ToggleOutcome


def progress_bar(ratio: float, width: int = 20) -> str:
    filled = max(0, min(width, int(round(ratio * width))))
    return "█" * filled + "░" * (width - filled)


def status_message(view: StatusView) -> str:
    lp = view.progress
    header = f"📊 Status — {view.name}" if view.name else "📊 Status"
    if lp.next_tier_min is None:
        xp_line = f"📈 XP: {lp.points:,} (max level)"
    else:
        xp_line = f"📈 XP: {lp.points:,} / {lp.next_tier_min:,} ({lp.remaining_to_next:,} to Level {lp.level + 1})"
    lines = [
        header,
        "",
        f"⚡ Level {lp.level} — {lp.title}",
        xp_line,
        f"{progress_bar(lp.progress_ratio)} {lp.progress_ratio * 100:.1f}%",
        f"✅ Today: {view.today_completed}/{view.today_due} due habits done",
        f"🏅 Badges: {view.badges_unlocked}/{view.badges_total}",
        "",
        "📅 Last 7 days:",
    ]
    for point in view.week:
        lines.append(f"  {point.day.strftime('%a %d')}: {point.completed} done, {point.sleep_hours:g}h sleep")

    if view.habits:
        lines.extend(["", "🔥 Streaks:"])
        for stats in view.habits:
            lines.append(
                f"  {stats.habit.icon} {stats.habit.title}: {stats.current_streak} "
                f"(best {stats.longest_streak}, {stats.completion_rate * 100:.0f}% / 30d)"
            )
    return "\n".join(lines)


def toggle_message(outcome: ToggleOutcome, habit: Habit) -> str:
    if outcome.completed:
        lines = [f"✅ {habit.icon} {habit.title} done! +{outcome.points_delta} XP"]
        if outcome.streak_bonus:
            lines.append(f"🔥 Streak bonus! +{outcome.streak_bonus} XP ({outcome.streak} in a row)")
        elif outcome.streak > 1:
            lines.append(f"🔥 Streak: {outcome.streak}")
    else:
        lines = [f"↩️ {habit.icon} {habit.title} unchecked. {outcome.points_delta} XP"]

    if outcome.leveled_up:
        lines.append(f"🎉 Level up! You reached Level {outcome.new_level}.")
    for badge in outcome.new_badges:
        lines.append(f"🏆 {badge.icon} {badge.name} unlocked!")
    return "\n".join(lines)


def habits_message(state: AppState, today: date) -> str:
    if not state.habits:
        return "No habits yet. Add one with /add <title> | <days>"
    log = state.logs.get(today)
    lines = [f"📋 Habits for {today.strftime('%A %d %b')}:"]
    for idx, habit in enumerate(state.habits, start=1):
        done = log is not None and log.is_completed(habit.id)
        if not is_due_on(habit, today):
            mark = "➖"
        else:
            mark = "✅" if done else "⬜"
        reminder = f" ⏰{habit.reminder_time}" if habit.reminder_time else ""
        lines.append(
            f"{idx}. {mark} {habit.icon} {habit.title} [{habit.category}] "
            f"({describe_frequency(habit.frequency)}){reminder}"
        )
    return "\n".join(lines)


def badges_message(profile: UserProfile) -> str:
    unlocked = set(profile.unlocked_badges)
    lines = ["🏅 Badges:"]
    for badge in BADGES:
        mark = badge.icon if badge.id in unlocked else "🔒"
        lines.append(f"{mark} {badge.name} — {badge.description}")
    return "\n".join(lines)
