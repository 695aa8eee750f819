from __future__ import annotations

from datetime import date, timedelta

from loop_habits.models import DailyLog, Habit
from loop_habits.schedule import ALL_DAYS
from loop_habits.streaks import MAX_LOOKBACK_DAYS, current_streak, longest_streak

# 2026-02-02 is a Monday.
MON = date(2026, 2, 2)
WED = date(2026, 2, 4)
THU = date(2026, 2, 5)
FRI = date(2026, 2, 6)
SAT = date(2026, 2, 7)


def _habit(frequency=ALL_DAYS, habit_id: str = "h1") -> Habit:
    return Habit(
        id=habit_id,
        title="Run",
        icon="🏃",
        color="#007AFF",
        category="Health",
        frequency=frozenset(frequency),
        created_at="2026-01-01T08:00:00",
    )


def _logs(*days: date, habit_id: str = "h1") -> dict[date, DailyLog]:
    return {d: DailyLog(date=d, completed_habit_ids=(habit_id,)) for d in days}


def test_streak_skips_unscheduled_days() -> None:
    habit = _habit({1, 3, 5})  # Mon, Wed, Fri
    logs = _logs(MON, WED)

    assert current_streak(logs, habit, WED) == 2
    assert current_streak(logs, habit, THU) == 2
    assert current_streak(logs, habit, FRI) == 2
    assert current_streak(logs, habit, SAT) == 0


def test_open_today_does_not_break_daily_streak() -> None:
    habit = _habit()
    logs = _logs(MON, MON + timedelta(days=1))
    assert current_streak(logs, habit, MON + timedelta(days=2)) == 2


def test_missed_yesterday_breaks_streak() -> None:
    habit = _habit()
    logs = _logs(MON)
    assert current_streak(logs, habit, MON + timedelta(days=2)) == 0


def test_streak_counts_today_when_completed() -> None:
    habit = _habit()
    logs = _logs(MON, MON + timedelta(days=1), MON + timedelta(days=2))
    assert current_streak(logs, habit, MON + timedelta(days=2)) == 3


def test_empty_log_entry_is_same_as_missing() -> None:
    habit = _habit()
    logs = _logs(MON)
    logs[MON + timedelta(days=1)] = DailyLog(date=MON + timedelta(days=1))
    assert current_streak(logs, habit, MON + timedelta(days=2)) == 0


def test_streak_crosses_month_and_year_boundaries() -> None:
    habit = _habit()
    days = [date(2025, 12, 30), date(2025, 12, 31), date(2026, 1, 1), date(2026, 1, 2)]
    assert current_streak(_logs(*days), habit, date(2026, 1, 2)) == 4


def test_empty_schedule_never_streaks() -> None:
    habit = _habit(set())
    assert current_streak(_logs(MON, WED), habit, WED) == 0


def test_lookback_is_capped() -> None:
    habit = _habit()
    start = date(2024, 1, 1)
    days = [start + timedelta(days=i) for i in range(500)]
    assert current_streak(_logs(*days), habit, days[-1]) == MAX_LOOKBACK_DAYS


def test_other_habits_do_not_count() -> None:
    habit = _habit()
    logs = _logs(MON, MON + timedelta(days=1), habit_id="other")
    assert current_streak(logs, habit, MON + timedelta(days=1)) == 0


def test_longest_streak_keeps_best_run() -> None:
    habit = _habit()
    done = [MON + timedelta(days=i) for i in (0, 1, 2, 3, 5, 6)]
    end = MON + timedelta(days=6)
    assert longest_streak(_logs(*done), habit, end) == 4
    assert current_streak(_logs(*done), habit, end) == 2
