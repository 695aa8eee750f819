from __future__ import annotations

import threading
from datetime import date, datetime
from zoneinfo import ZoneInfo

from loop_habits.db import Database
from loop_habits.service import add_habit, toggle_completion
from loop_habits.session import AppSession

DAY = date(2026, 2, 2)


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def test_empty_database_loads_default_state(tmp_path) -> None:
    db = Database(tmp_path / "nested" / "loop.db")
    state = db.load()
    assert state.habits == ()
    assert state.profile.points == 0
    assert state.profile.is_onboarded is False
    assert db.last_saved_at() is None


def test_save_and_reload(tmp_path) -> None:
    db = Database(tmp_path / "loop.db")
    state, _ = add_habit(db.load(), "Read", "2026-01-01T08:00:00", habit_id="read")
    state = toggle_completion(state, "read", DAY).state
    db.save(state, saved_at=datetime(2026, 2, 2, 9, 0))

    reopened = Database(tmp_path / "loop.db")
    assert reopened.load() == state
    assert reopened.last_saved_at() == datetime(2026, 2, 2, 9, 0)


def test_migrations_are_applied_once(tmp_path) -> None:
    path = tmp_path / "loop.db"
    Database(path)
    db = Database(path)
    with db._connect() as conn:
        versions = [row["version"] for row in conn.execute("SELECT version FROM schema_migrations ORDER BY version")]
    assert versions == [1, 2]


def test_reminder_events_are_deduplicated(tmp_path) -> None:
    db = Database(tmp_path / "loop.db")
    key = "reminder:read:2026-02-02"
    assert db.was_event_sent(key) is False
    db.mark_event_sent(key, _dt(2026, 2, 2, 7, 30))
    db.mark_event_sent(key, _dt(2026, 2, 2, 7, 35))
    assert db.was_event_sent(key) is True
    assert db.was_event_sent("reminder:read:2026-02-03") is False


def test_session_persists_transitions(tmp_path) -> None:
    db = Database(tmp_path / "loop.db")
    session = AppSession(db)

    habit = session.apply(lambda s: add_habit(s, "Read", "2026-01-01T08:00:00", habit_id="read"))
    assert habit.id == "read"

    def toggle(state):
        outcome = toggle_completion(state, "read", DAY)
        return outcome.state, outcome

    outcome = session.apply(toggle)
    assert outcome.completed is True
    assert session.state.profile.points == 10
    assert Database(tmp_path / "loop.db").load() == session.state


def test_session_skips_save_when_state_unchanged(tmp_path) -> None:
    db = Database(tmp_path / "loop.db")
    session = AppSession(db)
    result = session.apply(lambda s: (s, "noop"))
    assert result == "noop"
    assert db.last_saved_at() is None


def test_concurrent_toggles_are_serialized(tmp_path) -> None:
    session = AppSession(Database(tmp_path / "loop.db"))
    session.apply(lambda s: add_habit(s, "Read", "2026-01-01T08:00:00", habit_id="read"))

    def toggle(state):
        outcome = toggle_completion(state, "read", DAY)
        return outcome.state, outcome

    threads = [threading.Thread(target=session.apply, args=(toggle,)) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # An even number of toggles returns to the starting point.
    assert session.state.logs[DAY].completed_habit_ids == ()
    assert session.state.profile.points == 0


def test_replace_overwrites_stored_state(tmp_path) -> None:
    db = Database(tmp_path / "loop.db")
    session = AppSession(db)
    other, _ = add_habit(session.state, "Walk", "2026-01-01T08:00:00", habit_id="walk")
    session.replace(other)
    assert AppSession(db).state.habit("walk") is not None
