from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from loop_habits import jobs_runner
from loop_habits.config import Settings
from loop_habits.db import Database
from loop_habits.jobs_runner import due_reminders, run_job, run_reminders
from loop_habits.models import default_state
from loop_habits.service import add_habit, toggle_completion


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _settings(tmp_path: Path, **overrides) -> Settings:
    settings = Settings(
        telegram_bot_token="x",
        owner_chat_id=99,
        database_path=tmp_path / "loop.db",
        tz="Europe/Oslo",
        quiet_hours=None,
        backup_dir=tmp_path / "backups",
        insights_enabled=False,
        insights_provider="openai",
        insights_model="gpt-5-mini",
        insights_api_key=None,
        insights_config_path=Path("insights.yaml"),
        admin_panel_token=None,
        admin_host="127.0.0.1",
        admin_port=8080,
    )
    return replace(settings, **overrides)


def _state():
    state = default_state("2026-01-01")
    state, _ = add_habit(state, "Read", "2026-01-01", reminder_time="07:30", habit_id="read")
    state, _ = add_habit(state, "Gym", "2026-01-01", frequency=frozenset({3}), reminder_time="07:30", habit_id="gym")
    state, _ = add_habit(state, "Walk", "2026-01-01", habit_id="walk")
    return state


def test_due_reminders_match_time_and_schedule() -> None:
    now = _dt(2026, 2, 2, 7, 32)  # Monday
    reminders = due_reminders(_state(), now, window_minutes=5)
    assert [r.habit.id for r in reminders] == ["read"]
    assert reminders[0].event_key == "reminder:read:2026-02-02"
    assert "Read" in reminders[0].text


def test_due_reminders_outside_window() -> None:
    assert due_reminders(_state(), _dt(2026, 2, 2, 7, 29), window_minutes=5) == []
    assert due_reminders(_state(), _dt(2026, 2, 2, 7, 36), window_minutes=5) == []
    assert len(due_reminders(_state(), _dt(2026, 2, 2, 7, 30))) == 1


def test_completed_habits_are_not_reminded() -> None:
    state = toggle_completion(_state(), "read", _dt(2026, 2, 2).date()).state
    assert due_reminders(state, _dt(2026, 2, 2, 7, 30)) == []


class _Bot:
    sent: list[tuple[int, str]] = []

    def __init__(self, token: str) -> None:
        self.token = token

    async def send_message(self, chat_id: int, text: str) -> None:
        _Bot.sent.append((chat_id, text))


def test_run_reminders_sends_once_per_day(monkeypatch, tmp_path) -> None:
    settings = _settings(tmp_path)
    db = Database(settings.database_path)
    db.save(_state())
    _Bot.sent = []
    monkeypatch.setattr(jobs_runner, "Bot", _Bot)
    monkeypatch.setattr(jobs_runner, "now_local", lambda tz: _dt(2026, 2, 2, 7, 31))

    assert asyncio.run(run_reminders(db, settings)) == 1
    assert asyncio.run(run_reminders(db, settings)) == 0
    assert len(_Bot.sent) == 1
    assert _Bot.sent[0][0] == 99
    assert db.was_event_sent("reminder:read:2026-02-02") is True


def test_run_reminders_respects_quiet_hours_and_owner(monkeypatch, tmp_path) -> None:
    db = Database(tmp_path / "loop.db")
    db.save(_state())
    _Bot.sent = []
    monkeypatch.setattr(jobs_runner, "Bot", _Bot)
    monkeypatch.setattr(jobs_runner, "now_local", lambda tz: _dt(2026, 2, 2, 7, 31))

    assert asyncio.run(run_reminders(db, _settings(tmp_path, quiet_hours="22:00-08:00"))) == 0
    assert asyncio.run(run_reminders(db, _settings(tmp_path, owner_chat_id=None))) == 0
    assert _Bot.sent == []


def test_backup_job_writes_file(monkeypatch, tmp_path) -> None:
    settings = _settings(tmp_path)
    db = Database(settings.database_path)
    monkeypatch.setattr(jobs_runner, "now_local", lambda tz: _dt(2026, 2, 2, 3, 0))
    run_job("backup", db, settings)
    assert (tmp_path / "backups" / "loop_backup_2026-02-02.json").exists()


def test_unknown_job_exits(tmp_path) -> None:
    settings = _settings(tmp_path)
    with pytest.raises(SystemExit):
        run_job("cleanup", Database(settings.database_path), settings)
