from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from telegram import Bot

from loop_habits.backup import run_backup_job
from loop_habits.config import Settings
from loop_habits.db import Database
from loop_habits.models import AppState, Habit
from loop_habits.schedule import is_due_on
from loop_habits.time_utils import in_quiet_hours, now_local, parse_hhmm

logger = logging.getLogger(__name__)
JOB_NAMES = ("reminders", "backup")


@dataclass(frozen=True)
class Reminder:
    habit: Habit
    event_key: str
    text: str


def _reminder_text(habit: Habit) -> str:
    body = habit.description or "Time to complete your habit."
    return f"⏰ Time for {habit.title}!\nDon't break your streak! {body}"


def due_reminders(state: AppState, now: datetime, window_minutes: int = 0) -> list[Reminder]:
    """Habits whose reminder time falls in (now - window, now], scheduled today and still open."""
    today = now.date()
    log = state.logs.get(today)
    current = now.replace(second=0, microsecond=0)
    reminders: list[Reminder] = []
    for habit in state.habits:
        if not habit.reminder_time:
            continue
        try:
            at = parse_hhmm(habit.reminder_time)
        except ValueError:
            logger.warning("bad reminder time habit_id=%s value=%s", habit.id, habit.reminder_time)
            continue
        scheduled = current.replace(hour=at.hour, minute=at.minute)
        if not (current - timedelta(minutes=window_minutes) <= scheduled <= current):
            continue
        if not is_due_on(habit, today):
            continue
        if log is not None and log.is_completed(habit.id):
            continue
        reminders.append(
            Reminder(
                habit=habit,
                event_key=f"reminder:{habit.id}:{today.isoformat()}",
                text=_reminder_text(habit),
            )
        )
    return reminders


async def run_reminders(db: Database, settings: Settings, window_minutes: int = 5) -> int:
    if settings.owner_chat_id is None:
        logger.info("reminders skipped: OWNER_CHAT_ID not set")
        return 0
    now = now_local(settings.tz)
    if in_quiet_hours(now, settings.quiet_hours):
        logger.info("reminders skipped: quiet hours")
        return 0

    state = db.load()
    bot = Bot(token=settings.telegram_bot_token)
    sent = 0
    for reminder in due_reminders(state, now, window_minutes=window_minutes):
        if db.was_event_sent(reminder.event_key):
            continue
        await bot.send_message(chat_id=settings.owner_chat_id, text=reminder.text)
        db.mark_event_sent(reminder.event_key, now)
        sent += 1
        logger.info("sent reminder habit_id=%s", reminder.habit.id)
    return sent


def run_backup(db: Database, settings: Settings) -> None:
    now = now_local(settings.tz)
    record = run_backup_job(db, settings, now)
    logger.info("backup completed: path=%s", record.path)


def run_job(job_name: str, db: Database, settings: Settings) -> None:
    if job_name == "reminders":
        asyncio.run(run_reminders(db, settings))
    elif job_name == "backup":
        run_backup(db, settings)
    else:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOB_NAMES)}")
