from __future__ import annotations

import asyncio
import sys

from loop_habits.config import load_settings
from loop_habits.db import Database
from loop_habits.jobs_runner import JOB_NAMES, run_job
from loop_habits.logging_setup import setup_logging
from loop_habits.session import AppSession
from loop_habits.telegram_bot import build_application


def run_bot() -> None:
    setup_logging()
    settings = load_settings()
    session = AppSession(Database(settings.database_path))

    # Python 3.14 does not auto-create a default event loop in main thread.
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())

    application = build_application(settings, session)
    application.run_polling()


def run_jobs() -> None:
    if len(sys.argv) != 2:
        raise SystemExit(f"Usage: loop-jobs <{'|'.join(JOB_NAMES)}>")

    setup_logging()
    settings = load_settings(require_telegram=sys.argv[1] == "reminders")
    run_job(sys.argv[1], Database(settings.database_path), settings)
