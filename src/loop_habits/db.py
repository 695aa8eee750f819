from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from loop_habits.codec import state_from_dict, state_to_dict
from loop_habits.models import AppState, default_state

logger = logging.getLogger(__name__)


class Database:
    """Persistence collaborator: one JSON state document plus notification bookkeeping."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE app_state (
                        id INTEGER PRIMARY KEY CHECK (id = 1),
                        payload TEXT NOT NULL,
                        saved_at TEXT NOT NULL
                    );
                """,
                2: """
                    CREATE TABLE reminder_events (
                        event_key TEXT PRIMARY KEY,
                        sent_at TEXT NOT NULL
                    );
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
                logger.info("applied schema migration version=%s path=%s", version, self.path)

    def load(self) -> AppState:
        with self._connect() as conn:
            row = conn.execute("SELECT payload FROM app_state WHERE id = 1").fetchone()
        if row is None:
            return default_state(datetime.now().isoformat(timespec="seconds"))
        return state_from_dict(json.loads(row["payload"]))

    def save(self, state: AppState, saved_at: datetime | None = None) -> None:
        stamp = (saved_at or datetime.now()).isoformat(timespec="seconds")
        payload = json.dumps(state_to_dict(state), ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO app_state(id, payload, saved_at)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    payload=excluded.payload,
                    saved_at=excluded.saved_at
                """,
                (payload, stamp),
            )

    def last_saved_at(self) -> datetime | None:
        with self._connect() as conn:
            row = conn.execute("SELECT saved_at FROM app_state WHERE id = 1").fetchone()
        return datetime.fromisoformat(row["saved_at"]) if row else None

    def was_event_sent(self, event_key: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM reminder_events WHERE event_key = ?",
                (event_key,),
            ).fetchone()
        return row is not None

    def mark_event_sent(self, event_key: str, sent_at: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO reminder_events(event_key, sent_at) VALUES (?, ?)",
                (event_key, sent_at.isoformat()),
            )
