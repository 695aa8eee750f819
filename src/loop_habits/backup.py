from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from loop_habits.codec import loads_state, state_to_dict
from loop_habits.config import Settings
from loop_habits.db import Database
from loop_habits.models import AppState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupRecord:
    path: Path
    habits: int
    logs: int


def build_backup_payload(state: AppState) -> dict[str, Any]:
    return state_to_dict(state)


def backup_filename(day: date) -> str:
    return f"loop_backup_{day.isoformat()}.json"


def write_local_backup(state: AppState, backup_dir: Path, now: datetime) -> Path:
    backup_dir.mkdir(parents=True, exist_ok=True)
    path = backup_dir / backup_filename(now.date())
    path.write_text(json.dumps(build_backup_payload(state), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def read_backup(source: Path | str) -> AppState:
    """Parse an exported backup; raises InvalidBackupError for anything that is not one."""
    text = source.read_text(encoding="utf-8") if isinstance(source, Path) else source
    return loads_state(text)


def run_backup_job(db: Database, settings: Settings, now: datetime) -> BackupRecord:
    state = db.load()
    path = write_local_backup(state, settings.backup_dir, now)
    logger.info("wrote backup path=%s habits=%s logs=%s", path, len(state.habits), len(state.logs))
    return BackupRecord(path=path, habits=len(state.habits), logs=len(state.logs))
