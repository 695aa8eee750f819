from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from loop_habits.db import Database
from loop_habits.models import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AppSession:
    """Holds the single in-memory state and serializes every transition.

    Transitions are applied one at a time against the latest state, the
    result is persisted, and only then does it become visible to readers.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self._lock = threading.Lock()
        self._state = db.load()

    @property
    def state(self) -> AppState:
        return self._state

    def apply(self, transition: Callable[[AppState], tuple[AppState, T]]) -> T:
        with self._lock:
            new_state, result = transition(self._state)
            if new_state is not self._state:
                self.db.save(new_state)
                self._state = new_state
            return result

    def replace(self, state: AppState) -> None:
        with self._lock:
            self.db.save(state)
            self._state = state
            logger.info("state replaced habits=%s logs=%s", len(state.habits), len(state.logs))
