"""Serialized read-modify-write access to the persisted state."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, TypeVar

from .db import database_connection, load_blob, save_blob
from .models import State
from .sanitize import sanitize_state, state_to_dict

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STATE_KEY = "state"


class StateStore:
    """Owns the state blob; every change goes through :meth:`mutate`.

    A mutation either completes and is written as a whole, or raises and
    leaves the stored state untouched.
    """

    def __init__(self, db_path: Path, state_key: str = DEFAULT_STATE_KEY) -> None:
        self.db_path = Path(db_path)
        self.state_key = state_key
        self._lock = threading.Lock()

    def read(self, now: int) -> State:
        with database_connection(self.db_path) as conn:
            raw = load_blob(conn, self.state_key)
        return sanitize_state(raw, now)

    def mutate(
        self, mutator: Callable[[State], T], now: int
    ) -> tuple[State, T]:
        with self._lock:
            with database_connection(self.db_path) as conn:
                state = sanitize_state(load_blob(conn, self.state_key), now)
                result = mutator(state)
                payload = state_to_dict(state)
                state = sanitize_state(payload, now)
                if state.session and state.session.site_id not in state.sites:
                    state.session = None
                save_blob(conn, self.state_key, state_to_dict(state))
        logger.debug("State saved to %s", self.db_path)
        return state, result
