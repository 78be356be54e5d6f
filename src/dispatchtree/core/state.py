# src/dispatchtree/core/state.py
from __future__ import annotations

import threading
from typing import Dict, Hashable, Optional


class ChatStateStore:
    """In-memory conversation state per chat id."""

    def __init__(self):
        self._states: Dict[Hashable, str] = {}
        self._lock = threading.Lock()

    def get(self, chat_id: Hashable) -> Optional[str]:
        with self._lock:
            return self._states.get(chat_id)

    def set(self, chat_id: Hashable, state: str) -> None:
        with self._lock:
            self._states[chat_id] = state

    def clear(self, chat_id: Hashable) -> None:
        with self._lock:
            self._states.pop(chat_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
