"""
mentionbot/state.py

Process-lifetime, in-memory stores keyed by Discord user id.
Both are built once in main.py and handed to the MessageHandler.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Literal

Role = Literal["user", "assistant", "system", "tool"]

DEFAULT_HISTORY_SIZE = 5
DEFAULT_RATE_LIMIT_SECONDS = 5.0


class ConversationStore:
    """Last `max_entries` role-tagged messages per user, oldest dropped first."""

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._history: Dict[int, Deque[dict[str, Any]]] = {}

    def append(self, user_id: int, role: Role, content: Any) -> None:
        entries = self._history.get(user_id)
        if entries is None:
            entries = self._history[user_id] = deque(maxlen=self.max_entries)
        entries.append({"role": role, "content": content})

    def get(self, user_id: int) -> List[dict[str, Any]]:
        return [dict(e) for e in self._history.get(user_id, ())]

    def clear(self, user_id: int) -> bool:
        return self._history.pop(user_id, None) is not None


class RateLimiter:
    """
    Per-user cooldown based on a monotonic "unlocked-at" timestamp.

    mark() starts a fresh window; is_limited() is true until it ends.
    No timers are scheduled, so repeated marks never race each other.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_RATE_LIMIT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._unlocked_at: Dict[int, float] = {}

    def is_limited(self, user_id: int) -> bool:
        unlocked_at = self._unlocked_at.get(user_id)
        if unlocked_at is None:
            return False
        if self._clock() >= unlocked_at:
            del self._unlocked_at[user_id]
            return False
        return True

    def mark(self, user_id: int) -> None:
        now = self._clock()
        self._unlocked_at[user_id] = now + self.window_seconds
        self._prune(now)

    def remaining(self, user_id: int) -> float:
        unlocked_at = self._unlocked_at.get(user_id, 0.0)
        return max(0.0, unlocked_at - self._clock())

    def reset(self, user_id: int) -> None:
        self._unlocked_at.pop(user_id, None)

    def _prune(self, now: float) -> None:
        expired = [uid for uid, t in self._unlocked_at.items() if t <= now]
        for uid in expired:
            del self._unlocked_at[uid]
