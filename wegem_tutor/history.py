"""Bounded conversation history owned by the orchestrator."""

from __future__ import annotations

import threading
from typing import Dict, List

from .models import Exchange


class ConversationHistory:
    """Thread-safe FIFO log of prior exchanges, capped at ``limit`` entries."""

    def __init__(self, limit: int = 10) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._limit = limit
        self._messages: List[Exchange] = []
        self._lock = threading.RLock()

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, message: Exchange) -> None:
        with self._lock:
            self._messages.append(message)
            self._evict()

    def record_exchange(self, user_content: str, assistant_content: str) -> None:
        """Append a user turn and its reply as one unit so pairs never interleave."""

        with self._lock:
            self._messages.append(Exchange(role="user", content=user_content))
            self._messages.append(Exchange(role="assistant", content=assistant_content))
            self._evict()

    def _evict(self) -> None:
        overflow = len(self._messages) - self._limit
        if overflow > 0:
            # oldest first
            del self._messages[:overflow]

    def recent(self, count: int) -> List[Exchange]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._messages[-count:])

    def as_payload(self, count: int) -> List[Dict[str, str]]:
        return [message.to_dict() for message in self.recent(count)]

    def export(self) -> List[Dict[str, str]]:
        with self._lock:
            return [message.to_dict() for message in self._messages]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
