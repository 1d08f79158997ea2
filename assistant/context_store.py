"""
Conversation Context Store — Short-lived Per-User History
==========================================================
Keeps the most recent interactions for each user so later replies can look
back at them. Nothing is persisted: a restart forgets everything.

  - update() appends and trims to the newest max_entries (default 10)
  - sweep() drops users idle longer than the TTL (default 30 minutes);
    the maintenance worker calls it every 15 minutes

The store is a plain dict mutated from a single event loop; it has no locks.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger("assistant.context")

DEFAULT_MAX_ENTRIES = 10
DEFAULT_TTL_SECONDS = 30 * 60


@dataclass
class ContextEntry:
    message: str
    analysis: Any
    language: str
    timestamp: float


@dataclass
class ConversationContext:
    history: deque = field(default_factory=deque)
    last_interaction: float = 0.0


class ConversationContextStore:
    """In-memory user_id → ConversationContext map with time-based expiry."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._contexts: dict[str, ConversationContext] = {}

    def update(self, user_id: str, entry: ContextEntry) -> None:
        """Append an interaction, creating the user's history on first use."""
        context = self._contexts.get(user_id)
        if context is None:
            context = ConversationContext(history=deque(maxlen=self.max_entries))
            self._contexts[user_id] = context

        context.history.append(entry)
        context.last_interaction = self._clock()

    def history(self, user_id: str) -> list[ContextEntry]:
        """Oldest-first copy of the user's recent interactions."""
        context = self._contexts.get(user_id)
        return list(context.history) if context else []

    def get(self, user_id: str) -> Optional[ConversationContext]:
        return self._contexts.get(user_id)

    def sweep(self) -> int:
        """Evict contexts idle longer than the TTL. Returns how many were dropped."""
        now = self._clock()
        expired = [
            user_id
            for user_id, context in self._contexts.items()
            if now - context.last_interaction > self.ttl_seconds
        ]
        for user_id in expired:
            del self._contexts[user_id]

        if expired:
            logger.info(f"Swept {len(expired)} expired conversation context(s)")
        return len(expired)

    def clear(self) -> None:
        self._contexts.clear()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._contexts
