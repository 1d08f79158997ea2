"""
Feedback Store — Helpful / Not Helpful Flags on AI Replies
===========================================================
Records one flag per (user, message) pair; a second vote on the same reply
replaces the first. summarize() reports the helpful percentage over all
stored records. Purely observational: nothing here feeds the classifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel

logger = logging.getLogger("assistant.feedback")


@dataclass
class FeedbackRecord:
    user_id: str
    message_id: str
    helpful: bool
    text: str = ""
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


class FeedbackSummary(BaseModel):
    count: int = 0
    helpful_count: int = 0
    helpful_percentage: float = 0.0


class FeedbackStore:
    def __init__(self):
        # (user_id, message_id) -> FeedbackRecord
        self._records: dict[tuple[str, str], FeedbackRecord] = {}

    def record(self, user_id: str, message_id: str, helpful: bool, text: str = "") -> bool:
        """Store a flag, overwriting any earlier one for the same pair."""
        try:
            self._records[(str(user_id), str(message_id))] = FeedbackRecord(
                user_id=str(user_id),
                message_id=str(message_id),
                helpful=bool(helpful),
                text=text or "",
            )
            return True
        except Exception as e:
            logger.error(f"Error recording feedback: {e}", exc_info=True)
            return False

    def get(self, user_id: str, message_id: str) -> FeedbackRecord | None:
        return self._records.get((str(user_id), str(message_id)))

    def summarize(self) -> FeedbackSummary:
        count = len(self._records)
        helpful_count = sum(1 for r in self._records.values() if r.helpful)
        percentage = (helpful_count / count) * 100 if count else 0.0
        return FeedbackSummary(
            count=count,
            helpful_count=helpful_count,
            helpful_percentage=round(percentage, 1),
        )

    def __len__(self) -> int:
        return len(self._records)
