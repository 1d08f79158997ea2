"""
Configuration — Environment Settings
=====================================
All tunables are read from the environment once, at process start.

Environment:
  OPENAI_API_KEY            — remote enhancement credential (optional)
  OPENAI_MODEL              — chat model (default gpt-3.5-turbo)
  OPENAI_TIMEOUT_SECONDS    — per-call timeout (default 20)
  AI_RESPONSE_DELAY_SECONDS — pause before an AI reply is produced (default 0.5)
  CONTEXT_MAX_ENTRIES       — history entries kept per user (default 10)
  CONTEXT_TTL_SECONDS       — idle time before a context expires (default 1800)
  CONTEXT_SWEEP_SECONDS     — sweep interval (default 900)
  FEEDBACK_REPORT_SECONDS   — feedback report interval (default 86400)
  LOG_LEVEL                 — logging level (default INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    openai_timeout_seconds: float = 20.0
    response_delay_seconds: float = 0.5
    context_max_entries: int = 10
    context_ttl_seconds: float = 30 * 60
    context_sweep_seconds: float = 15 * 60
    feedback_report_seconds: float = 24 * 60 * 60
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-3.5-turbo"),
            openai_timeout_seconds=float(os.environ.get("OPENAI_TIMEOUT_SECONDS", "20")),
            response_delay_seconds=float(os.environ.get("AI_RESPONSE_DELAY_SECONDS", "0.5")),
            context_max_entries=int(os.environ.get("CONTEXT_MAX_ENTRIES", "10")),
            context_ttl_seconds=float(os.environ.get("CONTEXT_TTL_SECONDS", "1800")),
            context_sweep_seconds=float(os.environ.get("CONTEXT_SWEEP_SECONDS", "900")),
            feedback_report_seconds=float(os.environ.get("FEEDBACK_REPORT_SECONDS", "86400")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
