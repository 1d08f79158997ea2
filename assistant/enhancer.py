"""
Remote Enhancement — Optional OpenAI Rewrite of Templated Replies
==================================================================
Best-effort calls to an OpenAI chat-completion model:

  - generate() — write a reply from scratch; raises RemoteError on failure.
                 Without a category the model is told the classifier could
                 not place the message.
  - enhance()  — rewrite a templated reply; returns it unchanged on any
                 failure

A missing or malformed OPENAI_API_KEY disables the feature at start-up. That
is logged, never fatal: callers check is_available() or rely on the
fallbacks above, so the patient always gets at least the templated reply.

Every call is bounded by asyncio.wait_for on top of the client timeout.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger("assistant.enhancer")

PLACEHOLDER_KEY_TEXT = "your-openai-api-key-goes-here"

BASE_INSTRUCTIONS = "You are a helpful healthcare assistant for TicketHub."

SAFETY_INSTRUCTIONS = (
    "For medical questions, avoid giving specific medical advice and recommend "
    "consulting with a healthcare professional. For emergency situations, "
    "advise seeking immediate medical attention."
)


class RemoteError(Exception):
    """The remote model could not produce a reply."""


class ConfigurationError(Exception):
    """The remote credential is missing or malformed."""


def validate_api_key(api_key: Optional[str]) -> str:
    """Return the key if it looks usable, else raise ConfigurationError."""
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set")
    if PLACEHOLDER_KEY_TEXT in api_key:
        raise ConfigurationError("OPENAI_API_KEY is still the placeholder value")
    if not api_key.startswith("sk-") or len(api_key) < 20:
        raise ConfigurationError(
            "OPENAI_API_KEY appears to be invalid: it should start with 'sk-' "
            "and be at least 20 characters long"
        )
    return api_key


def format_history(history: Optional[list[dict[str, Any]]]) -> list[dict[str, str]]:
    """Convert [{content, is_ai}] ticket messages into chat turns."""
    turns = []
    for item in history or []:
        content = item.get("content", "")
        if not content:
            continue
        role = "assistant" if item.get("is_ai") else "user"
        turns.append({"role": role, "content": content})
    return turns


def build_generate_prompt(category: Optional[str]) -> str:
    if not category:
        return (
            f"{BASE_INSTRUCTIONS} The user has sent a message that our "
            "classification system couldn't categorize. Try to understand their "
            f"intent and provide a helpful response. {SAFETY_INSTRUCTIONS}"
        )
    return (
        f"{BASE_INSTRUCTIONS} The user's query has been classified as: {category}. "
        f"Provide a helpful, accurate, and compassionate response. {SAFETY_INSTRUCTIONS}"
    )


def build_enhance_prompt(templated: str, category: Optional[str]) -> str:
    return (
        f"{BASE_INSTRUCTIONS} The user's query has been classified as: "
        f"{category or 'unknown'}. Our basic system generated this response: "
        f"\"{templated}\" Please enhance this response to make it more natural, "
        "helpful, and contextually relevant to the user's query. Maintain the "
        "same general information and advice, but make it more conversational "
        "and empathetic."
    )


class RemoteEnhancer:
    """Thin async wrapper over the chat-completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-3.5-turbo",
        timeout: float = 20.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.timeout = timeout
        self._client: Optional[AsyncOpenAI] = client

        if self._client is None:
            try:
                key = validate_api_key(api_key)
                self._client = AsyncOpenAI(api_key=key, timeout=timeout)
                logger.info("OpenAI client initialized successfully")
            except ConfigurationError as e:
                logger.warning(f"Remote enhancement disabled: {e}")

    @classmethod
    def from_settings(cls, settings) -> "RemoteEnhancer":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.openai_timeout_seconds,
        )

    def is_available(self) -> bool:
        return self._client is not None

    async def _complete(self, system: str, message: str, history, max_tokens: int) -> str:
        if not self.is_available():
            raise RemoteError("OpenAI client is not available; check OPENAI_API_KEY")

        messages = [
            {"role": "system", "content": system},
            *format_history(history),
            {"role": "user", "content": message},
        ]
        try:
            completion = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=0.7,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise RemoteError(f"OpenAI request timed out after {self.timeout}s") from e
        except OpenAIError as e:
            raise RemoteError(f"OpenAI request failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise RemoteError("OpenAI returned an empty reply")
        return content.strip()

    async def generate(
        self,
        message: str,
        category: Optional[str],
        history: Optional[list[dict[str, Any]]] = None,
    ) -> str:
        """Write a reply from scratch. Raises RemoteError on any failure."""
        max_tokens = 500 if category else 300
        return await self._complete(build_generate_prompt(category), message, history, max_tokens)

    async def enhance(
        self,
        templated: str,
        message: str,
        category: Optional[str],
        history: Optional[list[dict[str, Any]]] = None,
    ) -> str:
        """Rewrite the templated reply; return it unchanged if anything goes wrong."""
        if not self.is_available():
            return templated
        try:
            return await self._complete(
                build_enhance_prompt(templated, category), message, history, max_tokens=500
            )
        except Exception as e:
            logger.warning(f"Enhancement failed, using templated reply: {e}")
            return templated
