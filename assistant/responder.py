"""
Assistant Responder — Message → First-Pass Reply
=================================================
The pipeline every trigger point (new ticket, new message, enhanced reply
request) goes through:

  1. wait the configured processing delay
  2. pick the language (user preference, else detection)
  3. analyse the message (intent, entities, sentiment)
  4. record the interaction in the user's conversation context
  5. fill a canned template
  6. optionally rewrite it with the remote model (falls back to step 5)

Usage:
    from assistant.responder import AssistantResponder

    responder = AssistantResponder.from_settings(Settings.from_env())
    text = await responder.generate_response(
        "I need my prescription refilled", category="prescription", user_id="u-1",
    )
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Optional

from .analyzer import MessageAnalysis, MessageAnalyzer
from .classifier import Classifier, NaiveBayesCategoryClassifier
from .config import Settings
from .context_store import ContextEntry, ConversationContextStore
from .enhancer import RemoteEnhancer, RemoteError
from .language import DEFAULT_LANGUAGE, detect_language
from .templates import select_response

logger = logging.getLogger("assistant.responder")


class AssistantResponder:
    """Owns the analysis pipeline and the per-user context it writes to."""

    def __init__(
        self,
        classifier: Classifier,
        context_store: ConversationContextStore,
        enhancer: Optional[RemoteEnhancer] = None,
        rng: Optional[random.Random] = None,
        response_delay: float = 0.0,
    ):
        self.analyzer = MessageAnalyzer(classifier)
        self.context_store = context_store
        self.enhancer = enhancer
        self.rng = rng or random.Random()
        self.response_delay = response_delay

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        context_store: Optional[ConversationContextStore] = None,
    ) -> "AssistantResponder":
        return cls(
            classifier=NaiveBayesCategoryClassifier.from_corpus(),
            context_store=context_store
            or ConversationContextStore(
                max_entries=settings.context_max_entries,
                ttl_seconds=settings.context_ttl_seconds,
            ),
            enhancer=RemoteEnhancer.from_settings(settings),
            response_delay=settings.response_delay_seconds,
        )

    # ── Analysis ─────────────────────────────────────────────────────

    def analyze(self, message: str) -> MessageAnalysis:
        return self.analyzer.analyze(message)

    def _remember(self, user_id: str, message: str, analysis: MessageAnalysis, language: str) -> None:
        self.context_store.update(
            user_id,
            ContextEntry(
                message=message,
                analysis=analysis,
                language=language,
                timestamp=time.time(),
            ),
        )

    # ── Replies ──────────────────────────────────────────────────────

    async def generate_response(
        self,
        message: str,
        category: Optional[str],
        user_id: Optional[str] = None,
        preferred_language: Optional[str] = None,
    ) -> str:
        """Templated reply for one message. Never raises on message content."""
        if self.response_delay > 0:
            await asyncio.sleep(self.response_delay)

        language = preferred_language or detect_language(message)
        if language != DEFAULT_LANGUAGE:
            # Analysis is English-only; the message is processed as-is.
            logger.info(f"Detected non-English language: {language}")

        analysis = self.analyze(message)
        if user_id:
            self._remember(user_id, message, analysis, language)

        response = select_response(analysis, category, self.rng)
        logger.debug(
            f"Reply drafted: intent={analysis.intent}, category={category}, "
            f"sentiment={analysis.sentiment.label}, urgent={analysis.sentiment.is_urgent}"
        )
        return response

    async def generate_enhanced_response(
        self,
        message: str,
        category: Optional[str],
        user_id: Optional[str] = None,
        preferred_language: Optional[str] = None,
        history: Optional[list[dict[str, Any]]] = None,
    ) -> str:
        """Templated reply, rewritten remotely when possible.

        Messages without a category are answered by the remote model
        directly; the templated reply is the fallback for every failure.
        """
        templated = await self.generate_response(message, category, user_id, preferred_language)

        enhancer = self.enhancer
        if enhancer is None or not enhancer.is_available():
            return templated

        if not category:
            try:
                return await enhancer.generate(message, None, history)
            except RemoteError as e:
                logger.warning(f"Remote reply failed, using templated reply: {e}")
                return templated

        return await enhancer.enhance(templated, message, category, history)
