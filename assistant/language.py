"""
Language Detection — Stop-word Overlap
=======================================
Guesses which supported ticket language a message is written in by counting
hits against a short list of very common words per language. Scripts that
are unambiguous (CJK, Arabic) are recognized from their characters.

Only used when the user has not set a preferred language. Replies are
always produced in English; the guess is recorded in the conversation
context and logged.
"""

from __future__ import annotations

import re

from .entities import tokenize

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "es", "fr", "zh", "ar")

_COMMON_WORDS = {
    "en": {"the", "and", "is", "my", "i", "to", "have", "for", "with", "you", "of", "it"},
    "es": {"el", "la", "los", "las", "y", "es", "mi", "tengo", "para", "con", "que", "de", "por", "una"},
    "fr": {"le", "la", "les", "et", "est", "mon", "ma", "j", "ai", "pour", "avec", "je", "de", "une", "pas"},
}

_CJK_RE = re.compile(r"[一-鿿]")
_ARABIC_RE = re.compile(r"[؀-ۿ]")


def detect_language(text: str) -> str:
    """Return a language code from SUPPORTED_LANGUAGES, defaulting to English."""
    if not text:
        return DEFAULT_LANGUAGE
    if _CJK_RE.search(text):
        return "zh"
    if _ARABIC_RE.search(text):
        return "ar"

    tokens = tokenize(text)
    hits = {
        code: sum(1 for token in tokens if token in words)
        for code, words in _COMMON_WORDS.items()
    }
    best = max(hits, key=hits.get)
    # English wins ties, including the no-signal case.
    if hits[best] == 0 or hits[best] == hits[DEFAULT_LANGUAGE]:
        return DEFAULT_LANGUAGE
    return best
