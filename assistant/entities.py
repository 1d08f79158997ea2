"""
Entity Extractor — Regex Scanning of Patient Messages
======================================================
Finds medically relevant tokens in a patient message: dates, medications,
symptoms, conditions, body parts and bare numbers.

Each kind is a fixed regular expression applied to every token on its own.
There is no normalization or span merging: a token that matches two kinds
("heart" is both a condition and a body part) shows up in both lists.

Usage:
    from assistant.entities import extract_entities, tokenize

    entities = extract_entities(tokenize("Severe chest pain since 3/12"))
    entities.symptoms    # ["pain"]
    entities.body_parts  # ["chest"]
    entities.dates       # ["3/12"]
"""

from __future__ import annotations

import re

from nltk.tokenize import RegexpTokenizer
from pydantic import BaseModel, Field

# Keeps "3/12/2024" and "03-12" together so the date pattern can see them.
_tokenizer = RegexpTokenizer(r"\d+(?:[/-]\d+)+|\w+")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase word tokens."""
    if not text:
        return []
    return _tokenizer.tokenize(text.lower())


# ── Patterns ─────────────────────────────────────────────────────────────

ENTITY_PATTERNS: dict[str, re.Pattern] = {
    "dates": re.compile(r"\b\d{1,2}[/\-]\d{1,2}([/\-]\d{2,4})?\b"),
    "medications": re.compile(
        r"\b(pill|medication|medicine|prescription|drug|dose|tablet|capsule"
        r"|antibiotic|inhaler|insulin|injection)s?\b",
        re.IGNORECASE,
    ),
    "symptoms": re.compile(
        r"\b(pain|ache|fever|cough|headache|nausea|dizz|swelling|rash|fatigue"
        r"|tired|exhausted|vomit|diarrhea|constipation|bleed|breath|numb|itch"
        r"|burn|sore)\w*\b",
        re.IGNORECASE,
    ),
    "medical_conditions": re.compile(
        r"\b(diabet|hypertension|asthma|arthritis|depression|anxiety|allerg"
        r"|cancer|heart|stroke|infection|disease|disorder|syndrome)\w*\b",
        re.IGNORECASE,
    ),
    "body_parts": re.compile(
        r"\b(head|chest|arm|leg|foot|hand|back|neck|shoulder|knee|ankle|wrist"
        r"|stomach|throat|ear|eye|nose|skin|heart|lung|liver|kidney)s?\b",
        re.IGNORECASE,
    ),
    "numbers": re.compile(r"^\d+$"),
}


class ExtractedEntities(BaseModel):
    """Tokens matched per entity kind, in message order."""

    dates: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    symptoms: list[str] = Field(default_factory=list)
    medical_conditions: list[str] = Field(default_factory=list)
    body_parts: list[str] = Field(default_factory=list)
    numbers: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(getattr(self, kind) for kind in ENTITY_PATTERNS)


def extract_entities(tokens: list[str]) -> ExtractedEntities:
    """Return, for each entity kind, the tokens whose surface form matches."""
    found = {
        kind: [token for token in tokens if pattern.search(token)]
        for kind, pattern in ENTITY_PATTERNS.items()
    }
    return ExtractedEntities(**found)
