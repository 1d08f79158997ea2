"""
Sentiment Scorer — Lexicon Polarity and Urgency Flag
=====================================================
AFINN-style word scoring (-5 very negative .. +5 very positive) averaged over
the message tokens, then thresholded into a label:

    score >  0.2  → positive
    score < -0.2  → negative
    otherwise     → neutral

A message is flagged urgent when it is strongly negative (score < -0.5) or
contains any urgency keyword. This is a coarse heuristic, not a triage
decision; false positives ("help") are expected.
"""

from __future__ import annotations

from typing import Literal

from nltk.stem import PorterStemmer
from pydantic import BaseModel

SentimentLabel = Literal["positive", "neutral", "negative"]

POSITIVE_THRESHOLD = 0.2
NEGATIVE_THRESHOLD = -0.2
URGENT_SCORE_THRESHOLD = -0.5

URGENT_TERMS = frozenset({
    "emergency", "urgent", "immediately", "severe",
    "critical", "help", "now", "asap",
})

# Subset of the AFINN-111 word list, weighted -5..+5.
LEXICON: dict[str, int] = {
    # positive
    "amazing": 4, "appreciate": 2, "appreciated": 2, "awesome": 4,
    "better": 2, "brilliant": 4, "calm": 2, "care": 2, "comfortable": 2,
    "excellent": 3, "fantastic": 4, "fine": 2, "glad": 3, "good": 3,
    "grateful": 3, "great": 3, "happy": 3, "help": 2, "helpful": 2,
    "hope": 2, "hopeful": 2, "improve": 2, "improved": 2, "kind": 2,
    "like": 2, "love": 3, "lucky": 3, "nice": 3, "perfect": 3,
    "pleased": 3, "recovered": 2, "relief": 1, "relieved": 2, "safe": 1,
    "satisfied": 2, "support": 2, "thank": 2, "thanks": 2, "thankful": 2,
    "well": 2, "wonderful": 4,
    # negative
    "afraid": -2, "agony": -3, "angry": -3, "annoyed": -2, "anxious": -2,
    "awful": -3, "bad": -3, "broken": -1, "cancel": -1, "cancelled": -1,
    "charged": -3, "collapse": -2, "collapsed": -2, "complain": -2,
    "confused": -2, "crash": -2, "crying": -2, "dead": -3, "death": -2,
    "denied": -2, "depressed": -2, "desperate": -3, "died": -3,
    "disappointed": -2, "distress": -2, "dying": -3, "emergency": -2,
    "error": -2, "exhausted": -2, "fail": -2, "failed": -2, "fear": -2,
    "frustrated": -2, "frustrating": -2, "hate": -3, "horrible": -3,
    "hurt": -2, "hurts": -2, "ill": -2, "lonely": -2, "lost": -3,
    "miserable": -3, "missed": -2, "nervous": -2, "overwhelmed": -2,
    "pain": -2, "painful": -2, "panic": -3, "poor": -2, "problem": -2,
    "sad": -2, "scared": -2, "sick": -2, "stress": -1, "stressed": -2,
    "struggling": -2, "stuck": -2, "suffer": -2, "suffering": -2,
    "terrible": -3, "tired": -2, "unhappy": -2, "upset": -2,
    "wait": -1, "waiting": -1, "worried": -3, "worse": -3, "worst": -3,
    "wrong": -2,
}

# "t" is what remains of "n't" after tokenizing ("can't" → "can", "t").
NEGATORS = frozenset({
    "not", "no", "never", "neither", "nor", "nobody", "nothing",
    "cannot", "dont", "without", "t",
})

_stemmer = PorterStemmer()
_STEMMED_LEXICON = {_stemmer.stem(word): value for word, value in LEXICON.items()}


class SentimentResult(BaseModel):
    score: float = 0.0
    label: SentimentLabel = "neutral"
    is_urgent: bool = False


def _word_value(token: str) -> int:
    if token in LEXICON:
        return LEXICON[token]
    return _STEMMED_LEXICON.get(_stemmer.stem(token), 0)


def polarity(tokens: list[str]) -> float:
    """Average lexicon value per token; negators flip the next word."""
    if not tokens:
        return 0.0

    total = 0
    prev = ""
    for token in tokens:
        value = _word_value(token)
        if prev in NEGATORS:
            value = -value
        total += value
        prev = token
    return total / len(tokens)


def label_for(score: float) -> SentimentLabel:
    if score > POSITIVE_THRESHOLD:
        return "positive"
    if score < NEGATIVE_THRESHOLD:
        return "negative"
    return "neutral"


def score_sentiment(tokens: list[str]) -> SentimentResult:
    """Score a token list and derive the urgency flag."""
    score = polarity(tokens)
    label = label_for(score)
    has_urgent_terms = any(token in URGENT_TERMS for token in tokens)
    is_urgent = (label == "negative" and score < URGENT_SCORE_THRESHOLD) or has_urgent_terms
    return SentimentResult(score=round(score, 4), label=label, is_urgent=is_urgent)
