"""
Category Classifier — Naive Bayes over Stemmed Tokens
======================================================
Maps a patient message to one of the request categories (appointment,
prescription, billing, ...) using nltk's NaiveBayesClassifier trained once
from a small labelled phrase corpus.

The corpus lives in assistant/data/training_phrases.json so it can be edited
without touching code. The classifier is trained at construction and never
retrained from production traffic.

Usage:
    from assistant.classifier import NaiveBayesCategoryClassifier

    classifier = NaiveBayesCategoryClassifier.from_corpus()
    result = classifier.classify("Can I reschedule my appointment?")
    result.label        # "appointment"
    result.confidence   # posterior probability of that label
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from nltk.classify import NaiveBayesClassifier
from nltk.stem import PorterStemmer
from pydantic import BaseModel

from .entities import tokenize

logger = logging.getLogger("assistant.classifier")

DEFAULT_CORPUS_PATH = Path(__file__).resolve().parent / "data" / "training_phrases.json"

# Words too common to say anything about the category.
STOPWORDS = {
    "the", "a", "an", "is", "are", "i", "my", "we", "you", "it", "me", "am",
    "to", "for", "of", "in", "on", "and", "or", "but", "how", "do", "can",
    "what", "this", "that", "with", "from", "have", "has", "had", "be",
    "was", "were", "been", "does", "did", "will", "would", "if", "so", "at",
    "by", "as", "our", "your", "its", "all", "any", "up", "just", "get",
    "also", "when", "then", "there", "please", "need", "needs", "want",
    "like", "about", "some", "more", "hi", "hello", "thanks",
}


class Classification(BaseModel):
    """Best category for a message. label is None when nothing was recognized."""

    label: Optional[str] = None
    confidence: float = 0.0


class Classifier(Protocol):
    """Anything that can map raw message text to a category label."""

    @property
    def labels(self) -> list[str]: ...

    def classify(self, text: str) -> Classification: ...


class NaiveBayesCategoryClassifier:
    """Bag-of-stems naive Bayes classifier."""

    def __init__(self, examples: list[dict[str, str]]):
        if not examples:
            raise ValueError("Cannot train a classifier without examples")

        self._stemmer = PorterStemmer()
        self._vocabulary: set[str] = set()

        training_set = []
        for example in examples:
            features = self.features(example["text"])
            self._vocabulary.update(features)
            training_set.append((features, example["category"]))

        self._model = NaiveBayesClassifier.train(training_set)
        logger.info(
            f"Trained category classifier on {len(training_set)} phrases "
            f"({len(self.labels)} categories, {len(self._vocabulary)} stems)"
        )

    @classmethod
    def from_corpus(cls, path: Optional[Path] = None) -> "NaiveBayesCategoryClassifier":
        """Load the labelled phrase corpus from JSON and train on it."""
        corpus_path = Path(path) if path else DEFAULT_CORPUS_PATH
        examples = json.loads(corpus_path.read_text(encoding="utf-8"))
        return cls(examples)

    @property
    def labels(self) -> list[str]:
        return sorted(self._model.labels())

    def stems(self, text: str) -> list[str]:
        return [
            self._stemmer.stem(token)
            for token in tokenize(text)
            if token not in STOPWORDS
        ]

    def features(self, text: str) -> dict[str, bool]:
        return {stem: True for stem in self.stems(text)}

    def classify(self, text: str) -> Classification:
        features = {
            stem: True for stem in self.stems(text) if stem in self._vocabulary
        }
        if not features:
            # Only the label priors would speak; let the caller fall back.
            return Classification()

        distribution = self._model.prob_classify(features)
        label = distribution.max()
        return Classification(label=label, confidence=round(distribution.prob(label), 4))
