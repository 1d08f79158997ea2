"""
Message Analyzer
================
Runs the full analysis of one patient message:

  1. tokenize (lowercase word tokens)
  2. stem
  3. classify into a request category
  4. score sentiment / urgency
  5. extract medical entities

Every step is a pure function of the text, so analysis never fails.
"""

from __future__ import annotations

from typing import Optional

from nltk.stem import PorterStemmer
from pydantic import BaseModel, Field

from .classifier import Classifier
from .entities import ExtractedEntities, extract_entities, tokenize
from .sentiment import SentimentResult, score_sentiment


class MessageAnalysis(BaseModel):
    intent: Optional[str] = None
    intent_confidence: float = 0.0
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    tokens: list[str] = Field(default_factory=list)
    stemmed_tokens: list[str] = Field(default_factory=list)
    sentiment: SentimentResult = Field(default_factory=SentimentResult)


class MessageAnalyzer:
    def __init__(self, classifier: Classifier):
        self.classifier = classifier
        self._stemmer = PorterStemmer()

    def analyze(self, message: str) -> MessageAnalysis:
        tokens = tokenize(message)
        classification = self.classifier.classify(message)
        return MessageAnalysis(
            intent=classification.label,
            intent_confidence=classification.confidence,
            entities=extract_entities(tokens),
            tokens=tokens,
            stemmed_tokens=[self._stemmer.stem(token) for token in tokens],
            sentiment=score_sentiment(tokens),
        )
