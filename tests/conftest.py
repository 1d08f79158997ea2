"""
Shared Test Fixtures — TicketHub Assistant
===========================================
Provides reusable fixtures for all test modules: a trained classifier,
fresh stores, a deterministic responder, an in-memory repository seeded with
users, and a mocked OpenAI client.

Usage:
  pytest tests/ -v
"""

from __future__ import annotations

import os
import random
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Ensure the project packages are importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from assistant.classifier import NaiveBayesCategoryClassifier  # noqa: E402
from assistant.context_store import ConversationContextStore  # noqa: E402
from assistant.feedback import FeedbackStore  # noqa: E402
from assistant.responder import AssistantResponder  # noqa: E402
from tickets.models import User, hash_password  # noqa: E402
from tickets.repository import InMemoryTicketRepository  # noqa: E402
from tickets.service import TicketService  # noqa: E402

TEST_PASSWORD = "correct horse battery"

# Hashing is deliberately slow; do it once for every seeded user.
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class FakeClock:
    """Callable clock the context store can be driven with."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Assistant ────────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def classifier():
    """Classifier trained once on the bundled phrase corpus."""
    return NaiveBayesCategoryClassifier.from_corpus()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def context_store(clock):
    return ConversationContextStore(clock=clock)


@pytest.fixture
def feedback_store():
    return FeedbackStore()


@pytest.fixture
def responder(classifier, context_store):
    """Template-only responder with pinned randomness and no delay."""
    return AssistantResponder(
        classifier=classifier,
        context_store=context_store,
        enhancer=None,
        rng=random.Random(0),
        response_delay=0.0,
    )


# ── OpenAI Mock ──────────────────────────────────────────────────────────


def make_completion(content):
    """Chat-completion shaped mock carrying one choice."""
    completion = MagicMock()
    completion.choices = [MagicMock(message=MagicMock(content=content))]
    return completion


@pytest.fixture
def mock_openai_client():
    """AsyncOpenAI stand-in whose create() returns a canned reply."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=make_completion("Enhanced reply from the model.")
    )
    return client


# ── Tickets ──────────────────────────────────────────────────────────────


def make_user(name: str, email: str, role: str = "patient", **fields) -> User:
    return User(name=name, email=email, password_hash=_PASSWORD_HASH, role=role, **fields)


@pytest_asyncio.fixture
async def repository():
    """In-memory repository seeded with two patients, a provider and an admin."""
    repo = InMemoryTicketRepository()
    await repo.save_user(make_user("Alice Patient", "alice@example.com", id="patient-1"))
    await repo.save_user(make_user("Bob Patient", "bob@example.com", id="patient-2"))
    await repo.save_user(make_user("Dr. Carol", "carol@clinic.example.com", role="healthcare_provider", id="provider-1"))
    await repo.save_user(make_user("Dana Admin", "dana@clinic.example.com", role="admin", id="admin-1"))
    return repo


@pytest.fixture
def service(repository, responder, feedback_store):
    return TicketService(repository, responder, feedback_store)
