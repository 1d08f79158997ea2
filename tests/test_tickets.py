"""
Ticket Tests — Models, Repository, Service and AI Reply Scheduling
===================================================================
Run:
  pytest tests/test_tickets.py -v
"""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from assistant.feedback import FeedbackStore
from tickets.models import Message, Ticket, User, hash_password, verify_password
from tickets.repository import DuplicateEmail, InMemoryTicketRepository
from tickets.service import (
    InvalidMessage,
    InvalidTicketData,
    NotAuthorized,
    ReplyScheduler,
    TicketNotFound,
    TicketService,
)

from conftest import TEST_PASSWORD, make_user


class RecordingResponder:
    """Responder stand-in: echoes the message, slowest on the first call."""

    def __init__(self, fail_on: str | None = None):
        self.calls: list[dict] = []
        self.fail_on = fail_on

    async def generate_enhanced_response(self, message, category, user_id=None, preferred_language=None, history=None):
        self.calls.append({
            "message": message,
            "category": category,
            "language": preferred_language,
            "history": history,
        })
        await asyncio.sleep(0.05 if len(self.calls) == 1 else 0)
        if message == self.fail_on:
            raise RuntimeError("responder exploded")
        return f"reply to: {message}"


def ai_messages(ticket: Ticket) -> list[str]:
    return [m.content for m in ticket.messages if m.is_ai]


# ═══════════════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════════════


class TestModels:
    def test_password_hash_round_trip(self):
        encoded = hash_password("s3cret", salt="fixed-salt")
        assert encoded.startswith("pbkdf2_sha256$")
        assert verify_password("s3cret", encoded)
        assert not verify_password("wrong", encoded)
        assert not verify_password("s3cret", "garbage")

    def test_user_create_hashes_password(self):
        user = User.create("Eve", "Eve@Example.COM", "hunter22")
        assert user.email == "eve@example.com"
        assert user.password_hash != "hunter22"
        assert user.check_password("hunter22")

    def test_user_rejects_bad_email(self):
        with pytest.raises(ValidationError):
            make_user("Eve", "not-an-email")

    def test_ticket_rejects_unknown_status(self):
        ticket = Ticket(title="t", description="d", category="general", user_id="u")
        with pytest.raises(ValidationError):
            ticket.status = "reopened"

    def test_messages_are_immutable(self):
        message = Message(content="hello")
        with pytest.raises(ValidationError):
            message.content = "changed"

    def test_access_rules(self):
        patient = make_user("P", "p@example.com", id="p")
        other = make_user("O", "o@example.com", id="o")
        provider = make_user("D", "d@example.com", role="healthcare_provider", id="d")
        admin = make_user("A", "a@example.com", role="admin", id="a")
        ticket = Ticket(title="t", description="d", category="general", user_id="p")

        assert ticket.can_view(patient) and ticket.can_post(patient)
        assert not ticket.can_view(other)
        assert ticket.can_view(provider) and not ticket.can_post(provider)
        assert ticket.can_post(admin)

        ticket.assigned_to = "d"
        assert ticket.can_post(provider)


# ═══════════════════════════════════════════════════════════════════════
# Repository
# ═══════════════════════════════════════════════════════════════════════


class TestRepository:
    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, repository):
        with pytest.raises(DuplicateEmail):
            await repository.save_user(make_user("Alice Again", "ALICE@example.com"))

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self):
        repo = InMemoryTicketRepository()
        first = await repo.save_ticket(Ticket(title="a", description="a", category="general", user_id="u1"))
        await repo.save_ticket(Ticket(title="b", description="b", category="billing", user_id="u2"))
        await asyncio.sleep(0.001)
        await repo.save_ticket(first)

        assert [t.title for t in await repo.list_tickets()] == ["a", "b"]
        assert [t.title for t in await repo.list_tickets("u2")] == ["b"]


# ═══════════════════════════════════════════════════════════════════════
# Ticket Service
# ═══════════════════════════════════════════════════════════════════════


class TestTicketService:
    @pytest.mark.asyncio
    async def test_create_ticket_gets_ai_reply(self, service):
        ticket = await service.create_ticket(
            "patient-1", "Refill", "I need my prescription refilled for metformin", "prescription"
        )
        assert ticket.messages[0].content == "I need my prescription refilled for metformin"
        assert not ticket.ai_responded

        await service.scheduler.drain()
        stored = await service.get_ticket(ticket.id, "patient-1")
        assert stored.ai_responded
        assert len(ai_messages(stored)) == 1
        assert "healthcare provider" in stored.ai_response
        assert stored.ai_response == ai_messages(stored)[0]

    @pytest.mark.asyncio
    async def test_ai_replies_follow_message_order(self, repository, feedback_store):
        responder = RecordingResponder()
        service = TicketService(repository, responder, feedback_store)

        ticket = await service.create_ticket("patient-1", "Visit", "first", "appointment")
        await service.add_message(ticket.id, "patient-1", "second")
        await service.add_message(ticket.id, "patient-1", "third")
        await service.scheduler.drain()

        stored = await repository.get_ticket(ticket.id)
        assert ai_messages(stored) == ["reply to: first", "reply to: second", "reply to: third"]
        assert stored.ai_response == "reply to: first"
        assert responder.calls[0]["history"] == []
        assert responder.calls[1]["history"] == [{"content": "first", "is_ai": False}]

    @pytest.mark.asyncio
    async def test_failed_reply_is_contained(self, repository, feedback_store):
        service = TicketService(repository, RecordingResponder(fail_on="boom"), feedback_store)

        ticket = await service.create_ticket("patient-1", "Oops", "boom", "general")
        await service.scheduler.drain()

        stored = await repository.get_ticket(ticket.id)
        assert ai_messages(stored) == []
        assert not stored.ai_responded
        assert service.scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_message_reopens_closed_ticket(self, service):
        ticket = await service.create_ticket("patient-1", "Bill", "Question about my bill", "billing")
        await service.update_ticket(ticket.id, "provider-1", status="closed")

        updated = await service.add_message(ticket.id, "patient-1", "Still not resolved")
        assert updated.status == "open"
        await service.scheduler.drain()

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, service):
        ticket = await service.create_ticket("patient-1", "Bill", "Question about my bill", "billing")
        with pytest.raises(InvalidMessage):
            await service.add_message(ticket.id, "patient-1", "   ")
        await service.scheduler.drain()

    @pytest.mark.asyncio
    async def test_invalid_category_rejected(self, service):
        with pytest.raises(InvalidTicketData):
            await service.create_ticket("patient-1", "Huh", "Something", "astrology")
        assert service.scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_other_patient_cannot_see_or_post(self, service):
        ticket = await service.create_ticket("patient-1", "Private", "My test results", "general")
        with pytest.raises(NotAuthorized):
            await service.get_ticket(ticket.id, "patient-2")
        with pytest.raises(NotAuthorized):
            await service.add_message(ticket.id, "patient-2", "hello?")
        await service.scheduler.drain()

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, service):
        with pytest.raises(TicketNotFound):
            await service.get_ticket("missing", "patient-1")

    @pytest.mark.asyncio
    async def test_listing_scoped_by_role(self, service):
        await service.create_ticket("patient-1", "Mine", "A question", "general")
        await service.create_ticket("patient-2", "Theirs", "Another question", "general")
        await service.scheduler.drain()

        assert [t.title for t in await service.list_tickets("patient-1")] == ["Mine"]
        assert len(await service.list_tickets("provider-1")) == 2

    @pytest.mark.asyncio
    async def test_assignment_requires_staff(self, service):
        ticket = await service.create_ticket("patient-1", "Visit", "Book a visit", "appointment")
        with pytest.raises(NotAuthorized):
            await service.update_ticket(ticket.id, "patient-1", assigned_to="provider-1")
        with pytest.raises(NotAuthorized):
            await service.update_ticket(ticket.id, "admin-1", assigned_to="nobody")

        updated = await service.update_ticket(ticket.id, "admin-1", assigned_to="provider-1", priority="high")
        assert updated.assigned_to == "provider-1"
        assert updated.priority == "high"
        await service.scheduler.drain()

    @pytest.mark.asyncio
    async def test_rejected_assignment_leaves_ticket_unchanged(self, service, repository):
        ticket = await service.create_ticket("patient-1", "Visit", "Book a visit", "appointment")
        await service.scheduler.drain()
        updated_at = ticket.updated_at

        with pytest.raises(NotAuthorized):
            await service.update_ticket(ticket.id, "patient-1", status="closed", assigned_to="provider-1")
        with pytest.raises(NotAuthorized):
            await service.update_ticket(ticket.id, "admin-1", priority="urgent", assigned_to="nobody")

        stored = await repository.get_ticket(ticket.id)
        assert stored.status == "open"
        assert stored.priority == "medium"
        assert stored.assigned_to is None
        assert stored.updated_at == updated_at

    @pytest.mark.asyncio
    async def test_invalid_priority_leaves_valid_status_unapplied(self, service, repository):
        ticket = await service.create_ticket("patient-1", "Visit", "Book a visit", "appointment")
        await service.scheduler.drain()

        with pytest.raises(InvalidTicketData):
            await service.update_ticket(ticket.id, "provider-1", status="resolved", priority="whenever")
        assert (await repository.get_ticket(ticket.id)).status == "open"

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, service):
        ticket = await service.create_ticket("patient-1", "Visit", "Book a visit", "appointment")
        with pytest.raises(InvalidTicketData):
            await service.update_ticket(ticket.id, "provider-1", status="reopened")
        await service.scheduler.drain()

    @pytest.mark.asyncio
    async def test_enhanced_response_is_not_stored(self, service):
        ticket = await service.create_ticket("patient-1", "Visit", "Book a visit", "appointment")
        await service.scheduler.drain()
        before = len((await service.get_ticket(ticket.id, "patient-1")).messages)

        reply = await service.request_enhanced_response("patient-1", "Can I reschedule my appointment?", ticket.id)
        assert reply
        assert len((await service.get_ticket(ticket.id, "patient-1")).messages) == before

    @pytest.mark.asyncio
    async def test_preferred_language_reaches_responder(self, repository, feedback_store):
        await repository.save_user(make_user("Elena", "elena@example.com", id="patient-es", preferred_language="es"))
        responder = RecordingResponder()
        service = TicketService(repository, responder, feedback_store)

        await service.create_ticket("patient-es", "Cita", "Tengo una pregunta sobre mi cita", "appointment")
        await service.scheduler.drain()
        assert responder.calls[0]["language"] == "es"


# ═══════════════════════════════════════════════════════════════════════
# Feedback
# ═══════════════════════════════════════════════════════════════════════


class TestFeedback:
    def test_summary_percentage(self):
        store = FeedbackStore()
        assert store.record("u1", "m1", False)
        assert store.record("u1", "m2", True)

        summary = store.summarize()
        assert summary.count == 2
        assert summary.helpful_count == 1
        assert summary.helpful_percentage == 50.0

    def test_second_vote_replaces_first(self):
        store = FeedbackStore()
        store.record("u1", "m1", False)
        store.record("u1", "m1", True, "changed my mind")

        assert len(store) == 1
        assert store.get("u1", "m1").helpful
        assert store.summarize().helpful_percentage == 100.0

    def test_empty_summary(self):
        assert FeedbackStore().summarize().helpful_percentage == 0.0

    @pytest.mark.asyncio
    async def test_feedback_on_ai_reply(self, service, feedback_store):
        ticket = await service.create_ticket("patient-1", "Bill", "Question about my bill", "billing")
        await service.scheduler.drain()
        ticket = await service.get_ticket(ticket.id, "patient-1")
        ai_message = next(m for m in ticket.messages if m.is_ai)

        assert await service.record_feedback(ticket.id, "patient-1", ai_message.id, True, "clear", rating=5)
        stored = await service.get_ticket(ticket.id, "patient-1")
        assert stored.feedback_provided
        assert stored.feedback_rating == 5
        assert feedback_store.summarize().helpful_count == 1

    @pytest.mark.asyncio
    async def test_out_of_range_rating_rejected_before_recording(self, service, feedback_store):
        ticket = await service.create_ticket("patient-1", "Bill", "Question about my bill", "billing")
        await service.scheduler.drain()
        ai_message = next(m for m in ticket.messages if m.is_ai)

        with pytest.raises(InvalidTicketData):
            await service.record_feedback(ticket.id, "patient-1", ai_message.id, True, rating=0)

        stored = await service.get_ticket(ticket.id, "patient-1")
        assert len(feedback_store) == 0
        assert not stored.feedback_provided
        assert stored.feedback_rating is None

    @pytest.mark.asyncio
    async def test_feedback_needs_ai_message(self, service):
        ticket = await service.create_ticket("patient-1", "Bill", "Question about my bill", "billing")
        await service.scheduler.drain()
        with pytest.raises(InvalidMessage):
            await service.record_feedback(ticket.id, "patient-1", ticket.messages[0].id, True)


# ═══════════════════════════════════════════════════════════════════════
# Reply Scheduler
# ═══════════════════════════════════════════════════════════════════════


class TestReplyScheduler:
    @pytest.mark.asyncio
    async def test_cancel_all(self):
        scheduler = ReplyScheduler()
        started = asyncio.Event()

        async def forever():
            started.set()
            await asyncio.sleep(3600)

        scheduler.schedule("t1", forever)
        await started.wait()
        await scheduler.cancel_all()
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_cancel_before_first_run_releases_ticket_state(self):
        scheduler = ReplyScheduler()

        async def job():
            await asyncio.sleep(3600)

        scheduler.schedule("t1", job)
        scheduler.schedule("t1", job)
        await scheduler.cancel_all()

        assert scheduler.pending == 0
        assert scheduler._pending == {}
        assert scheduler._locks == {}

    @pytest.mark.asyncio
    async def test_different_tickets_run_concurrently(self):
        scheduler = ReplyScheduler()
        order = []

        async def job(name, delay):
            await asyncio.sleep(delay)
            order.append(name)

        scheduler.schedule("slow", lambda: job("slow", 0.05))
        scheduler.schedule("fast", lambda: job("fast", 0))
        await scheduler.drain()
        assert order == ["fast", "slow"]


def test_password_constant_matches_seeded_users():
    assert verify_password(TEST_PASSWORD, make_user("X", "x@example.com").password_hash)
