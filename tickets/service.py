"""
Ticket Service — Trigger Points for AI Replies
===============================================
What the HTTP layer calls. Each operation validates access, updates the
ticket, and (for patient messages) schedules a first-pass AI reply.

Operations:
  create_ticket()             — new ticket; description becomes message #1
  add_message()               — append a patient/provider message
  update_ticket()             — status / priority / assignee changes
  request_enhanced_response() — reply returned to the caller, not stored
  record_feedback()           — helpful / not helpful on an AI reply

AI replies run as asyncio tasks owned by ReplyScheduler. Replies for the
same ticket are serialized, so they land in the order their triggering
messages arrived. A failed reply is logged; it never reaches the caller.

Usage:
    service = TicketService(repository, responder, feedback_store)
    ticket = await service.create_ticket(user.id, "Refill", "I need my prescription refilled", "prescription")
    await service.scheduler.drain()   # wait for the AI reply (tests, shutdown)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from assistant.feedback import FeedbackStore
from assistant.responder import AssistantResponder

from .models import Message, Ticket, User
from .repository import TicketRepository

logger = logging.getLogger("tickets.service")


# ── Errors ───────────────────────────────────────────────────────────────


class TicketError(Exception):
    """Base class for ticket service failures."""


class TicketNotFound(TicketError):
    pass


class NotAuthorized(TicketError):
    pass


class InvalidMessage(TicketError):
    pass


class InvalidTicketData(TicketError):
    """A field value outside the allowed set (status, category, ...)."""


# ── Reply Scheduler ──────────────────────────────────────────────────────


class ReplyScheduler:
    """Runs reply jobs as tasks, one at a time per ticket, in submission order.

    Lifecycle:
      task = scheduler.schedule(ticket_id, job)
      await scheduler.drain()        # wait for everything pending
      await scheduler.cancel_all()   # shutdown
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}

    def schedule(self, ticket_id: str, job: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        lock = self._locks.setdefault(ticket_id, asyncio.Lock())
        self._pending[ticket_id] = self._pending.get(ticket_id, 0) + 1

        async def run():
            try:
                async with lock:
                    await job()
            except asyncio.CancelledError:
                logger.info(f"AI reply for ticket {ticket_id} cancelled")
                raise
            except Exception as e:
                logger.error(f"Error generating AI reply for ticket {ticket_id}: {e}", exc_info=True)

        task = asyncio.create_task(run(), name=f"ai-reply-{ticket_id}")
        self._tasks.add(task)
        # Runs even when the task is cancelled before its first step.
        task.add_done_callback(lambda t: self._release(ticket_id))
        task.add_done_callback(self._tasks.discard)
        return task

    def _release(self, ticket_id: str) -> None:
        remaining = self._pending.get(ticket_id, 1) - 1
        if remaining <= 0:
            self._pending.pop(ticket_id, None)
            self._locks.pop(ticket_id, None)
        else:
            self._pending[ticket_id] = remaining

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every scheduled reply has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


# ── Service ──────────────────────────────────────────────────────────────


class TicketService:
    def __init__(
        self,
        repository: TicketRepository,
        responder: AssistantResponder,
        feedback_store: FeedbackStore,
        scheduler: Optional[ReplyScheduler] = None,
    ):
        self.repository = repository
        self.responder = responder
        self.feedback_store = feedback_store
        self.scheduler = scheduler or ReplyScheduler()

    # ── Lookups ──────────────────────────────────────────────────────

    async def _require_user(self, user_id: str) -> User:
        user = await self.repository.get_user(user_id)
        if user is None:
            raise NotAuthorized(f"Unknown user: {user_id}")
        return user

    async def _require_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self.repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFound(f"Ticket not found: {ticket_id}")
        return ticket

    async def get_ticket(self, ticket_id: str, user_id: str) -> Ticket:
        user = await self._require_user(user_id)
        ticket = await self._require_ticket(ticket_id)
        if not ticket.can_view(user):
            raise NotAuthorized("Not authorized to view this ticket")
        return ticket

    async def list_tickets(self, user_id: str) -> list[Ticket]:
        """Staff see every ticket; patients see their own."""
        user = await self._require_user(user_id)
        return await self.repository.list_tickets(None if user.is_staff else user.id)

    @staticmethod
    def _language_for(user: User, ticket: Ticket) -> Optional[str]:
        if user.preferred_language and user.preferred_language != "auto":
            return user.preferred_language
        if ticket.language != "auto":
            return ticket.language
        return None

    # ── Operations ───────────────────────────────────────────────────

    async def create_ticket(
        self,
        user_id: str,
        title: str,
        description: str,
        category: str,
        priority: str = "medium",
    ) -> Ticket:
        user = await self._require_user(user_id)
        if not description or not description.strip():
            raise InvalidMessage("Ticket description is required")

        try:
            ticket = Ticket(
                title=title,
                description=description,
                category=category,
                priority=priority or "medium",
                user_id=user.id,
            )
        except ValidationError as e:
            raise InvalidTicketData(str(e)) from e
        ticket.append_message(Message(content=description, sender_id=user.id))
        ticket = await self.repository.save_ticket(ticket)
        logger.info(f"Ticket {ticket.id} created: category={category}, priority={ticket.priority}")

        self._schedule_reply(ticket, user, description, history=[])
        return ticket

    async def add_message(self, ticket_id: str, user_id: str, content: str) -> Ticket:
        if not content or not content.strip():
            raise InvalidMessage("Message content is required")

        user = await self._require_user(user_id)
        ticket = await self._require_ticket(ticket_id)
        if not ticket.can_post(user):
            raise NotAuthorized("Not authorized to add message to this ticket")

        history = ticket.history()
        ticket.append_message(Message(content=content, sender_id=user.id))
        if ticket.status == "closed":
            ticket.status = "open"
            logger.info(f"Ticket {ticket.id} reopened by new message")
        ticket = await self.repository.save_ticket(ticket)

        self._schedule_reply(ticket, user, content, history=history)
        return ticket

    async def update_ticket(
        self,
        ticket_id: str,
        user_id: str,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> Ticket:
        user = await self._require_user(user_id)
        ticket = await self._require_ticket(ticket_id)
        if not ticket.can_view(user):
            raise NotAuthorized("Not authorized to update this ticket")

        if assigned_to:
            if not user.is_staff:
                raise NotAuthorized("Only providers and admins can assign tickets")
            if await self.repository.get_user(assigned_to) is None:
                raise NotAuthorized(f"Unknown assignee: {assigned_to}")

        changes = {
            field: value
            for field, value in (("status", status), ("priority", priority), ("assigned_to", assigned_to))
            if value
        }
        if not changes:
            return ticket
        self._apply(ticket, self._validated(ticket, changes))
        return await self.repository.save_ticket(ticket)

    async def request_enhanced_response(
        self,
        user_id: str,
        message: str,
        ticket_id: Optional[str] = None,
        category: Optional[str] = None,
    ) -> str:
        """Reply for the caller to display. Nothing is appended to the ticket."""
        if not message or not message.strip():
            raise InvalidMessage("Message content is required")

        user = await self._require_user(user_id)
        history: list[dict] = []
        language = user.preferred_language if user.preferred_language != "auto" else None
        if ticket_id:
            ticket = await self._require_ticket(ticket_id)
            if not ticket.can_view(user):
                raise NotAuthorized("Not authorized to view this ticket")
            category = category or ticket.category
            history = ticket.history()
            language = self._language_for(user, ticket)

        return await self.responder.generate_enhanced_response(
            message, category, user_id=user.id, preferred_language=language, history=history
        )

    async def record_feedback(
        self,
        ticket_id: str,
        user_id: str,
        message_id: str,
        helpful: bool,
        text: str = "",
        rating: Optional[int] = None,
    ) -> bool:
        user = await self._require_user(user_id)
        ticket = await self._require_ticket(ticket_id)
        if not ticket.can_view(user):
            raise NotAuthorized("Not authorized to rate this ticket")
        if not any(m.id == message_id and m.is_ai for m in ticket.messages):
            raise InvalidMessage(f"No AI reply {message_id} on ticket {ticket_id}")

        changes = self._validated(ticket, {
            "feedback_provided": True,
            "feedback_rating": rating,
            "feedback_comments": text or "",
        })

        recorded = self.feedback_store.record(user.id, message_id, helpful, text)
        if recorded:
            self._apply(ticket, changes)
            await self.repository.save_ticket(ticket)
        return recorded

    @staticmethod
    def _validated(ticket: Ticket, changes: dict[str, Any]) -> dict[str, Any]:
        """Validate changes against a copy; the stored ticket is untouched on failure."""
        try:
            candidate = Ticket.model_validate({**ticket.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidTicketData(str(e)) from e
        return {field: getattr(candidate, field) for field in changes}

    @staticmethod
    def _apply(ticket: Ticket, changes: dict[str, Any]) -> None:
        for field, value in changes.items():
            setattr(ticket, field, value)

    async def shutdown(self) -> None:
        await self.scheduler.cancel_all()

    # ── AI replies ───────────────────────────────────────────────────

    def _schedule_reply(self, ticket: Ticket, user: User, content: str, history: list[dict]) -> asyncio.Task:
        ticket_id = ticket.id
        category = ticket.category
        language = self._language_for(user, ticket)

        async def job():
            response = await self.responder.generate_enhanced_response(
                content, category, user_id=user.id, preferred_language=language, history=history
            )
            await self._append_ai_reply(ticket_id, response)

        return self.scheduler.schedule(ticket_id, job)

    async def _append_ai_reply(self, ticket_id: str, response: str) -> None:
        ticket = await self.repository.get_ticket(ticket_id)
        if ticket is None:
            logger.warning(f"Ticket {ticket_id} disappeared before its AI reply was stored")
            return

        ticket.append_message(Message(content=response, is_ai=True))
        if not ticket.ai_responded:
            ticket.ai_responded = True
            ticket.ai_response = response
        await self.repository.save_ticket(ticket)
        logger.info(f"AI reply stored on ticket {ticket_id}")
