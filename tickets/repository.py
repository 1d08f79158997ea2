"""
Ticket Repository — Storage Seam
=================================
The ticket service only talks to storage through TicketRepository. The real
database lives outside this package; InMemoryTicketRepository backs tests and
local runs.

All methods are async so a database-backed implementation can drop in:

    ticket = await repo.get_ticket(ticket_id)
    await repo.save_ticket(ticket)   # refreshes ticket.updated_at
"""

from __future__ import annotations

from typing import Optional, Protocol

from .models import Ticket, User


class DuplicateEmail(Exception):
    """Another user already registered this email."""


class TicketRepository(Protocol):
    async def get_ticket(self, ticket_id: str) -> Optional[Ticket]: ...

    async def save_ticket(self, ticket: Ticket) -> Ticket: ...

    async def list_tickets(self, user_id: Optional[str] = None) -> list[Ticket]: ...

    async def get_user(self, user_id: str) -> Optional[User]: ...

    async def save_user(self, user: User) -> User: ...


class InMemoryTicketRepository:
    def __init__(self):
        self._tickets: dict[str, Ticket] = {}
        self._users: dict[str, User] = {}

    async def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        return self._tickets.get(ticket_id)

    async def save_ticket(self, ticket: Ticket) -> Ticket:
        ticket.touch()
        self._tickets[ticket.id] = ticket
        return ticket

    async def list_tickets(self, user_id: Optional[str] = None) -> list[Ticket]:
        """Most recently updated first; all tickets when user_id is None."""
        tickets = [
            t for t in self._tickets.values()
            if user_id is None or t.user_id == user_id
        ]
        return sorted(tickets, key=lambda t: t.updated_at, reverse=True)

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def save_user(self, user: User) -> User:
        for existing in self._users.values():
            if existing.email == user.email and existing.id != user.id:
                raise DuplicateEmail(f"Email already registered: {user.email}")
        self._users[user.id] = user
        return user
