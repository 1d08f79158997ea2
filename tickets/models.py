"""
Ticket Models — Tickets, Messages and Users
============================================
Pydantic models for the records the assistant reads and writes. Enumerated
fields (status, priority, category, role, language) are Literal types, so a
ticket can never carry a value outside the fixed sets.

Messages are frozen and only ever appended to a ticket.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

TicketStatus = Literal["open", "in_progress", "resolved", "closed"]
TicketPriority = Literal["low", "medium", "high", "urgent"]
TicketCategory = Literal["general", "appointment", "prescription", "billing", "technical", "other"]
TicketLanguage = Literal["en", "es", "fr", "zh", "ar", "auto"]
UserRole = Literal["patient", "healthcare_provider", "admin"]

STAFF_ROLES = {"healthcare_provider", "admin"}

_PBKDF2_ITERATIONS = 260_000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ── Passwords ────────────────────────────────────────────────────────────


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """PBKDF2-SHA256 hash in the form pbkdf2_sha256$iterations$salt$hex."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


# ── Records ──────────────────────────────────────────────────────────────


class Message(BaseModel):
    """One entry in a ticket thread. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    content: str = Field(min_length=1)
    is_ai: bool = False
    sender_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utc_now)

    def as_history_item(self) -> dict:
        return {"content": self.content, "is_ai": self.is_ai}


class Ticket(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    status: TicketStatus = "open"
    priority: TicketPriority = "medium"
    category: TicketCategory
    user_id: str
    assigned_to: Optional[str] = None
    messages: list[Message] = Field(default_factory=list)
    ai_responded: bool = False
    ai_response: str = ""
    language: TicketLanguage = "auto"
    feedback_provided: bool = False
    feedback_rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback_comments: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    def append_message(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def touch(self) -> None:
        self.updated_at = _utc_now()

    def history(self) -> list[dict]:
        """Thread as [{content, is_ai}] for the remote model."""
        return [m.as_history_item() for m in self.messages]

    def can_view(self, user: "User") -> bool:
        return (
            self.user_id == user.id
            or self.assigned_to == user.id
            or user.role in STAFF_ROLES
        )

    def can_post(self, user: "User") -> bool:
        return self.user_id == user.id or self.assigned_to == user.id or user.role == "admin"


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    email: EmailStr
    password_hash: str
    role: UserRole = "patient"
    preferred_language: Optional[TicketLanguage] = None
    created_at: datetime = Field(default_factory=_utc_now)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.lower()

    @classmethod
    def create(cls, name: str, email: str, password: str, **fields) -> "User":
        """Build a user, hashing the password before it touches the model."""
        if not password:
            raise ValueError("Password must not be empty")
        return cls(name=name, email=email, password_hash=hash_password(password), **fields)

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password_hash)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
