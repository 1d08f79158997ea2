"""
Assistant Runtime — Process Wiring
===================================
Builds the shared object graph once per process:

    ConversationContextStore ─┬─ AssistantResponder ── TicketService
    FeedbackStore ────────────┼──────────────────────── TicketService
                              └─ MaintenanceWorker

so the worker sweeps and reports on the same stores the replies write to.

Usage:
    async with lifespan(Settings.from_env()) as runtime:
        ticket = await runtime.service.create_ticket(...)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional

from assistant.config import Settings
from assistant.context_store import ConversationContextStore
from assistant.feedback import FeedbackStore
from assistant.responder import AssistantResponder
from tickets.repository import InMemoryTicketRepository, TicketRepository
from tickets.service import TicketService

from workers.maintenance import MaintenanceWorker

logger = logging.getLogger("worker.runtime")


@dataclass
class AssistantRuntime:
    settings: Settings
    context_store: ConversationContextStore
    feedback_store: FeedbackStore
    responder: AssistantResponder
    repository: TicketRepository
    service: TicketService
    worker: MaintenanceWorker
    worker_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @classmethod
    def build(
        cls,
        settings: Settings,
        repository: Optional[TicketRepository] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "AssistantRuntime":
        context_store = ConversationContextStore(
            max_entries=settings.context_max_entries,
            ttl_seconds=settings.context_ttl_seconds,
            clock=clock,
        )
        feedback_store = FeedbackStore()
        responder = AssistantResponder.from_settings(settings, context_store=context_store)
        repository = repository or InMemoryTicketRepository()

        return cls(
            settings=settings,
            context_store=context_store,
            feedback_store=feedback_store,
            responder=responder,
            repository=repository,
            service=TicketService(repository, responder, feedback_store),
            worker=MaintenanceWorker.from_settings(settings, context_store, feedback_store),
        )

    async def start(self) -> None:
        await self.worker.start()
        self.worker_task = asyncio.create_task(self.worker.run(), name="maintenance-worker")
        logger.info("Assistant runtime started")

    async def stop(self) -> None:
        """Cancel pending AI replies, then stop the worker."""
        await self.service.shutdown()
        await self.worker.stop()
        if self.worker_task:
            self.worker_task.cancel()
            await asyncio.gather(self.worker_task, return_exceptions=True)
            self.worker_task = None
        logger.info("Assistant runtime stopped")


@asynccontextmanager
async def lifespan(
    settings: Settings,
    repository: Optional[TicketRepository] = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[AssistantRuntime]:
    """Build and start the runtime; always stop it on exit."""
    runtime = AssistantRuntime.build(settings, repository=repository, clock=clock)
    await runtime.start()
    try:
        yield runtime
    finally:
        await runtime.stop()
