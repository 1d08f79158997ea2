"""
Maintenance Worker — Context Sweeps and Feedback Reports
=========================================================
Background housekeeping for the in-process assistant stores:

  - every CONTEXT_SWEEP_SECONDS (default 15 min): drop conversation
    contexts idle longer than the TTL
  - every FEEDBACK_REPORT_SECONDS (default 24 h): log the helpful
    percentage over all recorded feedback

The worker shares the store instances the responder writes to; embed it in
the same event loop as the ticket service.

Run:
  python -m workers.maintenance
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Callable, Optional

from assistant.config import Settings, configure_logging
from assistant.context_store import ConversationContextStore
from assistant.feedback import FeedbackStore, FeedbackSummary

logger = logging.getLogger("worker.maintenance")


class MaintenanceWorker:
    """Runs periodic sweeps and reports against shared stores.

    Lifecycle:
      worker = MaintenanceWorker(context_store, feedback_store)
      await worker.start()
      await worker.run()     # Blocking until stop() or cancellation
      await worker.stop()
    """

    def __init__(
        self,
        context_store: ConversationContextStore,
        feedback_store: FeedbackStore,
        sweep_interval: float = 15 * 60,
        report_interval: float = 24 * 60 * 60,
    ):
        if sweep_interval <= 0 or report_interval <= 0:
            raise ValueError("Intervals must be positive")
        self.context_store = context_store
        self.feedback_store = feedback_store
        self.sweep_interval = sweep_interval
        self.report_interval = report_interval
        self._running = False
        self._sweeps = 0
        self._reports = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        context_store: ConversationContextStore,
        feedback_store: FeedbackStore,
    ) -> "MaintenanceWorker":
        return cls(
            context_store,
            feedback_store,
            sweep_interval=settings.context_sweep_seconds,
            report_interval=settings.feedback_report_seconds,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True
        logger.info(
            f"Maintenance worker started: sweep every {self.sweep_interval:.0f}s, "
            f"report every {self.report_interval:.0f}s"
        )

    async def stop(self) -> None:
        self._running = False
        logger.info(f"Maintenance worker stopped after {self._sweeps} sweeps, {self._reports} reports")

    async def run(self) -> None:
        """Run both periodic loops until stopped."""
        if not self._running:
            raise RuntimeError("Worker not started. Call start() first.")

        tasks = [
            asyncio.create_task(self._every(self.sweep_interval, self.sweep_contexts)),
            asyncio.create_task(self._every(self.report_interval, self.report_feedback)),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Jobs ─────────────────────────────────────────────────────────

    def sweep_contexts(self) -> int:
        removed = self.context_store.sweep()
        self._sweeps += 1
        logger.debug(f"Context sweep #{self._sweeps}: {removed} removed, {len(self.context_store)} active")
        return removed

    def report_feedback(self) -> FeedbackSummary:
        summary = self.feedback_store.summarize()
        self._reports += 1
        logger.info(
            f"Feedback report: {summary.count} responses, "
            f"{summary.helpful_count} helpful ({summary.helpful_percentage}%)"
        )
        return summary

    async def _every(self, interval: float, job: Callable[[], object]) -> None:
        while self._running:
            await asyncio.sleep(interval)
            if not self._running:
                break
            try:
                job()
            except Exception as e:
                logger.error(f"Maintenance job {job.__name__} failed: {e}", exc_info=True)


# ── Entrypoint ──────────────────────────────────────────────────────────


async def main(settings: Optional[Settings] = None):
    """Run the assistant runtime until SIGINT/SIGTERM.

    The worker sweeps the stores the runtime's responder writes to.
    """
    from workers.runtime import lifespan

    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            pass

    async with lifespan(settings) as runtime:
        waiter = asyncio.create_task(shutdown_event.wait())
        try:
            done, _ = await asyncio.wait(
                [runtime.worker_task, waiter],
                return_when=asyncio.FIRST_COMPLETED,
            )
            task = runtime.worker_task
            if task in done and not task.cancelled() and task.exception():
                exc = task.exception()
                logger.error(f"Maintenance worker error: {exc}", exc_info=exc)
        finally:
            waiter.cancel()
            runtime.worker.report_feedback()

    logger.info("Maintenance worker shut down")


if __name__ == "__main__":
    asyncio.run(main())
