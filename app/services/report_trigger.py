"""One-way notification that a response is ready for report generation.

``emit`` schedules delivery and returns immediately. Delivery runs as a
background task; its outcome is logged and never reaches the submitter.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportRequested:
    """Message emitted after a response is stored."""

    response_id: str
    assessment_id: str
    user_id: str


ReportHandler = Callable[[ReportRequested], Awaitable[None]]


async def log_report_request(event: ReportRequested) -> None:
    """Default handler until a report generation service is wired in."""
    logger.info(
        f"Report generation requested for response {event.response_id} "
        f"(assessment {event.assessment_id})"
    )


class ReportTrigger:
    def __init__(self, handlers: Optional[List[ReportHandler]] = None):
        self._handlers: List[ReportHandler] = list(handlers or [log_report_request])
        # Strong references so pending tasks are not garbage collected
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, handler: ReportHandler) -> None:
        self._handlers.append(handler)

    def emit(self, event: ReportRequested) -> None:
        for handler in self._handlers:
            task = asyncio.create_task(self._deliver(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: ReportHandler, event: ReportRequested) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(
                f"Report trigger handler failed for response {event.response_id}"
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global trigger instance
_report_trigger: Optional[ReportTrigger] = None


def get_report_trigger() -> ReportTrigger:
    """Get or create ReportTrigger instance."""
    global _report_trigger
    if _report_trigger is None:
        _report_trigger = ReportTrigger()
    return _report_trigger
