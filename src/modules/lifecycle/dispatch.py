"""
Dispatchers for the best-effort replacement search after a quote rejection.

The rejection never awaits the search: the dispatcher only schedules it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, Set

from src.config import settings
from src.config.constants import DispatchMode
from src.utils.context import get_correlation_id

logger = logging.getLogger(__name__)

ReplacementRunner = Callable[[str], Awaitable[Optional[str]]]


class ReplacementDispatcher(Protocol):
    def dispatch(self, order_id: str) -> None:
        """Schedule a replacement search for an order and return immediately."""
        ...


class BackgroundReplacementDispatcher:
    """
    Runs the replacement search as an in-process asyncio task.

    Task references are kept until completion; failures are logged by a
    done-callback and never reach the caller.
    """

    def __init__(self, runner: ReplacementRunner):
        self.runner = runner
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, order_id: str) -> None:
        task = asyncio.create_task(self.runner(order_id))
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, order_id))

    def _on_done(self, task: asyncio.Task, order_id: str) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Replacement search for order {order_id} was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Replacement search for order {order_id} failed: {exc}",
                extra={
                    "event": "replacement_search_failed",
                    "order_id": order_id,
                    "exception_type": type(exc).__name__,
                },
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled search to finish."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))
            await asyncio.sleep(0)


class CeleryReplacementDispatcher:
    """Sends the replacement search to the Celery ``replacements`` queue."""

    def dispatch(self, order_id: str) -> None:
        from src.modules.orchestration.tasks import find_replacement_provider

        result = find_replacement_provider.apply_async(
            kwargs={"order_id": order_id, "correlation_id": get_correlation_id()},
            queue="replacements",
        )
        logger.info(
            f"Replacement search for order {order_id} queued as task {result.id}",
            extra={"event": "replacement_search_queued", "order_id": order_id},
        )


def build_dispatcher(runner: ReplacementRunner) -> ReplacementDispatcher:
    """Dispatcher selected by ``replacement_dispatch_mode``."""
    mode = DispatchMode(settings.replacement_dispatch_mode)
    if mode == DispatchMode.CELERY:
        return CeleryReplacementDispatcher()
    return BackgroundReplacementDispatcher(runner)
