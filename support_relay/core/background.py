import asyncio
from typing import Any, Coroutine

from support_relay.logging import logger
from support_relay.utils.metrics import MetricsCollector


class BackgroundWriter:
    """
    Runs persistence writes without making the caller wait for them.

    A failed write is counted and logged; it never reaches the code that
    scheduled it, since the in-memory outcome has already been delivered.
    """

    def __init__(self) -> None:
        self._pending: set[asyncio.Task] = set()

    def schedule(
        self, coro: Coroutine[Any, Any, Any], description: str
    ) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning(f"No running event loop, skipped: {description}")
            return None

        task = loop.create_task(self._run(coro, description))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], description: str) -> None:
        try:
            await coro
        except Exception as ex:
            MetricsCollector.record_persistence_failure()
            logger.error(f"Background write failed ({description}): {ex}")

    async def flush(self) -> None:
        """Wait for every scheduled write (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._pending)
