"""Wait for a task to reach a terminal status."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from loguru import logger

from pinecall.errors import TaskTimeoutError
from pinecall.mcp.types import Task

DEFAULT_POLL_INTERVAL_MS = 5000

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class StatusSource(Protocol):
    async def fetch_status(self, task_id: str) -> Task: ...


class TaskPoller:
    """Polls ``fetch_status`` until the task is terminal or the wait budget is spent.

    Ordering is poll-after-sleep: every iteration sleeps one interval before it
    checks status, so the first check lands no sooner than one interval after
    submission. The wait budget counts scheduled sleep: a check runs when its
    sleep still fits in ``max_wait_ms`` and the real elapsed time has not
    already reached it.
    """

    def __init__(
        self,
        source: StatusSource,
        *,
        default_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._source = source
        self._default_interval_ms = default_interval_ms
        self._sleep = sleep
        self._clock = clock

    async def wait(self, task_id: str, *, max_wait_ms: int, poll_interval_ms: int | None = None) -> Task:
        interval_ms = self._interval(poll_interval_ms, self._default_interval_ms)
        started = self._clock()
        scheduled_ms = 0
        polls = 0

        while scheduled_ms + interval_ms <= max_wait_ms and self._elapsed_ms(started) < max_wait_ms:
            await self._sleep(interval_ms / 1000)
            scheduled_ms += interval_ms
            task = await self._source.fetch_status(task_id)
            polls += 1
            logger.debug("task.poll task_id={} status={} polls={}", task_id, task.status, polls)
            if task.is_terminal:
                logger.info("task.terminal task_id={} status={} polls={}", task_id, task.status, polls)
                return task
            interval_ms = self._interval(task.poll_interval, interval_ms)

        logger.warning("task.timeout task_id={} max_wait_ms={} polls={}", task_id, max_wait_ms, polls)
        raise TaskTimeoutError(task_id, max_wait_ms)

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock() - started) * 1000

    @staticmethod
    def _interval(hint_ms: int | None, fallback_ms: int) -> int:
        if hint_ms is not None and hint_ms > 0:
            return hint_ms
        return fallback_ms
