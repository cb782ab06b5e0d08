"""
Single mutation context.

Location and search collaborators may deliver results from background threads or
tasks. They never touch core state directly: they `post()` a callback here, and the
owning context runs callbacks in FIFO order via `drain()`.

Usage:
- tests and synchronous hosts call `drain()` explicitly;
- asyncio hosts build the context with `MutationContext.for_loop(loop)` so every
  `post()` schedules a drain on that loop.
"""

from __future__ import annotations

import asyncio
import logging
import queue
from typing import Any, Callable

logger = logging.getLogger(__name__)


class MutationContext:
    """Bounded, thread-safe queue of callbacks drained by one owner."""

    def __init__(
        self,
        *,
        maxsize: int = 256,
        notify: Callable[[], None] | None = None,
    ):
        self._queue: queue.Queue[tuple[Callable[..., Any], tuple[Any, ...]]] = queue.Queue(
            maxsize=maxsize
        )
        self._notify = notify
        self._dropped = 0

    @classmethod
    def for_loop(cls, loop: asyncio.AbstractEventLoop, *, maxsize: int = 256) -> "MutationContext":
        """Create a context that drains itself on `loop`."""
        ctx = cls(maxsize=maxsize)
        ctx._notify = lambda: loop.call_soon_threadsafe(ctx.drain)
        return ctx

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        return self._dropped

    def post(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Enqueue `fn(*args)`; safe from any thread.

        Returns False when the queue is full and the callback was dropped.
        """
        try:
            self._queue.put_nowait((fn, args))
        except queue.Full:
            self._dropped += 1
            logger.warning("Mutation queue full; dropped callback %r", fn)
            return False
        if self._notify is not None:
            self._notify()
        return True

    def drain(self) -> int:
        """Run every pending callback on the calling thread; returns how many ran.

        A callback that raises is logged and counted; later callbacks still run.
        """
        ran = 0
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return ran
            try:
                fn(*args)
            except Exception:
                logger.exception("Mutation callback %r failed", fn)
            ran += 1
