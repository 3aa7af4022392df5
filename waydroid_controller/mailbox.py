"""Cross-thread result delivery onto the controller's event loop.

Background workers never touch shared state. They hand their results to a
``ResultMailbox``, which schedules a handler on the loop thread. Handlers
run one at a time, so everything they mutate needs no further locking.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable

from waydroid_controller.exceptions import record_error
from waydroid_controller.logging_config import log_exception

logger = logging.getLogger(__name__)


class ResultMailbox:
    """Single-consumer mailbox bound to one asyncio loop.

    ``post()`` may be called from any thread. Each posted handler runs
    exactly once on the loop thread. No ordering is promised between items
    posted by different workers.

    Attributes:
        loop: The loop that owns all shared controller state.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        """Initialize the mailbox.

        Args:
            loop: The event loop handlers are delivered to.
        """
        self.loop = loop
        self._pending = 0
        self._delivered = 0
        self._lock = threading.Lock()
        self._closed = False
        # Set on the loop thread whenever the last pending handler has run
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def for_running_loop(cls) -> ResultMailbox:
        """Create a mailbox for the loop running in the current thread."""
        return cls(asyncio.get_running_loop())

    @property
    def pending(self) -> int:
        """Number of posted handlers not yet run."""
        with self._lock:
            return self._pending

    @property
    def delivered(self) -> int:
        """Number of handlers run so far."""
        return self._delivered

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, handler: Callable[..., Any], *args: Any) -> bool:
        """Schedule ``handler(*args)`` on the loop thread.

        Args:
            handler: Plain (non-async) callable to run on the loop thread.
            *args: Positional arguments for the handler.

        Returns:
            True if the item was scheduled, False if the mailbox is closed.
        """
        with self._lock:
            if self._closed:
                logger.warning(
                    "Dropping %s: mailbox closed", getattr(handler, "__name__", handler)
                )
                return False
            self._pending += 1

        try:
            self.loop.call_soon_threadsafe(self._deliver, handler, args)
        except RuntimeError:
            # Loop already closed
            with self._lock:
                self._pending -= 1
                self._closed = True
            logger.warning("Event loop closed, result dropped")
            return False
        return True

    def _deliver(self, handler: Callable[..., Any], args: tuple[Any, ...]) -> None:
        """Run one posted handler on the loop thread."""
        try:
            handler(*args)
        except Exception as e:
            log_exception(
                logger, e, f"Mailbox handler {getattr(handler, '__name__', handler)} failed"
            )
            record_error(e)
        finally:
            with self._lock:
                self._pending -= 1
                idle = self._pending == 0
            self._delivered += 1
            if idle:
                self._idle.set()

    async def join(self) -> None:
        """Wait until every posted handler has run."""
        while self.pending:
            self._idle.clear()
            await self._idle.wait()

    def close(self) -> None:
        """Stop accepting new items; already scheduled ones still run."""
        with self._lock:
            self._closed = True
