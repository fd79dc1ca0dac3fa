"""
Lifecycle - Scheduler.

============================================================
PURPOSE
============================================================
Owns the registry of deferred per-symbol timers.

REGISTRY:
    TimerKey(symbol_name, phase) -> pending asyncio TimerHandle

CONTRACT:
- schedule(message, delay): register the message to be dispatched
  once after delay seconds. A pending registration under the same
  key is cancelled and replaced (last writer wins).
- A delay <= 0 dispatches on the next loop iteration.
- A replaced timer never fires.
- A fired timer leaves the pending registry before its handler
  runs; later replacements cannot cancel it.

CONCURRENCY:
    Registry mutation has no await between cancel and insert, so it
    is atomic under the single-threaded event loop. Handlers run as
    separate tasks and may interleave at their await points.

DURABILITY:
    None. Pending work is rebuilt from the database on restart.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from core.exceptions import UnknownPhaseError

from .messages import Phase, TimerKey, TimerMessage


logger = logging.getLogger(__name__)


Handler = Callable[[TimerMessage], Awaitable[object]]


@dataclass
class _PendingTimer:
    message: TimerMessage
    handle: asyncio.TimerHandle


# ============================================================
# LIFECYCLE SCHEDULER
# ============================================================

class LifecycleScheduler:
    """
    Registry of named deferred timers dispatched by phase.
    """

    def __init__(self):
        self._handlers: Dict[Phase, Handler] = {}
        self._pending: Dict[TimerKey, _PendingTimer] = {}
        self._running: Dict[TimerKey, List[asyncio.Task]] = {}
        self._closed = False

    # --------------------------------------------------------
    # HANDLERS
    # --------------------------------------------------------

    def register_handler(self, phase: Phase, handler: Handler) -> None:
        """Route messages of phase to handler."""
        self._handlers[phase] = handler

    # --------------------------------------------------------
    # REGISTRY
    # --------------------------------------------------------

    def schedule(self, message: TimerMessage, delay_seconds: float) -> TimerKey:
        """
        Register message to be dispatched after delay_seconds.

        Replaces any pending registration with the same key.

        Raises:
            UnknownPhaseError: no handler for message.phase
        """
        if message.phase not in self._handlers:
            raise UnknownPhaseError(message.phase)
        if self._closed:
            logger.warning(f"Scheduler closed, dropping timer {message.key}")
            return message.key

        loop = asyncio.get_running_loop()
        key = message.key
        delay = max(0.0, float(delay_seconds))

        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.handle.cancel()

        handle = loop.call_later(delay, self._fire, message)
        self._pending[key] = _PendingTimer(message=message, handle=handle)

        if previous is not None:
            logger.info(f"Timer {key} replaced, fires in {delay:.1f}s")
        else:
            logger.info(f"Timer {key} scheduled, fires in {delay:.1f}s")
        return key

    def cancel(self, key: TimerKey) -> bool:
        """Cancel a pending timer. Running handlers are not affected."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.handle.cancel()
        logger.info(f"Timer {key} cancelled")
        return True

    def is_pending(self, key: TimerKey) -> bool:
        return key in self._pending

    def is_running(self, key: TimerKey) -> bool:
        return bool(self._running.get(key))

    def is_active(self, key: TimerKey) -> bool:
        """Pending or currently executing."""
        return self.is_pending(key) or self.is_running(key)

    def pending_keys(self) -> List[TimerKey]:
        return list(self._pending)

    def pending_message(self, key: TimerKey) -> Optional[TimerMessage]:
        pending = self._pending.get(key)
        return pending.message if pending else None

    def seconds_until(self, key: TimerKey) -> Optional[float]:
        """Remaining delay of a pending timer."""
        pending = self._pending.get(key)
        if pending is None:
            return None
        return pending.handle.when() - asyncio.get_running_loop().time()

    @property
    def running_count(self) -> int:
        return sum(len(tasks) for tasks in self._running.values())

    def __len__(self) -> int:
        return len(self._pending)

    # --------------------------------------------------------
    # DISPATCH
    # --------------------------------------------------------

    def _fire(self, message: TimerMessage) -> None:
        key = message.key
        pending = self._pending.get(key)
        if pending is not None and pending.message is message:
            del self._pending[key]

        task = asyncio.get_running_loop().create_task(
            self._dispatch(message), name=f"timer:{key}"
        )
        self._running.setdefault(key, []).append(task)
        task.add_done_callback(lambda t, k=key: self._forget(k, t))

    def _forget(self, key: TimerKey, task: asyncio.Task) -> None:
        tasks = self._running.get(key)
        if not tasks:
            return
        if task in tasks:
            tasks.remove(task)
        if not tasks:
            del self._running[key]

    async def _dispatch(self, message: TimerMessage) -> None:
        handler = self._handlers.get(message.phase)
        if handler is None:
            logger.error(f"Timer {message.key} fired without a handler")
            return

        logger.info(f"Timer {message.key} fired")
        try:
            await handler(message)
        except asyncio.CancelledError:
            logger.warning(f"Timer {message.key} handler cancelled")
            raise
        except Exception:
            logger.exception(f"Timer {message.key} handler failed")

    # --------------------------------------------------------
    # SHUTDOWN
    # --------------------------------------------------------

    async def shutdown(self, timeout: float = 10.0) -> None:
        """
        Cancel pending timers and wait for running handlers.

        Handlers still running after timeout are cancelled.
        """
        self._closed = True

        for key in list(self._pending):
            self.cancel(key)

        tasks = [task for group in self._running.values() for task in group]
        if not tasks:
            return

        logger.info(f"Waiting for {len(tasks)} running timer handler(s)")
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning(f"Cancelled {len(still_running)} timer handler(s) at shutdown")
