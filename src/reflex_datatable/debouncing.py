"""Per-key debouncing for filter inputs.

Each key (filter id) has at most one pending task.  A new call for the
same key cancels that key's task and schedules a fresh one, so timers
never stack; other keys are unaffected.

Debounced calls always run on the owner's thread.  Inside a running
asyncio loop they are scheduled with ``loop.call_later``.  Without one a
timer thread only marks the call as ready; the owner runs it with
:meth:`FilterDebouncer.run_ready`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol

from reflex_datatable.config import DEBOUNCE_DELAY_MS

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


class FilterDebouncer:
    """Debounce callbacks keyed by filter id.

    Parameters
    ----------
    delay_ms:
        Quiet period before a pending call fires.
    scheduler:
        ``(delay_seconds, fn) -> handle-with-cancel()``.  Defaults to the
        running asyncio loop, else a timer thread that hands ``fn`` back
        through :meth:`run_ready`; tests inject a manual one.
    """

    def __init__(
        self,
        delay_ms: int = DEBOUNCE_DELAY_MS["search"],
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self._delay_s = delay_ms / 1000.0
        self._scheduler = scheduler or self._schedule
        self._pending: dict[str, Cancellable] = {}
        self._ready: deque[Callable[[], None]] = deque()
        self._lock = threading.RLock()

    def _schedule(self, delay_s: float, fn: Callable[[], None]) -> Cancellable:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(delay_s, self._mark_ready, args=(fn,))
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(delay_s, fn)

    def _mark_ready(self, fn: Callable[[], None]) -> None:
        with self._lock:
            self._ready.append(fn)

    def run_ready(self) -> int:
        """Run the calls whose timers fired on another thread.

        Returns:
            The number of ready calls taken from the queue.
        """
        with self._lock:
            ready = list(self._ready)
            self._ready.clear()
        for fn in ready:
            fn()
        return len(ready)

    @property
    def ready_count(self) -> int:
        with self._lock:
            return len(self._ready)

    def call(self, key: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Run ``fn(*args, **kwargs)`` after the delay unless *key* is re-triggered."""

        def _fire() -> None:
            with self._lock:
                if self._pending.get(key) is not handle_box[0]:
                    return
                del self._pending[key]
            fn(*args, **kwargs)

        handle_box: list[Cancellable | None] = [None]
        with self._lock:
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous.cancel()
                logger.debug("[DataTable] debounce restarted for %r", key)
            handle = self._scheduler(self._delay_s, _fire)
            handle_box[0] = handle
            self._pending[key] = handle

    def cancel(self, key: str) -> bool:
        with self._lock:
            handle = self._pending.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            handles = list(self._pending.values())
            self._pending.clear()
            self._ready.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)

    def pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    @property
    def pending_keys(self) -> list[str]:
        with self._lock:
            return list(self._pending)
