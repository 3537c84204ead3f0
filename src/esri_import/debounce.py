"""Trailing-edge debounce for map-move events.

Each trigger() restarts the timer; the callback runs once, ``delay`` seconds
after the last trigger, on a timer thread.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from loguru import logger


class Debouncer:
    """Runs ``callback`` once the triggers stop for ``delay`` seconds."""

    def __init__(self, delay: float, callback: Callable[..., Any]) -> None:
        self.delay = delay
        self._callback = callback
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def trigger(self, *args, **kwargs) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire, args, kwargs)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, *args, **kwargs) -> None:
        with self._lock:
            self._timer = None
        try:
            self._callback(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Debounced callback failed: {e}")

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None
