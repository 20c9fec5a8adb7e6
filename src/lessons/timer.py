"""
Background lesson clock.

Evaluates elapsed_time conditions once per interval while lessons are active.
Runs in a daemon thread; stopping is idempotent.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from loguru import logger

if TYPE_CHECKING:
    from src.lessons.session import LessonSession


class StopHandle:
    """Callable that stops a background task. Safe to call more than once."""

    def __init__(self, stop: Callable[[], None], name: str = "task"):
        self._stop = stop
        self._lock = threading.Lock()
        self._stopped = False
        self.name = name

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __call__(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._stop()


@dataclass
class LessonClock:
    """
    Periodic elapsed-time checker.

    Usage:
        clock = LessonClock(session)
        stop = clock.start()
        # ... lessons run ...
        stop()
    """

    session: "LessonSession"
    interval_seconds: float = 1.0

    # Internal state
    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _handle: StopHandle | None = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> StopHandle:
        """Start ticking. Returns the existing handle if already running."""
        if self._handle is not None and not self._handle.stopped:
            logger.warning("Lesson clock already running")
            return self._handle

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="lesson-clock",
            daemon=True,
        )
        self._thread.start()
        self._handle = StopHandle(self._shutdown, name="lesson-clock")
        self.session.attach(self._handle)

        logger.debug("Lesson clock started (interval: {}s)", self.interval_seconds)
        return self._handle

    def _shutdown(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        logger.debug("Lesson clock stopped")

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval_seconds):
            self.session.tick()
