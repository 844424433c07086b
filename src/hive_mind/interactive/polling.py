"""Fixed-interval background polling thread."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class PollingLoop:
    """Call ``tick`` every ``interval_seconds`` on a daemon thread until stopped.

    ``stop`` sets the stop event before returning, so no new tick starts after it;
    a tick already in progress is allowed to finish. Each ``start`` gets its own
    stop event, and a restarted loop waits for a thread still finishing its last
    tick, so at most one tick runs at a time.
    """

    def __init__(
        self,
        *,
        name: str,
        interval_seconds: float,
        tick: Callable[[], None],
        join_timeout_seconds: float = 15.0,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._join_timeout = join_timeout_seconds
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._lingering: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._stop is not None and not self._stop.is_set()

    def start(self) -> bool:
        if self.is_running:
            return False
        previous, self._lingering = self._lingering, None
        if previous is not None and not previous.is_alive():
            previous = None
        stop_event = threading.Event()
        self._stop = stop_event
        self._thread = threading.Thread(
            target=self._loop,
            args=(stop_event, previous),
            daemon=True,
            name=self.name,
        )
        self._thread.start()
        return True

    def stop(self) -> bool:
        thread, stop_event = self._thread, self._stop
        if thread is None or stop_event is None:
            return False
        stop_event.set()
        self._thread = None
        if thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                logger.warning("%s still finishing a tick after stop", self.name)
                self._lingering = thread
        return True

    def _loop(self, stop_event: threading.Event, previous: threading.Thread | None) -> None:
        if previous is not None:
            previous.join()
        while not stop_event.wait(timeout=self.interval_seconds):
            try:
                self._tick()
            except Exception:
                logger.exception("%s tick failed", self.name)
