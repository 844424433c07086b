"""Rate-limited delivery of PR comments."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from hive_mind.github.base import GitHubError, IssueTracker

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 5.0


@dataclass(slots=True, frozen=True)
class PendingWrite:
    """A comment body held back by the cooldown."""

    body: str
    enqueued_at: float


class RateLimitedPoster:
    """Post comments to one PR no faster than ``min_interval_seconds`` apart.

    Writes leave in submission order: once anything is queued, later posts queue
    behind it even if the cooldown has elapsed. Edits skip the queue but still
    count as writes for the cooldown. Delivery is single-attempt; failures are
    logged and dropped.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        tracker: IssueTracker,
        number: int,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._tracker = tracker
        self._number = number
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._queue: deque[PendingWrite] = deque()
        self._last_write_at: float | None = None
        self._draining = False
        self._drain_thread: threading.Thread | None = None
        self.posted = 0
        self.edited = 0
        self.failed = 0

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def last_write_at(self) -> float | None:
        return self._last_write_at

    @property
    def is_draining(self) -> bool:
        return self._draining

    def submit(self, body: str) -> int | None:
        """Post now and return the new comment id, or queue and return None."""

        with self._lock:
            if self._queue or self._cooldown_remaining() > 0:
                self._queue.append(PendingWrite(body=body, enqueued_at=self._clock()))
                logger.debug("Comment queued (%d pending)", len(self._queue))
                return None
            return self._post(body)

    def edit(self, comment_id: int, body: str) -> bool:
        with self._lock:
            try:
                self._tracker.edit_comment(comment_id, body)
            except GitHubError as error:
                self.failed += 1
                logger.warning("Failed to edit comment %s: %s", comment_id, error)
                return False
            finally:
                self._last_write_at = self._clock()
            self.edited += 1
            return True

    def drain(self, *, wait: bool = True) -> int:
        """Send queued comments oldest first and return how many were sent.

        With ``wait`` the cooldown is slept out until the queue is empty; without
        it only writes that are already due go out. Concurrent calls return 0.
        """

        with self._lock:
            if self._draining:
                return 0
            self._draining = True
        sent = 0
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        break
                    remaining = self._cooldown_remaining()
                    if remaining <= 0:
                        pending = self._queue.popleft()
                        self._post(pending.body)
                        sent += 1
                        continue
                if not wait:
                    break
                self._sleep(remaining)
        finally:
            with self._lock:
                self._draining = False
        return sent

    def drain_in_background(self) -> bool:
        """Start a daemon drain thread unless the queue is empty or a drain is running."""

        with self._lock:
            if not self._queue or self._draining:
                return False
            if self._drain_thread is not None and self._drain_thread.is_alive():
                return False
            self._drain_thread = threading.Thread(
                target=self.drain,
                daemon=True,
                name="comment-drain",
            )
            self._drain_thread.start()
        return True

    def flush(self) -> int:
        """Wait for a background drain, then send everything still queued."""

        thread = self._drain_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        sent = self.drain(wait=True)
        if sent:
            logger.info("Flushed %d queued comment(s)", sent)
        return sent

    def _cooldown_remaining(self) -> float:
        if self._last_write_at is None:
            return 0.0
        return self._min_interval - (self._clock() - self._last_write_at)

    def _post(self, body: str) -> int | None:
        try:
            posted = self._tracker.post_comment(self._number, body)
        except GitHubError as error:
            self.failed += 1
            logger.warning("Failed to post comment on #%s: %s", self._number, error)
            return None
        finally:
            self._last_write_at = self._clock()
        self.posted += 1
        if posted is None or posted.id is None:
            logger.debug("Posted comment on #%s without a recoverable id", self._number)
            return None
        return posted.id
