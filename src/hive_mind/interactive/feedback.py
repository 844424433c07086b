"""Human PR comments queued as feedback for the running agent."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass

from hive_mind.config import FeedbackSettings
from hive_mind.github.base import GitHubError, IssueComment, IssueTracker
from hive_mind.interactive.polling import PollingLoop

logger = logging.getLogger(__name__)

FEEDBACK_START_MARKER = "[USER FEEDBACK FROM PR COMMENT]"
FEEDBACK_END_MARKER = "[END OF USER FEEDBACK - Please address this feedback in your current work]"

SYSTEM_COMMENT_SIGNATURES: tuple[str, ...] = (
    "## 🚀 Session Started",
    "## 💬 Assistant Response",
    "## 💻 Tool: ",
    "## 📝 Tool: ",
    "## 📖 Tool: ",
    "## ✏️ Tool: ",
    "## 🔍 Tool: ",
    "## 🔎 Tool: ",
    "## 🌐 Tool: ",
    "## 📋 Tool: ",
    "## 🎯 Tool: ",
    "## 📓 Tool: ",
    "## 🔧 Tool: ",
    "## ✅ Tool Result:",
    "## ❌ Tool Result:",
    "## ✅ Session Complete",
    "## ❌ Session Failed",
    "## ❓ Unrecognized Event:",
    "📄 Raw JSON",
    "🤖 Generated with [Claude Code]",
    "🤖 AI-Powered Solution Draft",
    "*This PR was created automatically by the AI issue solver*",
)


def is_system_comment(body: object) -> bool:
    """True for comments produced by the session itself or by the solver."""

    if not isinstance(body, str) or not body:
        return False
    return any(signature in body for signature in SYSTEM_COMMENT_SIGNATURES)


def user_message(text: str) -> str:
    """One stream-json line carrying ``text`` as a user turn."""

    return json.dumps(
        {
            "type": "user",
            "message": {"role": "user", "content": [{"type": "text", "text": text}]},
        },
        ensure_ascii=False,
    )


def format_feedback_message(feedback_text: str) -> str:
    return user_message(f"{FEEDBACK_START_MARKER}\n\n{feedback_text}\n\n{FEEDBACK_END_MARKER}")


@dataclass(slots=True, frozen=True)
class FeedbackItem:
    comment_id: int
    author: str
    body: str
    created_at: str
    message: str


@dataclass(slots=True, frozen=True)
class FeedbackMonitorState:
    is_monitoring: bool
    queue_length: int
    seen_comment_count: int
    total_comments_processed: int
    total_feedback_queued: int
    total_feedback_dropped: int


class BidirectionalFeedbackMonitor:
    """Poll PR comments and queue new human ones as agent input.

    Comments are considered once: every id that has been looked at goes into a
    seen-set that never shrinks. When the queue is full new feedback is dropped.
    """

    def __init__(
        self,
        *,
        tracker: IssueTracker | None,
        repo: str | None,
        pr_number: int | None,
        settings: FeedbackSettings | None = None,
    ) -> None:
        self._tracker = tracker
        self._repo = repo
        self._pr_number = pr_number
        self._settings = settings or FeedbackSettings()
        self._lock = threading.Lock()
        self._queue: deque[FeedbackItem] = deque()
        self._seen: set[int] = set()
        self._total_processed = 0
        self._total_queued = 0
        self._total_dropped = 0
        self._loop = PollingLoop(
            name="feedback-monitor",
            interval_seconds=self.poll_interval_seconds,
            tick=self.check_for_new_comments,
        )

    @property
    def poll_interval_seconds(self) -> float:
        return max(self._settings.poll_interval_seconds, self._settings.min_poll_interval_seconds)

    @property
    def is_monitoring(self) -> bool:
        return self._loop.is_running

    def start(self) -> bool:
        """Check once immediately, then keep polling in the background."""

        if self.is_monitoring:
            logger.debug("Feedback monitor already running")
            return False
        if not self._has_target():
            logger.debug("Feedback monitor not started: missing PR info")
            return False
        self.check_for_new_comments()
        self._loop.start()
        logger.info(
            "Monitoring PR #%s for feedback every %.0fs",
            self._pr_number,
            self.poll_interval_seconds,
        )
        return True

    def stop(self) -> bool:
        if not self._loop.stop():
            return False
        state = self.get_state()
        logger.info(
            "Feedback monitor stopped (processed %d comments, queued %d feedback)",
            state.total_comments_processed,
            state.total_feedback_queued,
        )
        return True

    def check_for_new_comments(self) -> int:
        """Fetch comments once and queue unseen human ones; return how many were queued."""

        comments = self._fetch_comments()
        queued = 0
        with self._lock:
            for comment in sorted(comments, key=lambda item: item.id):
                if comment.id in self._seen:
                    continue
                self._seen.add(comment.id)
                if is_system_comment(comment.body):
                    continue
                self._total_processed += 1
                if len(self._queue) >= self._settings.max_queue_size:
                    self._total_dropped += 1
                    logger.warning("Feedback queue full, dropping comment #%s", comment.id)
                    continue
                self._queue.append(
                    FeedbackItem(
                        comment_id=comment.id,
                        author=comment.author,
                        body=comment.body,
                        created_at=comment.created_at,
                        message=format_feedback_message(comment.body),
                    ),
                )
                self._total_queued += 1
                queued += 1
                logger.info("Queued feedback from @%s (comment #%s)", comment.author, comment.id)
        return queued

    def peek(self) -> FeedbackItem | None:
        with self._lock:
            return self._queue[0] if self._queue else None

    def pop(self) -> FeedbackItem | None:
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def get_all(self) -> list[FeedbackItem]:
        with self._lock:
            return list(self._queue)

    def has_feedback(self) -> bool:
        with self._lock:
            return bool(self._queue)

    def feedback_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def clear(self) -> None:
        with self._lock:
            self._queue.clear()

    def mark_processed(self, comment_id: int) -> None:
        with self._lock:
            self._seen.add(comment_id)

    def initialize_with_existing(self, comment_ids: Iterable[int]) -> None:
        with self._lock:
            self._seen.update(comment_ids)

    def initialize_from_current_comments(self) -> int:
        """Mark every comment already on the PR as seen so only new ones become feedback."""

        comments = self._fetch_comments()
        self.initialize_with_existing(comment.id for comment in comments)
        logger.debug("Feedback monitor initialized with %d existing comments", len(comments))
        return len(comments)

    def get_state(self) -> FeedbackMonitorState:
        with self._lock:
            return FeedbackMonitorState(
                is_monitoring=self.is_monitoring,
                queue_length=len(self._queue),
                seen_comment_count=len(self._seen),
                total_comments_processed=self._total_processed,
                total_feedback_queued=self._total_queued,
                total_feedback_dropped=self._total_dropped,
            )

    def _has_target(self) -> bool:
        return self._tracker is not None and bool(self._repo) and self._pr_number is not None

    def _fetch_comments(self) -> list[IssueComment]:
        if not self._has_target() or self._tracker is None or self._pr_number is None:
            logger.debug("Cannot fetch comments: missing PR info")
            return []
        try:
            return self._tracker.list_comments(self._pr_number)
        except GitHubError as error:
            logger.debug("Failed to fetch PR comments: %s", error)
            return []
