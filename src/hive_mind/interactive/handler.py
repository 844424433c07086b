"""Mirror an agent's event stream into PR comments."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from hive_mind.config import InteractiveSettings
from hive_mind.github.base import IssueTracker
from hive_mind.interactive.comments import CommentRenderer, ToolUseDisplay
from hive_mind.interactive.correlator import CommentCorrelator, PendingToolCall
from hive_mind.interactive.events import (
    AssistantText,
    Event,
    SessionResult,
    SystemInit,
    ToolResult,
    ToolUse,
    UnrecognizedEvent,
    classify_event,
    parse_event_line,
)
from hive_mind.interactive.poster import RateLimitedPoster
from hive_mind.interactive.rendering import TruncationPolicy

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SessionState:
    """Point-in-time view of an interactive session."""

    session_id: str | None
    message_count: int
    tool_use_count: int
    tool_result_count: int
    unrecognized_count: int
    pending_tool_calls: int
    queued_writes: int
    draining: bool
    last_write_at: float | None
    comments_posted: int
    comments_edited: int
    write_failures: int


class InteractiveSessionHandler:
    """Turn each agent event into a PR comment, merging tool results into their tool-use comment.

    Without a PR number or repository every event is still classified and
    counted, but nothing is written.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        tracker: IssueTracker | None,
        repo: str | None,
        pr_number: int | None,
        settings: InteractiveSettings | None = None,
        renderer: CommentRenderer | None = None,
        poster: RateLimitedPoster | None = None,
        correlator: CommentCorrelator | None = None,
    ) -> None:
        self._settings = settings or InteractiveSettings()
        self._repo = repo
        self._pr_number = pr_number
        self._renderer = renderer or CommentRenderer(
            policy=TruncationPolicy(
                max_lines=self._settings.max_lines_before_truncation,
                keep_start=self._settings.lines_to_keep_start,
                keep_end=self._settings.lines_to_keep_end,
            ),
        )
        self._correlator = correlator or CommentCorrelator()
        self._poster: RateLimitedPoster | None = poster
        if self._poster is None and tracker is not None and pr_number is not None:
            self._poster = RateLimitedPoster(
                tracker=tracker,
                number=pr_number,
                min_interval_seconds=self._settings.min_comment_interval_seconds,
            )
        self._lock = threading.Lock()
        self._session_id: str | None = None
        self._message_count = 0
        self._tool_use_count = 0
        self._tool_result_count = 0
        self._unrecognized_count = 0
        self._missing_target_logged = False

    @property
    def can_write(self) -> bool:
        return bool(self._repo) and self._pr_number is not None and self._poster is not None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def process_line(self, line: str | bytes) -> list[Event]:
        return self._handle(parse_event_line(line))

    def process_event(self, data: Any) -> list[Event]:
        """Handle one decoded stream-json event and return what it was classified as."""

        return self._handle(classify_event(data))

    def flush(self) -> int:
        """Send every queued comment, waiting out the cooldown between them."""

        orphans = self._correlator.pending_ids()
        if orphans:
            logger.info(
                "%d tool call(s) never received a result: %s",
                len(orphans),
                ", ".join(orphans),
            )
        if self._poster is None:
            return 0
        return self._poster.flush()

    def get_state(self) -> SessionState:
        poster = self._poster
        with self._lock:
            return SessionState(
                session_id=self._session_id,
                message_count=self._message_count,
                tool_use_count=self._tool_use_count,
                tool_result_count=self._tool_result_count,
                unrecognized_count=self._unrecognized_count,
                pending_tool_calls=len(self._correlator),
                queued_writes=poster.queue_size if poster else 0,
                draining=poster.is_draining if poster else False,
                last_write_at=poster.last_write_at if poster else None,
                comments_posted=poster.posted if poster else 0,
                comments_edited=poster.edited if poster else 0,
                write_failures=poster.failed if poster else 0,
            )

    def _handle(self, events: list[Event]) -> list[Event]:
        with self._lock:
            for event in events:
                self._dispatch(event)
        self._drain()
        return events

    def _dispatch(self, event: Event) -> None:
        if isinstance(event, SystemInit):
            self._session_id = event.session_id
            logger.debug("Session initialized (%s)", event.session_id)
            self._write(self._renderer.render_session_started(event))
        elif isinstance(event, AssistantText):
            self._message_count += 1
            logger.debug("Assistant text (%d chars)", len(event.text))
            self._write(self._renderer.render_assistant_text(event))
        elif isinstance(event, ToolUse):
            self._tool_use_count += 1
            logger.debug("Tool use %s (%s)", event.name, event.tool_use_id)
            self._on_tool_use(event)
        elif isinstance(event, ToolResult):
            self._tool_result_count += 1
            logger.debug("Tool result for %s (%d chars)", event.tool_use_id, len(event.content))
            self._on_tool_result(event)
        elif isinstance(event, SessionResult):
            logger.debug("Session %s", "failed" if event.is_error else "completed")
            self._write(self._renderer.render_session_result(event))
        elif isinstance(event, UnrecognizedEvent):
            self._unrecognized_count += 1
            logger.debug("Unrecognized event: %s", event.event_type)
            self._write(self._renderer.render_unrecognized(event))

    def _on_tool_use(self, event: ToolUse) -> None:
        display = self._renderer.describe_tool_use(event)
        comment_id = self._write(self._renderer.render_tool_use(event, display))
        if comment_id is None or event.tool_use_id is None:
            return
        self._correlator.record(
            event.tool_use_id,
            PendingToolCall(
                tool_use_id=event.tool_use_id,
                comment_id=comment_id,
                input_display=display.input_display,
                tool_name=display.tool_name,
                tool_icon=display.tool_icon,
                tool_use_raw=event.raw,
            ),
        )

    def _on_tool_result(self, event: ToolResult) -> None:
        pending = self._correlator.get(event.tool_use_id)
        if pending is None:
            self._write(self._renderer.render_tool_result(event))
            return
        display = ToolUseDisplay(
            tool_name=pending.tool_name,
            tool_icon=pending.tool_icon,
            input_display=pending.input_display,
        )
        merged = self._renderer.render_merged_tool_call(display, pending.tool_use_raw, event)
        if self.can_write and self._poster is not None and self._poster.edit(pending.comment_id, merged):
            self._correlator.consume(event.tool_use_id)
            return
        logger.debug("Merge into comment %s failed; posting result separately", pending.comment_id)
        self._write(self._renderer.render_tool_result(event, display))

    def _write(self, body: str) -> int | None:
        if not self.can_write or self._poster is None:
            if not self._missing_target_logged:
                logger.debug("No pull request or repository configured; comments are not posted")
                self._missing_target_logged = True
            return None
        return self._poster.submit(body)

    def _drain(self) -> None:
        if self._poster is None:
            return
        if self._settings.background_drain:
            self._poster.drain_in_background()
        else:
            self._poster.drain(wait=False)
