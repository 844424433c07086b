"""PR comment streaming, feedback and live update monitoring for agent sessions."""

from hive_mind.interactive.comments import CommentRenderer
from hive_mind.interactive.correlator import CommentCorrelator, PendingToolCall
from hive_mind.interactive.feedback import (
    BidirectionalFeedbackMonitor,
    FeedbackItem,
    format_feedback_message,
    is_system_comment,
)
from hive_mind.interactive.handler import InteractiveSessionHandler, SessionState
from hive_mind.interactive.live_updates import (
    LiveUpdates,
    LiveUpdatesMonitor,
    SnapshotState,
    format_updates_as_feedback,
)
from hive_mind.interactive.modes import (
    InteractiveOptions,
    is_bidirectional_mode_supported,
    is_interactive_mode_supported,
    resolve_interactive_options,
)
from hive_mind.interactive.poster import RateLimitedPoster

__all__ = [
    "BidirectionalFeedbackMonitor",
    "CommentCorrelator",
    "CommentRenderer",
    "FeedbackItem",
    "InteractiveOptions",
    "InteractiveSessionHandler",
    "LiveUpdates",
    "LiveUpdatesMonitor",
    "PendingToolCall",
    "RateLimitedPoster",
    "SessionState",
    "SnapshotState",
    "format_feedback_message",
    "format_updates_as_feedback",
    "is_bidirectional_mode_supported",
    "is_interactive_mode_supported",
    "resolve_interactive_options",
]
