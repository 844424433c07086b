"""Tool-use id to comment id correlation."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class PendingToolCall:
    """A posted tool-use comment waiting for its result."""

    tool_use_id: str
    comment_id: int
    input_display: str
    tool_name: str
    tool_icon: str
    tool_use_raw: Any


class CommentCorrelator:
    """Map in-flight tool-use ids to the comment that announced them.

    Entries without a result stay for the lifetime of the session.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingToolCall] = {}
        self._lock = threading.Lock()

    def record(self, tool_use_id: str, pending: PendingToolCall) -> None:
        with self._lock:
            self._pending[tool_use_id] = pending

    def get(self, tool_use_id: str | None) -> PendingToolCall | None:
        if tool_use_id is None:
            return None
        with self._lock:
            return self._pending.get(tool_use_id)

    def consume(self, tool_use_id: str | None) -> PendingToolCall | None:
        if tool_use_id is None:
            return None
        with self._lock:
            return self._pending.pop(tool_use_id, None)

    def pending_ids(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, tool_use_id: object) -> bool:
        with self._lock:
            return tool_use_id in self._pending
