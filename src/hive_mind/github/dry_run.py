"""In-memory issue tracker that records writes instead of sending them."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from hive_mind.github.base import IssueComment, PostedComment, TrackedEntity

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RecordedWrite:
    """One post or edit captured by the dry-run tracker."""

    action: str
    comment_id: int
    number: int | None
    body: str


@dataclass(slots=True)
class DryRunIssueTracker:
    """Keep comments in memory and report every write through ``on_write``."""

    repo: str = "dry-run/repo"
    login: str = "hive-mind-bot"
    first_comment_id: int = 1_000_000
    on_write: Callable[[RecordedWrite], None] | None = None
    entities: dict[int, TrackedEntity] = field(default_factory=dict)
    writes: list[RecordedWrite] = field(default_factory=list)
    _comments: dict[int, list[IssueComment]] = field(default_factory=dict, init=False)
    _bodies: dict[int, str] = field(default_factory=dict, init=False)
    _ids: itertools.count[int] = field(init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self) -> None:
        self._ids = itertools.count(self.first_comment_id)

    def post_comment(self, number: int, body: str) -> PostedComment | None:
        with self._lock:
            comment_id = next(self._ids)
            comment = IssueComment(
                id=comment_id,
                author=self.login,
                body=body,
                created_at=datetime.now(tz=UTC).isoformat(),
            )
            self._comments.setdefault(number, []).append(comment)
            self._bodies[comment_id] = body
            write = RecordedWrite(action="post", comment_id=comment_id, number=number, body=body)
            self.writes.append(write)
        self._report(write)
        return PostedComment(
            id=comment_id,
            url=f"https://github.com/{self.repo}/pull/{number}#issuecomment-{comment_id}",
        )

    def edit_comment(self, comment_id: int, body: str) -> None:
        with self._lock:
            self._bodies[comment_id] = body
            for number, comments in self._comments.items():
                self._comments[number] = [
                    IssueComment(
                        id=item.id,
                        author=item.author,
                        body=body,
                        created_at=item.created_at,
                    )
                    if item.id == comment_id
                    else item
                    for item in comments
                ]
            write = RecordedWrite(action="edit", comment_id=comment_id, number=None, body=body)
            self.writes.append(write)
        self._report(write)

    def list_comments(self, number: int) -> list[IssueComment]:
        with self._lock:
            return list(self._comments.get(number, []))

    def get_issue(self, number: int) -> TrackedEntity:
        return self.entities.get(number) or TrackedEntity(number=number, title="", body="")

    def get_pull_request(self, number: int) -> TrackedEntity:
        return self.get_issue(number)

    def current_user(self) -> str | None:
        return self.login

    def body_of(self, comment_id: int) -> str | None:
        with self._lock:
            return self._bodies.get(comment_id)

    def _report(self, write: RecordedWrite) -> None:
        logger.debug("Dry-run %s of comment %s", write.action, write.comment_id)
        if self.on_write is not None:
            self.on_write(write)
