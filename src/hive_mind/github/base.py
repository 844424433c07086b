"""Issue tracker interface used by interactive session components."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

_COMMENT_REFERENCE = re.compile(r"issuecomment-(\d+)")


class GitHubError(RuntimeError):
    """Issue tracker call failure with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


@dataclass(slots=True, frozen=True)
class PostedComment:
    """Handle of a comment created on the tracker."""

    id: int | None
    url: str


@dataclass(slots=True, frozen=True)
class IssueComment:
    """Conversation comment on an issue or pull request."""

    id: int
    author: str
    body: str
    created_at: str


@dataclass(slots=True, frozen=True)
class TrackedEntity:
    """Title/body state of an issue or pull request."""

    number: int
    title: str
    body: str
    updated_at: str | None = None


class IssueTracker(Protocol):
    """Protocol implemented by issue tracker adapters."""

    def post_comment(self, number: int, body: str) -> PostedComment | None:
        """Create a conversation comment and return its handle when known."""

    def edit_comment(self, comment_id: int, body: str) -> None:
        """Replace the body of an existing comment."""

    def list_comments(self, number: int) -> list[IssueComment]:
        """Return all conversation comments of an issue or pull request."""

    def get_issue(self, number: int) -> TrackedEntity:
        """Return current title/body of an issue."""

    def get_pull_request(self, number: int) -> TrackedEntity:
        """Return current title/body of a pull request."""

    def current_user(self) -> str | None:
        """Return the login the adapter acts as, when it can be resolved."""


def parse_comment_reference(output: object) -> PostedComment | None:
    """Recover a comment handle from CLI output that embeds the comment URL."""

    if output is None:
        return None
    text = output.decode("utf-8", "replace") if isinstance(output, bytes) else str(output)
    match = _COMMENT_REFERENCE.search(text)
    if match is None:
        return None
    url = next(
        (token for token in text.split() if match.group(0) in token),
        match.group(0),
    )
    return PostedComment(id=int(match.group(1)), url=url.strip())


def comment_from_payload(payload: dict[str, Any]) -> IssueComment:
    """Normalize a REST comment object (or a pre-flattened one) to ``IssueComment``."""

    user = payload.get("user")
    if isinstance(user, dict):
        author = str(user.get("login") or "")
    else:
        author = str(user or "")
    return IssueComment(
        id=int(payload["id"]),
        author=author,
        body=str(payload.get("body") or ""),
        created_at=str(payload.get("created_at") or ""),
    )


def entity_from_payload(number: int, payload: dict[str, Any]) -> TrackedEntity:
    """Normalize a REST issue/pull request object to ``TrackedEntity``."""

    updated_at = payload.get("updated_at")
    return TrackedEntity(
        number=number,
        title=str(payload.get("title") or ""),
        body=str(payload.get("body") or ""),
        updated_at=str(updated_at) if updated_at else None,
    )
