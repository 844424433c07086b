"""Shared test fixtures."""

from __future__ import annotations

import itertools
import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from hive_mind.github.base import GitHubError, IssueComment, PostedComment, TrackedEntity

REPLAY_AGENT_COMMAND = [sys.executable, "-m", "hive_mind.agents.replay_agent"]
SRC_DIR = Path(__file__).resolve().parent.parent / "src"


def agent_env() -> dict[str, str]:
    """Environment that lets a child interpreter import the package from the source tree."""

    existing = os.environ.get("PYTHONPATH")
    return {"PYTHONPATH": os.pathsep.join(filter(None, [str(SRC_DIR), existing]))}


def write_events(path: Path, events: list[dict]) -> Path:
    path.write_text("".join(json.dumps(event) + "\n" for event in events), encoding="utf-8")
    return path


class FakeClock:
    """Manually advanced monotonic clock; ``sleep`` advances it instead of blocking."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 0.0)


@dataclass
class TrackerCall:
    action: str
    at: float
    comment_id: int | None
    body: str


@dataclass
class FakeTracker:
    """Scriptable issue tracker recording every call with the clock time it happened at."""

    clock: FakeClock = field(default_factory=FakeClock)
    login: str | None = "hive-bot"
    fail_posts: bool = False
    fail_edits: bool = False
    return_ids: bool = True
    fail_reads: bool = False
    calls: list[TrackerCall] = field(default_factory=list)
    comments: dict[int, list[IssueComment]] = field(default_factory=dict)
    entities: dict[int, TrackedEntity] = field(default_factory=dict)
    bodies: dict[int, str] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(100))

    @property
    def posts(self) -> list[TrackerCall]:
        return [call for call in self.calls if call.action == "post"]

    @property
    def edits(self) -> list[TrackerCall]:
        return [call for call in self.calls if call.action == "edit"]

    def add_comment(self, number: int, comment_id: int, author: str, body: str) -> IssueComment:
        comment = IssueComment(
            id=comment_id,
            author=author,
            body=body,
            created_at=f"2024-01-01T00:00:{comment_id % 60:02d}Z",
        )
        self.comments.setdefault(number, []).append(comment)
        return comment

    def post_comment(self, number: int, body: str) -> PostedComment | None:
        if self.fail_posts:
            self.calls.append(TrackerCall("post-failed", self.clock(), None, body))
            raise GitHubError("post rejected", transient=True)
        comment_id = next(self._ids)
        self.calls.append(TrackerCall("post", self.clock(), comment_id, body))
        self.bodies[comment_id] = body
        if not self.return_ids:
            return None
        return PostedComment(id=comment_id, url=f"https://github.com/o/r/pull/{number}#issuecomment-{comment_id}")

    def edit_comment(self, comment_id: int, body: str) -> None:
        if self.fail_edits:
            self.calls.append(TrackerCall("edit-failed", self.clock(), comment_id, body))
            raise GitHubError("edit rejected", transient=True)
        self.calls.append(TrackerCall("edit", self.clock(), comment_id, body))
        self.bodies[comment_id] = body

    def list_comments(self, number: int) -> list[IssueComment]:
        if self.fail_reads:
            raise GitHubError("list failed", transient=True)
        return list(self.comments.get(number, []))

    def get_issue(self, number: int) -> TrackedEntity:
        if self.fail_reads:
            raise GitHubError("get failed", transient=True)
        return self.entities.get(number) or TrackedEntity(number=number, title="", body="")

    def get_pull_request(self, number: int) -> TrackedEntity:
        return self.get_issue(number)

    def current_user(self) -> str | None:
        return self.login


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def tracker(clock: FakeClock) -> FakeTracker:
    return FakeTracker(clock=clock)


@pytest.fixture()
def clean_env(monkeypatch):
    """Remove every HIVE_MIND_* and token variable so settings fall back to defaults."""

    for name in list(os.environ):
        if name.startswith("HIVE_MIND_") or name in {"GITHUB_TOKEN", "GH_TOKEN"}:
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture()
def replay_env() -> dict[str, str]:
    return agent_env()


@pytest.fixture()
def events_file(tmp_path: Path):
    """Factory writing a list of event payloads as an NDJSON file."""

    def _write(events: list[dict], name: str = "events.jsonl") -> Path:
        return write_events(tmp_path / name, events)

    return _write


@pytest.fixture()
def replay_command() -> list[str]:
    return list(REPLAY_AGENT_COMMAND)
