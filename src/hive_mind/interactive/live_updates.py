"""Detection of issue and PR edits or new comments while the agent is working."""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from hive_mind.config import LiveUpdatesSettings
from hive_mind.github.base import GitHubError, IssueComment, IssueTracker, TrackedEntity
from hive_mind.interactive.feedback import user_message
from hive_mind.interactive.polling import PollingLoop

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_CHARS = 200


def content_hash(text: str | None) -> str:
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class EntitySnapshot:
    """Fingerprint of one issue or pull request and its conversation."""

    title_hash: str
    body_hash: str
    updated_at: str | None
    last_comment_id: int
    comment_count: int


@dataclass(slots=True, frozen=True)
class SnapshotState:
    """Baseline for both tracked entities; ``None`` where capture failed or nothing is tracked."""

    issue: EntitySnapshot | None = None
    pull_request: EntitySnapshot | None = None


@dataclass(slots=True)
class LiveUpdates:
    issue_edited: bool = False
    new_issue_comments: list[IssueComment] = field(default_factory=list)
    pr_edited: bool = False
    new_pr_comments: list[IssueComment] = field(default_factory=list)
    summary: list[str] = field(default_factory=list)

    @property
    def has_updates(self) -> bool:
        return bool(
            self.issue_edited or self.pr_edited or self.new_issue_comments or self.new_pr_comments,
        )


def _snapshot_of(entity: TrackedEntity, comments: list[IssueComment]) -> EntitySnapshot:
    return EntitySnapshot(
        title_hash=content_hash(entity.title),
        body_hash=content_hash(entity.body),
        updated_at=entity.updated_at,
        last_comment_id=max((comment.id for comment in comments), default=0),
        comment_count=len(comments),
    )


def _capture_entity(
    fetch: Callable[[int], TrackedEntity],
    list_comments: Callable[[int], list[IssueComment]],
    number: int | None,
    label: str,
) -> EntitySnapshot | None:
    if number is None:
        return None
    try:
        snapshot = _snapshot_of(fetch(number), list_comments(number))
    except GitHubError as error:
        logger.warning("Could not capture %s #%s state: %s", label, number, error)
        return None
    logger.debug(
        "Captured %s #%s: last comment %s, %d comments",
        label,
        number,
        snapshot.last_comment_id,
        snapshot.comment_count,
    )
    return snapshot


def capture_snapshot(
    tracker: IssueTracker,
    *,
    issue_number: int | None,
    pr_number: int | None,
) -> SnapshotState:
    return SnapshotState(
        issue=_capture_entity(tracker.get_issue, tracker.list_comments, issue_number, "issue"),
        pull_request=_capture_entity(
            tracker.get_pull_request,
            tracker.list_comments,
            pr_number,
            "pull request",
        ),
    )


def _diff_entity(  # noqa: PLR0913
    fetch: Callable[[int], TrackedEntity],
    list_comments: Callable[[int], list[IssueComment]],
    number: int | None,
    baseline: EntitySnapshot | None,
    current_user: str | None,
    label: str,
) -> tuple[bool, list[IssueComment], EntitySnapshot | None]:
    if number is None or baseline is None:
        return False, [], baseline
    try:
        entity = fetch(number)
        comments = list_comments(number)
    except GitHubError as error:
        logger.debug("Could not check %s #%s for updates: %s", label, number, error)
        return False, [], baseline
    current = _snapshot_of(entity, comments)
    edited = (current.title_hash, current.body_hash) != (baseline.title_hash, baseline.body_hash)
    new_comments = sorted(
        (
            comment
            for comment in comments
            if comment.id > baseline.last_comment_id
            and (not current_user or comment.author != current_user)
        ),
        key=lambda comment: comment.id,
    )
    return edited, new_comments, current


def check_for_updates(
    tracker: IssueTracker,
    baseline: SnapshotState,
    *,
    issue_number: int | None,
    pr_number: int | None,
    current_user: str | None,
) -> tuple[LiveUpdates, SnapshotState]:
    """Diff current state against ``baseline``.

    Returns the detected updates and a snapshot built from the same fetched data,
    to be used as the next baseline.
    """

    updates = LiveUpdates()
    issue_edited, issue_comments, issue_snapshot = _diff_entity(
        tracker.get_issue,
        tracker.list_comments,
        issue_number,
        baseline.issue,
        current_user,
        "issue",
    )
    pr_edited, pr_comments, pr_snapshot = _diff_entity(
        tracker.get_pull_request,
        tracker.list_comments,
        pr_number,
        baseline.pull_request,
        current_user,
        "pull request",
    )
    if issue_edited:
        updates.issue_edited = True
        updates.summary.append("Issue description/title was edited")
    if issue_comments:
        updates.new_issue_comments = issue_comments
        updates.summary.append(f"{len(issue_comments)} new comment(s) on issue")
    if pr_edited:
        updates.pr_edited = True
        updates.summary.append("Pull request description/title was edited")
    if pr_comments:
        updates.new_pr_comments = pr_comments
        updates.summary.append(f"{len(pr_comments)} new comment(s) on PR")
    return updates, SnapshotState(issue=issue_snapshot, pull_request=pr_snapshot)


def _comment_lines(comments: list[IssueComment]) -> list[str]:
    lines: list[str] = []
    for comment in comments:
        preview = comment.body[:COMMENT_PREVIEW_CHARS]
        ellipsis = "..." if len(comment.body) > COMMENT_PREVIEW_CHARS else ""
        lines.append(f"   From @{comment.author} at {comment.created_at}:")
        lines.append(f'   "{preview}{ellipsis}"')
        lines.append("")
    return lines


def format_updates_as_feedback(updates: LiveUpdates | None) -> list[str]:
    """Human-readable notice for the agent; empty when there is nothing to report."""

    if updates is None or not updates.has_updates:
        return []
    lines = [
        "",
        "🔔 LIVE UPDATES DETECTED DURING EXECUTION:",
        "The following changes occurred while you were working:",
        "",
    ]
    if updates.issue_edited:
        lines += [
            "📝 ISSUE EDITED:",
            "   The issue description or title was modified.",
            "   Please re-read the issue to check for important updates.",
            "",
        ]
    if updates.new_issue_comments:
        lines.append(f"💬 NEW ISSUE COMMENTS ({len(updates.new_issue_comments)}):")
        lines += _comment_lines(updates.new_issue_comments)
    if updates.pr_edited:
        lines += [
            "📝 PULL REQUEST EDITED:",
            "   The PR description or title was modified.",
            "   Check if there are new requirements or feedback to address.",
            "",
        ]
    if updates.new_pr_comments:
        lines.append(f"💬 NEW PR COMMENTS ({len(updates.new_pr_comments)}):")
        lines += _comment_lines(updates.new_pr_comments)
    lines += [
        "⚠️  IMPORTANT: Please review these updates and adjust your work accordingly.",
        "   You may need to pause current work and address the new feedback first.",
        "",
    ]
    return lines


def format_updates_message(updates: LiveUpdates | None) -> str | None:
    """Stream-json user message carrying the notice, or None when there are no updates."""

    lines = format_updates_as_feedback(updates)
    if not lines:
        return None
    return user_message("\n".join(lines).strip("\n"))


class LiveUpdatesMonitor:
    """Poll the issue and PR and report changes made by anyone but the acting user."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        tracker: IssueTracker,
        issue_number: int | None,
        pr_number: int | None,
        settings: LiveUpdatesSettings | None = None,
        on_update: Callable[[LiveUpdates], None] | None = None,
    ) -> None:
        self._tracker = tracker
        self._issue_number = issue_number
        self._pr_number = pr_number
        self._settings = settings or LiveUpdatesSettings()
        self._on_update = on_update
        self._lock = threading.Lock()
        self._baseline: SnapshotState | None = None
        self._latest: LiveUpdates | None = None
        self.current_user: str | None = None
        self.check_count = 0
        self._loop = PollingLoop(
            name="live-updates-monitor",
            interval_seconds=self._settings.check_interval_seconds,
            tick=self.check_once,
        )

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    @property
    def baseline(self) -> SnapshotState | None:
        return self._baseline

    def start(self) -> bool:
        if self.is_running:
            return False
        self.current_user = self._resolve_current_user()
        self._baseline = capture_snapshot(
            self._tracker,
            issue_number=self._issue_number,
            pr_number=self._pr_number,
        )
        self.check_count = 0
        self._loop.start()
        logger.info(
            "Live updates monitor started: issue #%s, PR #%s, every %.0fs",
            self._issue_number or "N/A",
            self._pr_number or "N/A",
            self._settings.check_interval_seconds,
        )
        return True

    def stop(self) -> bool:
        if not self._loop.stop():
            return False
        logger.info("Live updates monitor stopped after %d checks", self.check_count)
        return True

    def check_once(self) -> LiveUpdates | None:
        """Run one diff against the baseline; return the updates when anything changed."""

        with self._lock:
            if self._baseline is None:
                return None
            self.check_count += 1
            updates, fresh = check_for_updates(
                self._tracker,
                self._baseline,
                issue_number=self._issue_number,
                pr_number=self._pr_number,
                current_user=self.current_user,
            )
            if not updates.has_updates:
                if self.check_count % self._settings.liveness_log_every == 0:
                    logger.debug("Live update check #%d: no updates", self.check_count)
                return None
            self._baseline = fresh
            self._latest = updates
        logger.info("Live update detected: %s", "; ".join(updates.summary))
        if self._on_update is not None:
            try:
                self._on_update(updates)
            except Exception:
                logger.exception("Live update callback failed")
        return updates

    @property
    def latest_updates(self) -> LiveUpdates | None:
        return self._latest

    def has_updates(self) -> bool:
        return self._latest is not None and self._latest.has_updates

    def updates_as_feedback(self) -> list[str]:
        return format_updates_as_feedback(self._latest)

    def clear_updates(self) -> None:
        self._latest = None

    def _resolve_current_user(self) -> str | None:
        try:
            return self._tracker.current_user()
        except GitHubError as error:
            logger.debug("Could not resolve current user, own comments will not be filtered: %s", error)
            return None
