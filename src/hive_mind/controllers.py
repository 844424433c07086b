"""CLI controller for agent session commands."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path

from hive_mind.config import Settings
from hive_mind.github import (
    DryRunIssueTracker,
    GhCliClient,
    GitHubRestClient,
    IssueTracker,
    RecordedWrite,
)
from hive_mind.interactive.feedback import BidirectionalFeedbackMonitor
from hive_mind.interactive.handler import InteractiveSessionHandler, SessionState
from hive_mind.interactive.live_updates import LiveUpdatesMonitor
from hive_mind.interactive.modes import resolve_interactive_options
from hive_mind.session import AgentSessionRunner, SessionRunRequest

logger = logging.getLogger(__name__)

DRY_RUN_REPO = "dry-run/repo"
DRY_RUN_PR_NUMBER = 1


@dataclass(slots=True)
class SessionRunCommand:
    """Input for session run CLI command."""

    agent_command: tuple[str, ...]
    repo: str | None = None
    pr_number: int | None = None
    issue_number: int | None = None
    tool: str | None = None
    interactive: bool = True
    bidirectional: bool = False
    live_updates: bool = False
    prompt: str | None = None
    timeout_seconds: int | None = None
    dry_run: bool = False


@dataclass(slots=True)
class SessionReplayCommand:
    """Input for session replay CLI command."""

    events_file: Path
    repo: str | None = None
    pr_number: int | None = None
    dry_run: bool = False
    show_bodies: bool = False


@dataclass(slots=True)
class SessionCommandResult:
    lines: list[str] = field(default_factory=list)
    success: bool = True


class SessionCliController:
    """CLI controller for interactive agent sessions."""

    def __init__(
        self,
        *,
        settings_loader: Callable[[], Settings] = Settings.from_env,
        tracker_factory: Callable[[Settings, str], IssueTracker] | None = None,
    ) -> None:
        self._settings_loader = settings_loader
        self._tracker_factory = tracker_factory

    def run_session(self, command: SessionRunCommand) -> SessionCommandResult:
        """Run an agent command and mirror its output to a pull request."""

        settings = self._settings_loader()
        settings.validate()
        tool = command.tool or settings.agent.tool
        options = resolve_interactive_options(
            tool,
            interactive=command.interactive,
            bidirectional=command.bidirectional,
        )
        result = SessionCommandResult(lines=[f"Warning: {warning}" for warning in options.warnings])
        repo = DRY_RUN_REPO if command.dry_run and not command.repo else settings.require_repo(command.repo)
        pr_number = command.pr_number
        if pr_number is None and command.dry_run:
            pr_number = DRY_RUN_PR_NUMBER

        with self._tracker(settings, repo, dry_run=command.dry_run, lines=result.lines) as tracker:
            handler = InteractiveSessionHandler(
                tracker=tracker if options.interactive else None,
                repo=repo,
                pr_number=pr_number if options.interactive else None,
                settings=settings.interactive,
            )
            feedback = None
            if options.bidirectional:
                feedback = BidirectionalFeedbackMonitor(
                    tracker=tracker,
                    repo=repo,
                    pr_number=pr_number,
                    settings=settings.feedback,
                )
                feedback.initialize_from_current_comments()
            live_updates = None
            if command.live_updates and options.bidirectional:
                live_updates = LiveUpdatesMonitor(
                    tracker=tracker,
                    issue_number=command.issue_number,
                    pr_number=pr_number,
                    settings=settings.live_updates,
                )
            elif command.live_updates:
                result.lines.append(
                    "Warning: live updates need bidirectional mode to reach the agent; disabled.",
                )
            runner = AgentSessionRunner(
                handler=handler,
                feedback_monitor=feedback,
                live_updates=live_updates,
                bidirectional=options.bidirectional,
            )
            run = runner.run(
                SessionRunRequest(
                    command=list(command.agent_command),
                    prompt=command.prompt,
                    timeout_seconds=command.timeout_seconds or settings.agent.timeout_seconds,
                    graceful_shutdown_seconds=settings.agent.graceful_shutdown_seconds,
                ),
            )

        if run.timed_out:
            result.lines.append("Agent timed out.")
        result.lines.append(f"Agent exit code: {run.exit_code}")
        result.lines.append(f"Events processed: {run.events_processed}")
        result.lines.extend(_format_state(run.state))
        if options.bidirectional:
            result.lines.append(f"Feedback injected: {run.feedback_injected}")
            result.lines.append(f"Live updates injected: {run.live_updates_injected}")
        if run.exit_code != 0:
            result.lines.extend(f"stderr: {line}" for line in run.stderr_tail)
        result.success = run.exit_code == 0 and not run.timed_out
        return result

    def replay(self, command: SessionReplayCommand) -> SessionCommandResult:
        """Feed a recorded stream-json log through the session handler."""

        settings = self._settings_loader()
        settings.validate()
        if command.dry_run:
            repo = command.repo or DRY_RUN_REPO
            pr_number = command.pr_number or DRY_RUN_PR_NUMBER
            interactive = replace(
                settings.interactive,
                min_comment_interval_seconds=0.0,
                background_drain=False,
            )
        else:
            repo = settings.require_repo(command.repo)
            if command.pr_number is None:
                raise ValueError("--pr is required unless --dry-run is used.")
            pr_number = command.pr_number
            interactive = replace(settings.interactive, background_drain=False)

        try:
            text = command.events_file.read_text(encoding="utf-8")
        except OSError as error:
            raise ValueError(f"Cannot read events file {command.events_file}: {error}") from error

        result = SessionCommandResult()
        with self._tracker(
            settings,
            repo,
            dry_run=command.dry_run,
            lines=result.lines,
            show_bodies=command.show_bodies,
        ) as tracker:
            handler = InteractiveSessionHandler(
                tracker=tracker,
                repo=repo,
                pr_number=pr_number,
                settings=interactive,
            )
            events = 0
            for line in text.splitlines():
                events += len(handler.process_line(line))
            handler.flush()

        result.lines.append(f"Events processed: {events}")
        result.lines.extend(_format_state(handler.get_state()))
        return result

    @contextmanager
    def _tracker(
        self,
        settings: Settings,
        repo: str,
        *,
        dry_run: bool,
        lines: list[str],
        show_bodies: bool = False,
    ) -> Iterator[IssueTracker]:
        if dry_run:
            yield DryRunIssueTracker(repo=repo, on_write=_write_reporter(lines, show_bodies))
            return
        if self._tracker_factory is not None:
            yield self._tracker_factory(settings, repo)
            return
        if settings.github.client == "rest":
            with GitHubRestClient(
                repo=repo,
                token=settings.github.token,
                base_url=settings.github.api_base_url,
                timeout_seconds=settings.github.request_timeout_seconds,
            ) as client:
                yield client
            return
        yield GhCliClient(repo=repo, timeout_seconds=settings.github.request_timeout_seconds)


def _write_reporter(lines: list[str], show_bodies: bool) -> Callable[[RecordedWrite], None]:
    def _report(write: RecordedWrite) -> None:
        heading = write.body.split("\n", 1)[0]
        lines.append(f"[{write.action} {write.comment_id}] {heading}")
        if show_bodies:
            lines.append(write.body)
            lines.append("")

    return _report


def _format_state(state: SessionState) -> list[str]:
    lines = [
        f"Comments posted: {state.comments_posted}, edited: {state.comments_edited}, "
        f"failed: {state.write_failures}",
        f"Messages: {state.message_count}, tool uses: {state.tool_use_count}, "
        f"tool results: {state.tool_result_count}",
    ]
    if state.session_id:
        lines.append(f"Session ID: {state.session_id}")
    if state.pending_tool_calls:
        lines.append(f"Tool calls without result: {state.pending_tool_calls}")
    return lines
