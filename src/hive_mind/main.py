"""CLI entrypoint for hive-mind."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from hive_mind import __version__
from hive_mind.controllers import (
    SessionCliController,
    SessionCommandResult,
    SessionReplayCommand,
    SessionRunCommand,
)
from hive_mind.session import AgentSessionError

click.rich_click.USE_MARKDOWN = True
SESSION_CONTROLLER = SessionCliController()


@click.group()
@click.version_option(version=__version__, prog_name="hive-mind")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def hive_mind(verbose: bool) -> None:
    """Drive coding agents against GitHub pull requests."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@hive_mind.group()
def session() -> None:
    """Interactive agent session commands."""


@session.command("run", context_settings={"ignore_unknown_options": True})
@click.option("--repo", default=None, help="Repository as owner/name.")
@click.option("--pr", "pr_number", type=click.IntRange(min=1), default=None, help="Pull request number.")
@click.option(
    "--issue",
    "issue_number",
    type=click.IntRange(min=1),
    default=None,
    help="Issue number to watch for live updates.",
)
@click.option("--tool", default=None, help="Agent tool name (default from HIVE_MIND_AGENT_TOOL).")
@click.option(
    "--interactive/--no-interactive",
    default=True,
    show_default=True,
    help="Post agent events as PR comments.",
)
@click.option(
    "--bidirectional/--no-bidirectional",
    default=False,
    show_default=True,
    help="Feed new PR comments back to the agent via stdin.",
)
@click.option(
    "--live-updates/--no-live-updates",
    default=False,
    show_default=True,
    help="Notify the agent about issue/PR edits and new comments.",
)
@click.option("--prompt", default=None, help="Initial prompt sent to the agent as a user message.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.IntRange(min=1),
    default=None,
    help="Wall-clock limit for the agent process, seconds.",
)
@click.option("--dry-run", is_flag=True, default=False, help="Print comments instead of posting.")
@click.argument("agent_command", nargs=-1, required=True, type=click.UNPROCESSED)
def session_run(  # noqa: PLR0913
    repo: str | None,
    pr_number: int | None,
    issue_number: int | None,
    tool: str | None,
    interactive: bool,
    bidirectional: bool,
    live_updates: bool,
    prompt: str | None,
    timeout_seconds: int | None,
    dry_run: bool,
    agent_command: tuple[str, ...],
) -> None:
    """Run AGENT_COMMAND and mirror its stream-json output to a pull request."""

    _emit_result(
        lambda: SESSION_CONTROLLER.run_session(
            SessionRunCommand(
                agent_command=agent_command,
                repo=repo,
                pr_number=pr_number,
                issue_number=issue_number,
                tool=tool,
                interactive=interactive,
                bidirectional=bidirectional,
                live_updates=live_updates,
                prompt=prompt,
                timeout_seconds=timeout_seconds,
                dry_run=dry_run,
            ),
        ),
        failure="Agent session failed.",
    )


@session.command("replay")
@click.argument("events_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--repo", default=None, help="Repository as owner/name.")
@click.option("--pr", "pr_number", type=click.IntRange(min=1), default=None, help="Pull request number.")
@click.option("--dry-run", is_flag=True, default=False, help="Print comments instead of posting.")
@click.option(
    "--show-bodies/--no-show-bodies",
    default=False,
    show_default=True,
    help="Print full comment bodies in dry-run mode.",
)
def session_replay(
    events_file: Path,
    repo: str | None,
    pr_number: int | None,
    dry_run: bool,
    show_bodies: bool,
) -> None:
    """Post a recorded stream-json log to a pull request as session comments."""

    _emit_result(
        lambda: SESSION_CONTROLLER.replay(
            SessionReplayCommand(
                events_file=events_file,
                repo=repo,
                pr_number=pr_number,
                dry_run=dry_run,
                show_bodies=show_bodies,
            ),
        ),
        failure="Replay failed.",
    )


def _emit_result(action: Callable[[], SessionCommandResult], *, failure: str) -> None:
    try:
        result = action()
    except (ValueError, AgentSessionError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(failure)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    hive_mind()
