"""Issue tracker adapter backed by the ``gh`` command-line client."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Callable
from typing import Any

from hive_mind.github.base import (
    GitHubError,
    IssueComment,
    PostedComment,
    TrackedEntity,
    comment_from_payload,
    entity_from_payload,
    parse_comment_reference,
)

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., "subprocess.CompletedProcess[str]"]

_COMMENT_FIELDS_JQ = ".[] | {id: .id, body: .body, created_at: .created_at, user: .user.login}"


class GhCliClient:
    """Run ``gh`` subcommands for one repository and decode their output."""

    def __init__(
        self,
        *,
        repo: str,
        executable: str = "gh",
        timeout_seconds: float = 30.0,
        runner: CommandRunner = subprocess.run,
    ) -> None:
        self.repo = repo
        self._executable = executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner

    def post_comment(self, number: int, body: str) -> PostedComment | None:
        stdout = self._run(
            ["pr", "comment", str(number), "--repo", self.repo, "--body-file", "-"],
            input_text=body,
        )
        posted = parse_comment_reference(stdout)
        if posted is None:
            logger.debug("gh pr comment returned no comment reference: %r", stdout[:200])
        return posted

    def edit_comment(self, comment_id: int, body: str) -> None:
        self._run(
            [
                "api",
                f"repos/{self.repo}/issues/comments/{comment_id}",
                "-X",
                "PATCH",
                "--input",
                "-",
            ],
            input_text=json.dumps({"body": body}),
        )

    def list_comments(self, number: int) -> list[IssueComment]:
        stdout = self._run(
            [
                "api",
                f"repos/{self.repo}/issues/{number}/comments",
                "--paginate",
                "--jq",
                _COMMENT_FIELDS_JQ,
            ],
        )
        comments: list[IssueComment] = []
        for line in stdout.splitlines():
            if not line.strip():
                continue
            comments.append(comment_from_payload(_decode_object(line)))
        return comments

    def get_issue(self, number: int) -> TrackedEntity:
        stdout = self._run(["api", f"repos/{self.repo}/issues/{number}"])
        return entity_from_payload(number, _decode_object(stdout))

    def get_pull_request(self, number: int) -> TrackedEntity:
        stdout = self._run(["api", f"repos/{self.repo}/pulls/{number}"])
        return entity_from_payload(number, _decode_object(stdout))

    def current_user(self) -> str | None:
        login = self._run(["api", "user", "--jq", ".login"]).strip()
        return login or None

    def _run(self, args: list[str], *, input_text: str | None = None) -> str:
        command = [self._executable, *args]
        try:
            completed = self._runner(
                command,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except FileNotFoundError as error:
            raise GitHubError(
                f"gh executable not found: {self._executable}",
                transient=False,
            ) from error
        except subprocess.TimeoutExpired as error:
            raise GitHubError(f"gh {args[0]} timed out", transient=True) from error
        except OSError as error:
            raise GitHubError(f"gh failed to start: {error}", transient=True) from error

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            raise GitHubError(
                f"gh {' '.join(args[:2])} exited with {completed.returncode}: {stderr[:300]}",
                transient=_is_transient_stderr(stderr),
            )
        return completed.stdout or ""


def _decode_object(text: str) -> dict[str, Any]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as error:
        raise GitHubError(f"gh returned invalid JSON: {error}", transient=False) from error
    if not isinstance(payload, dict):
        raise GitHubError("gh returned a non-object JSON payload", transient=False)
    return payload


def _is_transient_stderr(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(
        marker in lowered
        for marker in ("rate limit", "timeout", "timed out", "502", "503", "connection")
    )
