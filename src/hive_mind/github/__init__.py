"""Issue tracker adapters."""

from hive_mind.github.base import (
    GitHubError,
    IssueComment,
    IssueTracker,
    PostedComment,
    TrackedEntity,
    parse_comment_reference,
)
from hive_mind.github.dry_run import DryRunIssueTracker, RecordedWrite
from hive_mind.github.gh_cli import GhCliClient
from hive_mind.github.rest import GitHubRestClient

__all__ = [
    "DryRunIssueTracker",
    "GhCliClient",
    "GitHubError",
    "GitHubRestClient",
    "IssueComment",
    "IssueTracker",
    "PostedComment",
    "RecordedWrite",
    "TrackedEntity",
    "parse_comment_reference",
]
