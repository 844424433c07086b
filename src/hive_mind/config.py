"""Runtime configuration for interactive agent sessions."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

SUPPORTED_GITHUB_CLIENTS = ("gh", "rest")
MIN_FEEDBACK_POLL_INTERVAL_SECONDS = 10.0

_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


@dataclass(slots=True)
class GitHubSettings:
    """Issue tracker access settings."""

    repo: str = ""
    client: str = "gh"
    token: str | None = None
    api_base_url: str = "https://api.github.com"
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class InteractiveSettings:
    """PR comment streaming settings."""

    min_comment_interval_seconds: float = 5.0
    max_lines_before_truncation: int = 50
    lines_to_keep_start: int = 20
    lines_to_keep_end: int = 20
    background_drain: bool = True


@dataclass(slots=True)
class FeedbackSettings:
    """PR comment feedback polling settings."""

    poll_interval_seconds: float = 15.0
    min_poll_interval_seconds: float = MIN_FEEDBACK_POLL_INTERVAL_SECONDS
    max_queue_size: int = 50


@dataclass(slots=True)
class LiveUpdatesSettings:
    """Issue/PR change detection settings."""

    check_interval_seconds: float = 30.0
    liveness_log_every: int = 5


@dataclass(slots=True)
class AgentSettings:
    """Agent process settings."""

    tool: str = "claude"
    timeout_seconds: int = 3_600
    graceful_shutdown_seconds: int = 10


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    github: GitHubSettings = field(default_factory=GitHubSettings)
    interactive: InteractiveSettings = field(default_factory=InteractiveSettings)
    feedback: FeedbackSettings = field(default_factory=FeedbackSettings)
    live_updates: LiveUpdatesSettings = field(default_factory=LiveUpdatesSettings)
    agent: AgentSettings = field(default_factory=AgentSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            github=GitHubSettings(
                repo=os.getenv("HIVE_MIND_GITHUB_REPO", "").strip(),
                client=os.getenv("HIVE_MIND_GITHUB_CLIENT", "gh").strip().lower(),
                token=os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN") or None,
                api_base_url=os.getenv("HIVE_MIND_GITHUB_API_URL", "https://api.github.com"),
                request_timeout_seconds=float(
                    os.getenv("HIVE_MIND_GITHUB_TIMEOUT_SECONDS", "30"),
                ),
            ),
            interactive=InteractiveSettings(
                min_comment_interval_seconds=float(
                    os.getenv("HIVE_MIND_MIN_COMMENT_INTERVAL_SECONDS", "5.0"),
                ),
                max_lines_before_truncation=int(
                    os.getenv("HIVE_MIND_MAX_LINES_BEFORE_TRUNCATION", "50"),
                ),
                lines_to_keep_start=int(os.getenv("HIVE_MIND_LINES_TO_KEEP_START", "20")),
                lines_to_keep_end=int(os.getenv("HIVE_MIND_LINES_TO_KEEP_END", "20")),
                background_drain=_env_bool("HIVE_MIND_BACKGROUND_DRAIN", default=True),
            ),
            feedback=FeedbackSettings(
                poll_interval_seconds=float(os.getenv("HIVE_MIND_FEEDBACK_POLL_SECONDS", "15.0")),
                max_queue_size=int(os.getenv("HIVE_MIND_FEEDBACK_MAX_QUEUE", "50")),
            ),
            live_updates=LiveUpdatesSettings(
                check_interval_seconds=float(
                    os.getenv("HIVE_MIND_LIVE_UPDATES_INTERVAL_SECONDS", "30.0"),
                ),
                liveness_log_every=int(os.getenv("HIVE_MIND_LIVE_UPDATES_LOG_EVERY", "5")),
            ),
            agent=AgentSettings(
                tool=os.getenv("HIVE_MIND_AGENT_TOOL", "claude").strip().lower(),
                timeout_seconds=int(os.getenv("HIVE_MIND_AGENT_TIMEOUT_SECONDS", "3600")),
                graceful_shutdown_seconds=int(
                    os.getenv("HIVE_MIND_AGENT_GRACEFUL_SHUTDOWN_SECONDS", "10"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the session components cannot use."""

        if self.github.client not in SUPPORTED_GITHUB_CLIENTS:
            raise ValueError(
                f"HIVE_MIND_GITHUB_CLIENT must be one of {', '.join(SUPPORTED_GITHUB_CLIENTS)}: "
                f"{self.github.client!r}",
            )
        if self.github.request_timeout_seconds <= 0:
            raise ValueError("HIVE_MIND_GITHUB_TIMEOUT_SECONDS must be > 0.")

        interactive = self.interactive
        if interactive.min_comment_interval_seconds < 0:
            raise ValueError("HIVE_MIND_MIN_COMMENT_INTERVAL_SECONDS must be >= 0.")
        if interactive.lines_to_keep_start < 0 or interactive.lines_to_keep_end < 0:
            raise ValueError(
                "HIVE_MIND_LINES_TO_KEEP_START and HIVE_MIND_LINES_TO_KEEP_END must be >= 0.",
            )
        if (
            interactive.lines_to_keep_start + interactive.lines_to_keep_end
            >= interactive.max_lines_before_truncation
        ):
            raise ValueError(
                "HIVE_MIND_MAX_LINES_BEFORE_TRUNCATION must exceed the kept start + end lines.",
            )

        if self.feedback.poll_interval_seconds <= 0:
            raise ValueError("HIVE_MIND_FEEDBACK_POLL_SECONDS must be > 0.")
        if self.feedback.max_queue_size <= 0:
            raise ValueError("HIVE_MIND_FEEDBACK_MAX_QUEUE must be > 0.")
        if self.live_updates.check_interval_seconds <= 0:
            raise ValueError("HIVE_MIND_LIVE_UPDATES_INTERVAL_SECONDS must be > 0.")
        if self.live_updates.liveness_log_every <= 0:
            raise ValueError("HIVE_MIND_LIVE_UPDATES_LOG_EVERY must be > 0.")
        if self.agent.timeout_seconds <= 0:
            raise ValueError("HIVE_MIND_AGENT_TIMEOUT_SECONDS must be > 0.")
        if self.agent.graceful_shutdown_seconds < 0:
            raise ValueError("HIVE_MIND_AGENT_GRACEFUL_SHUTDOWN_SECONDS must be >= 0.")

    def require_repo(self, override_repo: str | None = None) -> str:
        """Return the effective ``owner/name`` repository or raise configuration error."""

        repo = (override_repo or self.github.repo).strip()
        if not repo:
            raise ValueError(
                "A GitHub repository is required. Set HIVE_MIND_GITHUB_REPO or pass --repo.",
            )
        if not _REPO_PATTERN.match(repo):
            raise ValueError(f"Invalid GitHub repository: {repo!r}. Expected 'owner/name'.")
        return repo


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
