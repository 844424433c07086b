from __future__ import annotations

import allure
from click.testing import CliRunner

from hive_mind import __version__
from hive_mind.main import hive_mind

pytestmark = [
    allure.epic("Agent Sessions"),
    allure.feature("CLI"),
]

EVENTS = [
    {"type": "system", "subtype": "init", "session_id": "cli-1", "tools": ["Bash"]},
    {"type": "assistant", "message": {"content": [{"type": "text", "text": "Checking"}]}},
    {
        "type": "assistant",
        "message": {
            "content": [{"type": "tool_use", "id": "toolu_9", "name": "Bash", "input": {"command": "pwd"}}],
        },
    },
    {
        "type": "user",
        "message": {"content": [{"type": "tool_result", "tool_use_id": "toolu_9", "content": "/work"}]},
    },
    {"type": "result", "subtype": "success", "is_error": False, "duration_ms": 900},
]


def test_version() -> None:
    result = CliRunner().invoke(hive_mind, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_replay_dry_run_prints_every_write(clean_env, events_file) -> None:
    path = events_file(EVENTS)

    result = CliRunner().invoke(hive_mind, ["session", "replay", str(path), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "[post 1000000] ## 🚀 Session Started" in result.output
    assert "[post 1000002] ## 💻 Tool: Bash" in result.output
    assert "[edit 1000002] ## 💻 Tool: Bash ✅" in result.output
    assert "[post 1000003] ## ✅ Session Complete" in result.output
    assert "Events processed: 5" in result.output
    assert "Comments posted: 4, edited: 1, failed: 0" in result.output
    assert "Session ID: cli-1" in result.output


def test_replay_show_bodies_prints_full_comments(clean_env, events_file) -> None:
    path = events_file(EVENTS[:2])

    result = CliRunner().invoke(
        hive_mind,
        ["session", "replay", str(path), "--dry-run", "--show-bodies"],
    )

    assert result.exit_code == 0, result.output
    assert "📄 Raw JSON" in result.output
    assert "Checking" in result.output


def test_replay_without_pr_is_rejected(clean_env, events_file) -> None:
    path = events_file(EVENTS)

    result = CliRunner().invoke(hive_mind, ["session", "replay", str(path), "--repo", "octo/repo"])

    assert result.exit_code == 1
    assert "--pr is required unless --dry-run is used." in result.output


def test_replay_without_repo_is_rejected(clean_env, events_file) -> None:
    path = events_file(EVENTS)

    result = CliRunner().invoke(hive_mind, ["session", "replay", str(path), "--pr", "3"])

    assert result.exit_code == 1
    assert "A GitHub repository is required" in result.output


def test_run_dry_run_drives_the_agent(clean_env, events_file, replay_command, replay_env) -> None:
    clean_env.setenv("HIVE_MIND_MIN_COMMENT_INTERVAL_SECONDS", "0")
    clean_env.setenv("PYTHONPATH", replay_env["PYTHONPATH"])
    path = events_file(EVENTS)

    result = CliRunner().invoke(
        hive_mind,
        ["session", "run", "--dry-run", "--timeout", "60", "--", *replay_command, str(path)],
    )

    assert result.exit_code == 0, result.output
    assert "[edit 1000002] ## 💻 Tool: Bash ✅" in result.output
    assert "Agent exit code: 0" in result.output
    assert "Comments posted: 4, edited: 1, failed: 0" in result.output


def test_run_failing_agent_reports_stderr(clean_env, replay_command, replay_env) -> None:
    clean_env.setenv("PYTHONPATH", replay_env["PYTHONPATH"])

    result = CliRunner().invoke(
        hive_mind,
        ["session", "run", "--dry-run", "--", *replay_command, "/definitely/missing.jsonl"],
    )

    assert result.exit_code == 1
    assert "Agent exit code: 2" in result.output
    assert "stderr:" in result.output
    assert "Agent session failed." in result.output


def test_run_warns_when_tool_does_not_support_interactive_mode(
    clean_env,
    events_file,
    replay_command,
    replay_env,
) -> None:
    clean_env.setenv("PYTHONPATH", replay_env["PYTHONPATH"])
    path = events_file(EVENTS[:1])

    result = CliRunner().invoke(
        hive_mind,
        ["session", "run", "--dry-run", "--tool", "codex", "--", *replay_command, str(path)],
    )

    assert result.exit_code == 0, result.output
    assert "Warning: Interactive mode is only supported for tool 'claude'" in result.output
    assert "[post" not in result.output
    assert "Comments posted: 0, edited: 0, failed: 0" in result.output
