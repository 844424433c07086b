from __future__ import annotations

import sys

import allure
import pytest

from hive_mind.config import FeedbackSettings, InteractiveSettings
from hive_mind.interactive.feedback import FEEDBACK_START_MARKER, BidirectionalFeedbackMonitor
from hive_mind.interactive.handler import InteractiveSessionHandler
from hive_mind.session import (
    TIMEOUT_EXIT_CODE,
    AgentSessionError,
    AgentSessionRunner,
    SessionRunRequest,
)

pytestmark = [
    allure.epic("Agent Sessions"),
    allure.feature("Session Runner"),
]

SESSION_EVENTS = [
    {"type": "system", "subtype": "init", "session_id": "replay-1", "tools": ["Bash"]},
    {"type": "assistant", "message": {"content": [{"type": "text", "text": "Listing files"}]}},
    {
        "type": "assistant",
        "message": {
            "content": [{"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"command": "ls"}}],
        },
    },
    {
        "type": "user",
        "message": {
            "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "README.md"}],
        },
    },
    {"type": "result", "subtype": "success", "is_error": False, "duration_ms": 1200, "num_turns": 2},
]


def _handler(tracker) -> InteractiveSessionHandler:
    return InteractiveSessionHandler(
        tracker=tracker,
        repo="o/r",
        pr_number=7,
        settings=InteractiveSettings(min_comment_interval_seconds=0.0, background_drain=False),
    )


def test_replayed_session_is_mirrored_into_comments(
    tracker,
    events_file,
    replay_command,
    replay_env,
) -> None:
    runner = AgentSessionRunner(handler=_handler(tracker))

    result = runner.run(
        SessionRunRequest(
            command=[*replay_command, str(events_file(SESSION_EVENTS)), "--exit-code", "3"],
            timeout_seconds=30,
            env=replay_env,
        ),
    )

    assert result.exit_code == 3
    assert result.timed_out is False
    assert result.events_processed == 5
    assert result.state.session_id == "replay-1"
    headings = [call.body.split("\n", 1)[0] for call in tracker.posts]
    assert headings == [
        "## 🚀 Session Started",
        "## 💬 Assistant Response",
        "## 💻 Tool: Bash",
        "## ✅ Session Complete",
    ]
    assert len(tracker.edits) == 1
    assert "README.md" in tracker.edits[0].body


def test_bidirectional_feedback_reaches_the_agent(
    tracker,
    events_file,
    replay_command,
    replay_env,
) -> None:
    tracker.add_comment(7, 500, "alice", "Please also add tests")
    monitor = BidirectionalFeedbackMonitor(
        tracker=tracker,
        repo="o/r",
        pr_number=7,
        settings=FeedbackSettings(poll_interval_seconds=3600),
    )
    runner = AgentSessionRunner(handler=_handler(tracker), feedback_monitor=monitor, bidirectional=True)

    result = runner.run(
        SessionRunRequest(
            command=[*replay_command, str(events_file(SESSION_EVENTS)), "--echo-input"],
            timeout_seconds=30,
            env=replay_env,
        ),
    )

    assert result.exit_code == 0
    assert result.feedback_injected == 1
    echoed = [call.body for call in tracker.posts if "Received:" in call.body]
    assert len(echoed) == 1
    assert FEEDBACK_START_MARKER in echoed[0]
    assert "Please also add tests" in echoed[0]
    assert monitor.is_monitoring is False


def test_timeout_terminates_the_agent(tracker, events_file, replay_command, replay_env) -> None:
    runner = AgentSessionRunner(handler=_handler(tracker))

    result = runner.run(
        SessionRunRequest(
            command=[*replay_command, str(events_file(SESSION_EVENTS)), "--delay", "5"],
            timeout_seconds=0.5,
            graceful_shutdown_seconds=1,
            env=replay_env,
        ),
    )

    assert result.timed_out is True
    assert result.exit_code == TIMEOUT_EXIT_CODE
    assert result.events_processed < len(SESSION_EVENTS)


def test_stderr_tail_is_kept_and_non_json_output_is_reported(tracker) -> None:
    script = "import sys; print('plain text'); sys.stderr.write('boom\\n'); sys.exit(2)"
    runner = AgentSessionRunner(handler=_handler(tracker))

    result = runner.run(SessionRunRequest(command=[sys.executable, "-c", script], timeout_seconds=30))

    assert result.exit_code == 2
    assert result.stderr_tail == ["boom"]
    assert result.state.unrecognized_count == 1
    assert tracker.posts[0].body.startswith("## ❓ Unrecognized Event: non-json output")


def test_missing_agent_binary_raises(tracker) -> None:
    runner = AgentSessionRunner(handler=_handler(tracker))

    with pytest.raises(AgentSessionError, match="not found") as error:
        runner.run(SessionRunRequest(command=["hive-mind-no-such-agent-binary"]))

    assert error.value.transient is False


def test_empty_command_is_rejected(tracker) -> None:
    with pytest.raises(AgentSessionError, match="empty"):
        AgentSessionRunner(handler=_handler(tracker)).run(SessionRunRequest(command=[]))
