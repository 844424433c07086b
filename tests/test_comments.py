from __future__ import annotations

import json

import allure

from hive_mind.interactive.comments import WAITING_FOR_RESULT, CommentRenderer
from hive_mind.interactive.events import classify_event
from hive_mind.interactive.feedback import is_system_comment
from hive_mind.interactive.rendering import TruncationPolicy

pytestmark = [
    allure.epic("Interactive Mode"),
    allure.feature("Comment Rendering"),
]

TOOL_USE = {
    "type": "assistant",
    "message": {
        "content": [
            {"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"command": "echo hi"}},
        ],
    },
}
TOOL_RESULT = {
    "type": "user",
    "message": {
        "content": [
            {"type": "tool_result", "tool_use_id": "toolu_1", "content": "hi\n", "is_error": False},
        ],
    },
}


def _raw_json(body: str):
    section = body.split("<summary>📄 Raw JSON</summary>", 1)[1]
    return json.loads(section.split("```json\n", 1)[1].split("\n```", 1)[0])


def test_every_rendered_comment_is_recognized_as_system_generated() -> None:
    renderer = CommentRenderer()
    payloads = [
        {"type": "system", "subtype": "init", "session_id": "s1", "tools": ["Bash"]},
        {"type": "assistant", "message": {"content": [{"type": "text", "text": "Hello"}]}},
        TOOL_USE,
        TOOL_RESULT,
        {"type": "result", "subtype": "success", "duration_ms": 1000},
        {"type": "result", "subtype": "error_max_turns", "is_error": True},
        {"type": "mystery"},
    ]

    for payload in payloads:
        for event in classify_event(payload):
            assert is_system_comment(renderer.render(event)), payload


def test_tool_use_comment_shows_input_and_waits_for_result() -> None:
    (event,) = classify_event(TOOL_USE)

    body = CommentRenderer().render(event)

    assert body.startswith("## 💻 Tool: Bash\n")
    assert "echo hi" in body
    assert WAITING_FOR_RESULT in body
    assert _raw_json(body) == [TOOL_USE]


def test_merged_tool_call_combines_input_result_and_both_raw_payloads() -> None:
    renderer = CommentRenderer()
    (tool_use,) = classify_event(TOOL_USE)
    (result,) = classify_event(TOOL_RESULT)

    body = renderer.render_merged_tool_call(renderer.describe_tool_use(tool_use), tool_use.raw, result)

    assert body.startswith("## 💻 Tool: Bash ✅\n")
    assert "echo hi" in body
    assert "📤 Output (✅ success)" in body
    assert WAITING_FOR_RESULT not in body
    assert _raw_json(body) == [TOOL_USE, TOOL_RESULT]


def test_standalone_error_result_heading() -> None:
    (result,) = classify_event(
        {
            "type": "user",
            "message": {"content": [{"type": "tool_result", "tool_use_id": "x", "content": "no", "is_error": True}]},
        },
    )

    body = CommentRenderer().render(result)

    assert body.startswith("## ❌ Tool Result: Error")
    assert "📤 Output (❌ error)" in body


def test_session_result_renders_stats_and_unknown_for_invalid_numbers() -> None:
    (event,) = classify_event(
        {
            "type": "result",
            "subtype": "success",
            "duration_ms": 727_000,
            "num_turns": 68,
            "total_cost_usd": "n/a",
        },
    )

    body = CommentRenderer().render(event)

    assert body.startswith("## ✅ Session Complete")
    assert "| Duration | 12m 7s |" in body
    assert "| Turns | 68 |" in body
    assert "| Cost | unknown |" in body


def test_failed_session_heading() -> None:
    (event,) = classify_event({"type": "result", "subtype": "error_during_execution", "is_error": True})

    assert CommentRenderer().render(event).startswith("## ❌ Session Failed")


def test_unrecognized_event_embeds_original_payload() -> None:
    payload = {"type": "telemetry", "value": 7}
    (event,) = classify_event(payload)

    body = CommentRenderer().render(event)

    assert body.startswith("## ❓ Unrecognized Event: telemetry")
    assert _raw_json(body) == [payload]


def test_long_assistant_text_is_truncated() -> None:
    text = "\n".join(f"row {index}" for index in range(200))
    (event,) = classify_event({"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}})

    body = CommentRenderer(policy=TruncationPolicy(max_lines=10, keep_start=3, keep_end=3)).render(event)

    assert "... [194 lines truncated] ..." in body
    assert "row 100" not in body.split("<details>")[0]
