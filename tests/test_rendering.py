from __future__ import annotations

import json

import allure
import pytest

from hive_mind.interactive.rendering import (
    CIRCULAR_MARKER,
    ToolDisplayRegistry,
    TruncationPolicy,
    create_collapsible,
    create_raw_json_section,
    default_tool_displays,
    escape_markdown,
    format_cost,
    format_duration,
    format_number,
    get_tool_icon,
    safe_json_dumps,
    truncate_middle,
)

pytestmark = [
    allure.epic("Interactive Mode"),
    allure.feature("Comment Rendering"),
]


def _lines(count: int) -> str:
    return "\n".join(f"line {index}" for index in range(1, count + 1))


@pytest.mark.parametrize("count", [1, 10, 50])
def test_truncate_middle_is_identity_at_or_under_threshold(count: int) -> None:
    text = _lines(count)

    assert truncate_middle(text) == text


def test_truncate_middle_keeps_head_and_tail_and_counts_removed_lines() -> None:
    result = truncate_middle(_lines(100)).split("\n")

    assert len(result) == 20 + 20 + 3
    assert result[:20] == [f"line {index}" for index in range(1, 21)]
    assert result[20:23] == ["", "... [60 lines truncated] ...", ""]
    assert result[23:] == [f"line {index}" for index in range(81, 101)]


def test_truncate_middle_respects_custom_policy() -> None:
    policy = TruncationPolicy(max_lines=5, keep_start=2, keep_end=1)

    result = policy.apply(_lines(8))

    assert result == "line 1\nline 2\n\n... [5 lines truncated] ...\n\nline 8"


def test_truncate_middle_keeps_text_when_kept_lines_cover_everything() -> None:
    policy = TruncationPolicy(max_lines=5, keep_start=4, keep_end=4)
    text = _lines(7)

    assert policy.apply(text) == text
    assert "truncated" not in policy.apply(_lines(8))
    assert "... [1 lines truncated] ..." in policy.apply(_lines(9))


def test_truncate_middle_handles_empty_input() -> None:
    assert truncate_middle(None) == ""
    assert truncate_middle("") == ""


def test_safe_json_dumps_labels_circular_references() -> None:
    payload: dict = {"name": "loop", "items": [1, 2]}
    payload["self"] = payload
    payload["items"].append(payload["items"])

    decoded = json.loads(safe_json_dumps(payload))

    assert decoded["self"] == CIRCULAR_MARKER
    assert decoded["items"] == [1, 2, CIRCULAR_MARKER]


def test_safe_json_dumps_keeps_shared_non_circular_references() -> None:
    shared = {"k": "v"}

    decoded = json.loads(safe_json_dumps({"a": shared, "b": shared}))

    assert decoded == {"a": {"k": "v"}, "b": {"k": "v"}}


def test_safe_json_dumps_stringifies_non_finite_floats() -> None:
    assert json.loads(safe_json_dumps({"x": float("nan")})) == {"x": "nan"}


def test_raw_json_section_wraps_single_object_in_array() -> None:
    section = create_raw_json_section({"type": "test", "value": 123})

    assert section.startswith("<details>\n<summary>📄 Raw JSON</summary>")
    body = section.split("```json\n", 1)[1].split("\n```", 1)[0]
    assert json.loads(body) == [{"type": "test", "value": 123}]


def test_raw_json_section_does_not_double_wrap_arrays() -> None:
    section = create_raw_json_section([{"type": "first"}, {"type": "second"}])

    body = section.split("```json\n", 1)[1].split("\n```", 1)[0]
    assert json.loads(body) == [{"type": "first"}, {"type": "second"}]


def test_create_collapsible_open_and_closed() -> None:
    assert create_collapsible("S", "C") == "<details>\n<summary>S</summary>\n\nC\n\n</details>"
    assert create_collapsible("S", "C", open_by_default=True).startswith("<details open>\n")


@pytest.mark.parametrize(
    ("milliseconds", "expected"),
    [
        (45_000, "45s"),
        (127_000, "2m 7s"),
        (3_661_000, "1h 1m 1s"),
        (0, "0s"),
        (-1, "unknown"),
        (None, "unknown"),
        ("12", "unknown"),
        (float("nan"), "unknown"),
    ],
)
def test_format_duration(milliseconds, expected: str) -> None:
    assert format_duration(milliseconds) == expected


@pytest.mark.parametrize(
    ("usd", "expected"),
    [
        (1.6043, "$1.60"),
        (0.05, "$0.05"),
        (0, "$0.00"),
        (float("nan"), "unknown"),
        (None, "unknown"),
        ("1.5", "unknown"),
    ],
)
def test_format_cost(usd, expected: str) -> None:
    assert format_cost(usd) == expected


def test_format_number() -> None:
    assert format_number(1234567) == "1,234,567"
    assert format_number(12.5) == "12.50"
    assert format_number(True) == "unknown"
    assert format_number(None) == "unknown"


def test_escape_markdown_neutralizes_code_fences() -> None:
    assert escape_markdown("code```block```here") == "code\\`\\`\\`block\\`\\`\\`here"
    assert escape_markdown(None) == ""
    assert escape_markdown("") == ""


def test_tool_icons() -> None:
    assert get_tool_icon("Bash") == "💻"
    assert get_tool_icon("Read") == "📖"
    assert get_tool_icon("Edit") == "📝"
    assert get_tool_icon("TodoWrite") == "📋"
    assert get_tool_icon("UnknownTool") == "🔧"
    assert get_tool_icon(None) == "🔧"


def test_registry_falls_back_to_generic_json_for_unknown_tools() -> None:
    registry = default_tool_displays()

    rendered = registry.render("Mystery", {"alpha": 1}, TruncationPolicy())

    assert "📥 Input" in rendered
    assert '"alpha": 1' in rendered


def test_registry_accepts_custom_strategies() -> None:
    registry = ToolDisplayRegistry()
    registry.register("Echo", lambda tool_input, policy: f"echo:{tool_input['x']}")

    assert "Echo" in registry
    assert registry.render("Echo", {"x": 3}, TruncationPolicy()) == "echo:3"


def test_bash_display_shows_command_and_description() -> None:
    rendered = default_tool_displays().render(
        "Bash",
        {"command": "echo hi", "description": "Say hi"},
        TruncationPolicy(),
    )

    assert "**Description:** Say hi" in rendered
    assert "📋 Executed command" in rendered
    assert "```bash\necho hi\n```" in rendered


def test_read_display_shows_line_range() -> None:
    rendered = default_tool_displays().render(
        "Read",
        {"file_path": "/src/app.py", "offset": 10, "limit": 5},
        TruncationPolicy(),
    )

    assert "`/src/app.py`" in rendered
    assert "**Lines:** 10-14" in rendered


def test_edit_display_renders_diff_style_change() -> None:
    rendered = default_tool_displays().render(
        "Edit",
        {"file_path": "a.py", "old_string": "x = 1", "new_string": "x = 2"},
        TruncationPolicy(),
    )

    assert "- x = 1\n+ x = 2" in rendered


def test_todo_display_elides_middle_items_beyond_cap() -> None:
    todos = [{"content": f"task {index}", "status": "pending"} for index in range(1, 15)]
    todos[0]["status"] = "completed"

    rendered = default_tool_displays().render("TodoWrite", {"todos": todos}, TruncationPolicy())

    assert "(1/14 completed)" in rendered
    assert "✅ task 1" in rendered
    assert "task 5" in rendered
    assert "task 6" not in rendered
    assert "6 more items" in rendered
    assert "task 14" in rendered


def test_command_display_escapes_embedded_fences() -> None:
    rendered = default_tool_displays().render(
        "Bash",
        {"command": "cat <<EOF\n```\nEOF"},
        TruncationPolicy(),
    )

    assert "\\`\\`\\`" in rendered
