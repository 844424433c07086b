"""Markdown building blocks for PR comments generated from agent events."""

from __future__ import annotations

import json
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

UNKNOWN = "unknown"
CIRCULAR_MARKER = "[Circular]"
RAW_JSON_SUMMARY = "📄 Raw JSON"
DEFAULT_TOOL_ICON = "🔧"

TOOL_ICONS: dict[str, str] = {
    "Bash": "💻",
    "Edit": "📝",
    "MultiEdit": "📝",
    "Read": "📖",
    "Write": "✏️",
    "Glob": "🔍",
    "Grep": "🔎",
    "WebFetch": "🌐",
    "WebSearch": "🌐",
    "TodoWrite": "📋",
    "Task": "🎯",
    "NotebookEdit": "📓",
}

TODO_STATUS_ICONS: dict[str, str] = {
    "completed": "✅",
    "in_progress": "🔄",
    "pending": "⏳",
}


@dataclass(slots=True, frozen=True)
class TruncationPolicy:
    """How many lines a comment section may carry before its middle is elided."""

    max_lines: int = 50
    keep_start: int = 20
    keep_end: int = 20

    def apply(self, text: str | None) -> str:
        return truncate_middle(
            text,
            max_lines=self.max_lines,
            keep_start=self.keep_start,
            keep_end=self.keep_end,
        )


def truncate_middle(
    text: str | None,
    *,
    max_lines: int = 50,
    keep_start: int = 20,
    keep_end: int = 20,
) -> str:
    """Keep the head and tail of long text and replace the middle with one marker line."""

    if not text:
        return ""
    lines = text.split("\n")
    keep_start = max(keep_start, 0)
    keep_end = max(keep_end, 0)
    if len(lines) <= max_lines or keep_start + keep_end >= len(lines):
        return text
    removed = len(lines) - keep_start - keep_end
    head = lines[:keep_start]
    tail = lines[len(lines) - keep_end :] if keep_end > 0 else []
    return "\n".join([*head, "", f"... [{removed} lines truncated] ...", "", *tail])


def safe_json_dumps(value: Any, *, indent: int | None = 2) -> str:
    """Serialize arbitrary data to JSON, labelling reference cycles instead of failing."""

    return json.dumps(_to_jsonable(value, frozenset()), indent=indent, ensure_ascii=False)


def _to_jsonable(value: Any, ancestors: frozenset[int]) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, (dict, list, tuple)):
        marker = id(value)
        if marker in ancestors:
            return CIRCULAR_MARKER
        path = ancestors | {marker}
        if isinstance(value, dict):
            return {str(key): _to_jsonable(item, path) for key, item in value.items()}
        return [_to_jsonable(item, path) for item in value]
    return str(value)


def create_collapsible(summary: str, content: str, open_by_default: bool = False) -> str:
    """Wrap content into a GitHub ``<details>`` block."""

    opening = "<details open>" if open_by_default else "<details>"
    return f"{opening}\n<summary>{summary}</summary>\n\n{content}\n\n</details>"


def create_raw_json_section(data: Any, policy: TruncationPolicy | None = None) -> str:
    """Render the trailing collapsed raw JSON section; the payload is always a top-level array."""

    payload = data if isinstance(data, list) else [data]
    dumped = safe_json_dumps(payload)
    if policy is not None:
        dumped = policy.apply(dumped)
    return create_collapsible(RAW_JSON_SUMMARY, f"```json\n{dumped}\n```")


def format_duration(milliseconds: Any) -> str:
    """Render milliseconds as ``1h 1m 1s`` / ``2m 7s`` / ``45s``."""

    if not _is_valid_number(milliseconds) or milliseconds < 0:
        return UNKNOWN
    total_seconds = int(milliseconds // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_cost(usd: Any) -> str:
    if not _is_valid_number(usd) or usd < 0:
        return UNKNOWN
    return f"${usd:.2f}"


def format_number(value: Any) -> str:
    if not _is_valid_number(value):
        return UNKNOWN
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.2f}"
    return f"{int(value):,}"


def _is_valid_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def escape_markdown(text: str | None) -> str:
    """Neutralize code fences so embedded text cannot close the surrounding block."""

    if not text:
        return ""
    return text.replace("```", "\\`\\`\\`")


def get_tool_icon(tool_name: str | None) -> str:
    return TOOL_ICONS.get(tool_name or "", DEFAULT_TOOL_ICON)


def code_block(content: str, language: str = "") -> str:
    return f"```{language}\n{escape_markdown(content)}\n```"


ToolDisplay = Callable[[dict[str, Any], TruncationPolicy], str]


class ToolDisplayRegistry:
    """Map tool names to input display strategies, with generic JSON as the fallback."""

    def __init__(
        self,
        displays: dict[str, ToolDisplay] | None = None,
        *,
        default: ToolDisplay | None = None,
    ) -> None:
        self._displays: dict[str, ToolDisplay] = dict(displays or {})
        self._default: ToolDisplay = default or display_generic_input

    def register(self, tool_name: str, display: ToolDisplay) -> None:
        self._displays[tool_name] = display

    def resolve(self, tool_name: str | None) -> ToolDisplay:
        return self._displays.get(tool_name or "", self._default)

    def render(self, tool_name: str | None, tool_input: Any, policy: TruncationPolicy) -> str:
        if not isinstance(tool_input, dict):
            return display_generic_input({"input": tool_input}, policy)
        return self.resolve(tool_name)(tool_input, policy)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._displays


def display_generic_input(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    return create_collapsible(
        "📥 Input",
        code_block(policy.apply(safe_json_dumps(tool_input)), "json"),
        open_by_default=True,
    )


def display_bash(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    parts: list[str] = []
    description = str(tool_input.get("description") or "").strip()
    if description:
        parts.append(f"**Description:** {description}")
    command = str(tool_input.get("command") or "")
    parts.append(
        create_collapsible(
            "📋 Executed command",
            code_block(policy.apply(command), "bash"),
            open_by_default=True,
        ),
    )
    return "\n\n".join(parts)


def display_read(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    del policy
    lines = [f"**File:** `{tool_input.get('file_path') or tool_input.get('path') or ''}`"]
    offset = tool_input.get("offset")
    limit = tool_input.get("limit")
    if _is_valid_number(offset) or _is_valid_number(limit):
        start = int(offset) if _is_valid_number(offset) else 1
        if _is_valid_number(limit):
            lines.append(f"**Lines:** {start}-{start + int(limit) - 1}")
        else:
            lines.append(f"**Lines:** from {start}")
    return "\n".join(lines)


def display_write(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    content = str(tool_input.get("content") or "")
    line_count = len(content.split("\n")) if content else 0
    return "\n\n".join(
        [
            f"**File:** `{tool_input.get('file_path') or ''}`",
            create_collapsible(
                f"📄 Content ({line_count} lines)",
                code_block(policy.apply(content)),
            ),
        ],
    )


def display_edit(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    parts = [f"**File:** `{tool_input.get('file_path') or ''}`"]
    edits = tool_input.get("edits")
    if isinstance(edits, list):
        pairs = [
            (str(item.get("old_string") or ""), str(item.get("new_string") or ""))
            for item in edits
            if isinstance(item, dict)
        ]
    else:
        pairs = [(str(tool_input.get("old_string") or ""), str(tool_input.get("new_string") or ""))]
    if tool_input.get("replace_all"):
        parts.append("_Replace all occurrences_")
    for index, (old, new) in enumerate(pairs, start=1):
        diff = "\n".join(
            [*(f"- {line}" for line in old.split("\n")), *(f"+ {line}" for line in new.split("\n"))],
        )
        summary = "🔀 Changes" if len(pairs) == 1 else f"🔀 Change {index} of {len(pairs)}"
        parts.append(
            create_collapsible(summary, code_block(policy.apply(diff), "diff"), open_by_default=True),
        )
    return "\n\n".join(parts)


def display_todo_write(
    tool_input: dict[str, Any],
    policy: TruncationPolicy,
    *,
    max_items: int = 10,
    keep_start: int = 5,
    keep_end: int = 3,
) -> str:
    del policy
    todos = [item for item in tool_input.get("todos") or [] if isinstance(item, dict)]
    if not todos:
        return "_No todos_"
    rendered = [
        f"- {TODO_STATUS_ICONS.get(str(item.get('status')), '•')} "
        f"{item.get('content') or item.get('activeForm') or ''}"
        for item in todos
    ]
    if len(rendered) > max_items:
        hidden = len(rendered) - keep_start - keep_end
        rendered = [
            *rendered[:keep_start],
            f"- _... {hidden} more items ..._",
            *rendered[len(rendered) - keep_end :],
        ]
    completed = sum(1 for item in todos if item.get("status") == "completed")
    return f"**Todos** ({completed}/{len(todos)} completed)\n\n" + "\n".join(rendered)


def display_search(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    del policy
    lines = [f"**Pattern:** `{tool_input.get('pattern') or ''}`"]
    for key, label in (("path", "Path"), ("glob", "Glob"), ("type", "Type")):
        value = tool_input.get(key)
        if value:
            lines.append(f"**{label}:** `{value}`")
    return "\n".join(lines)


def display_web(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    lines: list[str] = []
    if tool_input.get("url"):
        lines.append(f"**URL:** {tool_input['url']}")
    if tool_input.get("query"):
        lines.append(f"**Query:** {tool_input['query']}")
    if tool_input.get("prompt"):
        lines.append(create_collapsible("💭 Prompt", policy.apply(str(tool_input["prompt"]))))
    return "\n\n".join(lines) if lines else display_generic_input(tool_input, policy)


def display_task(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    parts = [f"**Description:** {tool_input.get('description') or ''}"]
    if tool_input.get("subagent_type"):
        parts.append(f"**Agent:** `{tool_input['subagent_type']}`")
    prompt = str(tool_input.get("prompt") or "")
    if prompt:
        parts.append(create_collapsible("💭 Prompt", policy.apply(prompt)))
    return "\n\n".join(parts)


def display_notebook_edit(tool_input: dict[str, Any], policy: TruncationPolicy) -> str:
    parts = [f"**Notebook:** `{tool_input.get('notebook_path') or ''}`"]
    if tool_input.get("cell_id"):
        parts.append(f"**Cell:** `{tool_input['cell_id']}`")
    source = str(tool_input.get("new_source") or "")
    if source:
        parts.append(create_collapsible("📄 Source", code_block(policy.apply(source))))
    return "\n\n".join(parts)


def default_tool_displays() -> ToolDisplayRegistry:
    return ToolDisplayRegistry(
        {
            "Bash": display_bash,
            "Read": display_read,
            "Write": display_write,
            "Edit": display_edit,
            "MultiEdit": display_edit,
            "TodoWrite": display_todo_write,
            "Glob": display_search,
            "Grep": display_search,
            "WebFetch": display_web,
            "WebSearch": display_web,
            "Task": display_task,
            "NotebookEdit": display_notebook_edit,
        },
    )
