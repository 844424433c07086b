"""PR comment bodies for classified agent events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hive_mind.interactive.events import (
    AssistantText,
    Event,
    SessionResult,
    SystemInit,
    ToolResult,
    ToolUse,
    UnrecognizedEvent,
)
from hive_mind.interactive.rendering import (
    ToolDisplayRegistry,
    TruncationPolicy,
    code_block,
    create_collapsible,
    create_raw_json_section,
    default_tool_displays,
    format_cost,
    format_duration,
    format_number,
    get_tool_icon,
)

WAITING_FOR_RESULT = "_⏳ Waiting for result..._"


@dataclass(slots=True, frozen=True)
class ToolUseDisplay:
    """Pre-rendered pieces of a tool-use comment reused when its result is merged in."""

    tool_name: str
    tool_icon: str
    input_display: str


@dataclass(slots=True)
class CommentRenderer:
    """Turn events into GitHub-flavored Markdown comment bodies.

    Every body starts with a ``## `` heading and ends with a collapsed raw JSON
    section holding the source payload as a top-level array.
    """

    policy: TruncationPolicy = field(default_factory=TruncationPolicy)
    tool_displays: ToolDisplayRegistry = field(default_factory=default_tool_displays)

    def render(self, event: Event) -> str:
        if isinstance(event, SystemInit):
            return self.render_session_started(event)
        if isinstance(event, AssistantText):
            return self.render_assistant_text(event)
        if isinstance(event, ToolUse):
            return self.render_tool_use(event)
        if isinstance(event, ToolResult):
            return self.render_tool_result(event)
        if isinstance(event, SessionResult):
            return self.render_session_result(event)
        return self.render_unrecognized(event)

    def render_session_started(self, event: SystemInit) -> str:
        rows = [
            ("Session ID", f"`{event.session_id}`" if event.session_id else "unknown"),
            ("Model", f"`{event.model}`" if event.model else "unknown"),
            ("Working directory", f"`{event.cwd}`" if event.cwd else "unknown"),
        ]
        if event.permission_mode:
            rows.append(("Permission mode", f"`{event.permission_mode}`"))
        sections = ["## 🚀 Session Started", _table(rows)]
        if event.tools:
            sections.append(
                create_collapsible(
                    f"🧰 Available tools ({len(event.tools)})",
                    ", ".join(f"`{tool}`" for tool in event.tools),
                ),
            )
        sections.append(self._raw(event.raw))
        return _join(sections)

    def render_assistant_text(self, event: AssistantText) -> str:
        return _join(
            [
                "## 💬 Assistant Response",
                self.policy.apply(event.text.strip()),
                self._raw(event.raw),
            ],
        )

    def describe_tool_use(self, event: ToolUse) -> ToolUseDisplay:
        return ToolUseDisplay(
            tool_name=event.name,
            tool_icon=get_tool_icon(event.name),
            input_display=self.tool_displays.render(event.name, event.input, self.policy),
        )

    def render_tool_use(self, event: ToolUse, display: ToolUseDisplay | None = None) -> str:
        display = display or self.describe_tool_use(event)
        return _join(
            [
                f"## {display.tool_icon} Tool: {display.tool_name}",
                display.input_display,
                WAITING_FOR_RESULT,
                self._raw(event.raw),
            ],
        )

    def render_tool_result(self, event: ToolResult, display: ToolUseDisplay | None = None) -> str:
        """Standalone result comment, used when there is no tool-use comment to merge into."""

        mark, status = ("❌", "Error") if event.is_error else ("✅", "Success")
        sections = [f"## {mark} Tool Result: {status}"]
        details: list[tuple[str, str]] = []
        if display is not None:
            details.append(("Tool", f"{display.tool_icon} {display.tool_name}"))
        if event.tool_use_id:
            details.append(("Tool use ID", f"`{event.tool_use_id}`"))
        if details:
            sections.append("\n".join(f"**{label}:** {value}" for label, value in details))
        sections.append(self._output(event))
        sections.append(self._raw(event.raw))
        return _join(sections)

    def render_merged_tool_call(
        self,
        display: ToolUseDisplay,
        tool_use_raw: Any,
        result: ToolResult,
    ) -> str:
        """Tool-use comment with its result folded in, replacing the waiting marker."""

        mark = "❌" if result.is_error else "✅"
        return _join(
            [
                f"## {display.tool_icon} Tool: {display.tool_name} {mark}",
                display.input_display,
                self._output(result),
                self._raw([tool_use_raw, result.raw]),
            ],
        )

    def render_session_result(self, event: SessionResult) -> str:
        failed = event.is_error or (event.subtype not in (None, "success"))
        heading = "## ❌ Session Failed" if failed else "## ✅ Session Complete"
        rows = [
            ("Status", event.subtype or ("error" if failed else "success")),
            ("Duration", format_duration(event.duration_ms)),
            ("API duration", format_duration(event.duration_api_ms)),
            ("Turns", format_number(event.num_turns)),
            ("Cost", format_cost(event.total_cost_usd)),
        ]
        if event.session_id:
            rows.append(("Session ID", f"`{event.session_id}`"))
        sections = [heading, _table(rows)]
        if event.usage:
            usage_rows = [
                (label, format_number(event.usage.get(key)))
                for key, label in (
                    ("input_tokens", "Input tokens"),
                    ("output_tokens", "Output tokens"),
                    ("cache_creation_input_tokens", "Cache creation tokens"),
                    ("cache_read_input_tokens", "Cache read tokens"),
                )
                if key in event.usage
            ]
            if usage_rows:
                sections.append(create_collapsible("📊 Token usage", _table(usage_rows)))
        if event.result:
            summary = "❗ Error" if failed else "📝 Final message"
            sections.append(
                create_collapsible(summary, self.policy.apply(event.result.strip()), open_by_default=True),
            )
        sections.append(self._raw(event.raw))
        return _join(sections)

    def render_unrecognized(self, event: UnrecognizedEvent) -> str:
        return _join(
            [
                f"## ❓ Unrecognized Event: {event.event_type}",
                "The agent emitted an event this session handler does not know how to display.",
                self._raw(event.raw),
            ],
        )

    def _output(self, result: ToolResult) -> str:
        status = "❌ error" if result.is_error else "✅ success"
        content = self.policy.apply(result.content) if result.content else "(no output)"
        return create_collapsible(f"📤 Output ({status})", code_block(content), open_by_default=True)

    def _raw(self, data: Any) -> str:
        return create_raw_json_section(data, self.policy)


def _table(rows: list[tuple[str, str]]) -> str:
    lines = ["| Field | Value |", "| --- | --- |"]
    lines.extend(f"| {label} | {value} |" for label, value in rows)
    return "\n".join(lines)


def _join(sections: list[str]) -> str:
    return "\n\n".join(section for section in sections if section)
