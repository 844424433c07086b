"""Classification of agent stream-json output into typed events."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from hive_mind.interactive.rendering import safe_json_dumps


class EventKind(str, Enum):
    SYSTEM_INIT = "system_init"
    ASSISTANT_TEXT = "assistant_text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    SESSION_RESULT = "session_result"
    UNRECOGNIZED = "unrecognized"


@dataclass(slots=True, frozen=True)
class SystemInit:
    """Session metadata announced by the agent before its first turn."""

    kind: ClassVar[EventKind] = EventKind.SYSTEM_INIT

    session_id: str | None
    model: str | None
    cwd: str | None
    tools: tuple[str, ...]
    permission_mode: str | None
    raw: dict[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class AssistantText:
    kind: ClassVar[EventKind] = EventKind.ASSISTANT_TEXT

    text: str
    raw: dict[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class ToolUse:
    """One tool invocation requested by the assistant."""

    kind: ClassVar[EventKind] = EventKind.TOOL_USE

    tool_use_id: str | None
    name: str
    input: Any
    raw: dict[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class ToolResult:
    """Output of a tool invocation; ``content`` is already coalesced to text."""

    kind: ClassVar[EventKind] = EventKind.TOOL_RESULT

    tool_use_id: str | None
    content: str
    is_error: bool
    raw: dict[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class SessionResult:
    kind: ClassVar[EventKind] = EventKind.SESSION_RESULT

    subtype: str | None
    is_error: bool
    duration_ms: Any
    duration_api_ms: Any
    num_turns: Any
    total_cost_usd: Any
    usage: dict[str, Any]
    result: str | None
    session_id: str | None
    raw: dict[str, Any] = field(repr=False)


@dataclass(slots=True, frozen=True)
class UnrecognizedEvent:
    """Anything that is not a known event; ``raw`` keeps the original payload."""

    kind: ClassVar[EventKind] = EventKind.UNRECOGNIZED

    event_type: str
    raw: Any = field(repr=False)


Event = SystemInit | AssistantText | ToolUse | ToolResult | SessionResult | UnrecognizedEvent


def parse_event_line(line: str | bytes) -> list[Event]:
    """Parse one stdout line; blank lines yield nothing, non-JSON text yields one fallback."""

    text = line.decode("utf-8", "replace") if isinstance(line, bytes) else line
    text = text.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return [UnrecognizedEvent(event_type="non-json output", raw=text)]
    return classify_event(data)


def classify_event(data: Any) -> list[Event]:
    """Map one decoded event to zero or more typed events.

    Assistant events yield one event per non-empty text segment and per tool-use
    segment, user events one event per tool result. Anything without a known
    ``type`` yields exactly one ``UnrecognizedEvent``.
    """

    if not isinstance(data, dict):
        return [UnrecognizedEvent(event_type=type(data).__name__, raw=data)]
    event_type = data.get("type")
    if not isinstance(event_type, str) or not event_type:
        return [UnrecognizedEvent(event_type="missing type", raw=data)]

    if event_type == "system":
        if data.get("subtype") == "init":
            return [_system_init(data)]
        return [UnrecognizedEvent(event_type=f"system/{data.get('subtype') or 'unknown'}", raw=data)]
    if event_type == "assistant":
        return _assistant_events(data)
    if event_type == "user":
        return _tool_results(data)
    if event_type == "result":
        return [_session_result(data)]
    return [UnrecognizedEvent(event_type=event_type, raw=data)]


def coalesce_tool_result_content(content: Any) -> str:
    """Flatten tool result content (string or list of fragments) into one text blob."""

    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return safe_json_dumps(content)
    parts: list[str] = []
    for fragment in content:
        if isinstance(fragment, str):
            parts.append(fragment)
        elif isinstance(fragment, dict) and fragment.get("type") == "text":
            parts.append(str(fragment.get("text") or ""))
        elif isinstance(fragment, dict) and fragment.get("type") == "image":
            parts.append("[image]")
        else:
            parts.append(safe_json_dumps(fragment))
    return "\n".join(parts)


def _segments(data: dict[str, Any]) -> list[Any]:
    message = data.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if content is None:
        return []
    if isinstance(content, list):
        return content
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return [content]


def _system_init(data: dict[str, Any]) -> SystemInit:
    tools = data.get("tools")
    return SystemInit(
        session_id=_optional_str(data.get("session_id")),
        model=_optional_str(data.get("model")),
        cwd=_optional_str(data.get("cwd")),
        tools=tuple(str(tool) for tool in tools) if isinstance(tools, list) else (),
        permission_mode=_optional_str(data.get("permissionMode")),
        raw=data,
    )


def _assistant_events(data: dict[str, Any]) -> list[Event]:
    events: list[Event] = []
    for segment in _segments(data):
        if not isinstance(segment, dict):
            continue
        segment_type = segment.get("type")
        if segment_type == "text":
            text = str(segment.get("text") or "")
            if text.strip():
                events.append(AssistantText(text=text, raw=data))
        elif segment_type == "tool_use":
            events.append(
                ToolUse(
                    tool_use_id=_optional_str(segment.get("id")),
                    name=str(segment.get("name") or "unknown"),
                    input=segment.get("input") if segment.get("input") is not None else {},
                    raw=data,
                ),
            )
    return events


def _tool_results(data: dict[str, Any]) -> list[Event]:
    return [
        ToolResult(
            tool_use_id=_optional_str(segment.get("tool_use_id")),
            content=coalesce_tool_result_content(segment.get("content")),
            is_error=bool(segment.get("is_error")),
            raw=data,
        )
        for segment in _segments(data)
        if isinstance(segment, dict) and segment.get("type") == "tool_result"
    ]


def _session_result(data: dict[str, Any]) -> SessionResult:
    usage = data.get("usage")
    result = data.get("result")
    return SessionResult(
        subtype=_optional_str(data.get("subtype")),
        is_error=bool(data.get("is_error")),
        duration_ms=data.get("duration_ms"),
        duration_api_ms=data.get("duration_api_ms"),
        num_turns=data.get("num_turns"),
        total_cost_usd=data.get("total_cost_usd"),
        usage=usage if isinstance(usage, dict) else {},
        result=result if isinstance(result, str) else None,
        session_id=_optional_str(data.get("session_id")),
        raw=data,
    )


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
