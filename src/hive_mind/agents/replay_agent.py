"""Local stand-in agent that replays a recorded stream-json session."""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, TextIO


def _emit(payload: dict[str, Any], stdout: TextIO) -> None:
    stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    stdout.flush()


def _user_text(line: str) -> str | None:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict) or payload.get("type") != "user":
        return None
    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, list):
        return None
    return "\n".join(
        str(item.get("text") or "")
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    )


def echo_input(stdin: TextIO, stdout: TextIO, session_id: str) -> int:
    """Answer each stream-json user message with one assistant turn until stdin closes."""

    answered = 0
    for line in stdin:
        text = _user_text(line)
        if text is None:
            continue
        answered += 1
        _emit(
            {
                "type": "assistant",
                "session_id": session_id,
                "message": {"role": "assistant", "content": [{"type": "text", "text": f"Received: {text}"}]},
            },
            stdout,
        )
        _emit(
            {
                "type": "result",
                "subtype": "success",
                "is_error": False,
                "duration_ms": 0,
                "num_turns": 1,
                "total_cost_usd": 0.0,
                "result": "Feedback acknowledged",
                "session_id": session_id,
            },
            stdout,
        )
    return answered


def main(argv: list[str] | None = None) -> int:
    """Print recorded events, optionally answering stdin messages afterwards."""

    parser = argparse.ArgumentParser(prog="replay-agent")
    parser.add_argument("events_file", type=Path)
    parser.add_argument("--delay", type=float, default=0.0, help="Seconds between events.")
    parser.add_argument(
        "--echo-input",
        action="store_true",
        help="After replaying, answer each stream-json user message read from stdin.",
    )
    parser.add_argument("--session-id", default="replay-session")
    parser.add_argument("--exit-code", type=int, default=0)
    args = parser.parse_args(argv)

    try:
        text = args.events_file.read_text(encoding="utf-8")
    except OSError as error:
        parser.error(f"cannot read {args.events_file}: {error}")

    for line in text.splitlines():
        if not line.strip():
            continue
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
        if args.delay > 0:
            time.sleep(args.delay)

    if args.echo_input:
        echo_input(sys.stdin, sys.stdout, args.session_id)
    return args.exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
