"""Run an agent process and wire its stream-json I/O to the interactive components."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import IO

from hive_mind.interactive.events import SessionResult
from hive_mind.interactive.feedback import BidirectionalFeedbackMonitor, user_message
from hive_mind.interactive.handler import InteractiveSessionHandler, SessionState
from hive_mind.interactive.live_updates import LiveUpdatesMonitor, format_updates_message

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
_STDERR_TAIL_LINES = 20


class AgentSessionError(RuntimeError):
    """Agent process start failure with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


@dataclass(slots=True)
class SessionRunRequest:
    """Agent command and its run limits."""

    command: list[str]
    prompt: str | None = None
    timeout_seconds: float = 3_600
    graceful_shutdown_seconds: float = 10
    env: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class SessionRunResult:
    exit_code: int
    timed_out: bool
    events_processed: int
    feedback_injected: int
    live_updates_injected: int
    state: SessionState
    stderr_tail: list[str] = field(default_factory=list)


class AgentSessionRunner:
    """Stream agent stdout into the session handler and agent stdin from the monitors.

    With ``bidirectional`` the agent's stdin stays open for stream-json user
    messages: queued PR feedback and live update notices are written between
    events. After a ``result`` event stdin is closed unless feedback is waiting,
    which lets the agent finish.
    """

    def __init__(
        self,
        *,
        handler: InteractiveSessionHandler,
        feedback_monitor: BidirectionalFeedbackMonitor | None = None,
        live_updates: LiveUpdatesMonitor | None = None,
        bidirectional: bool = False,
    ) -> None:
        self._handler = handler
        self._feedback = feedback_monitor
        self._live_updates = live_updates
        self._bidirectional = bidirectional
        self._stdin_lock = threading.Lock()
        self._stdin: IO[str] | None = None
        self._timed_out = threading.Event()
        self._feedback_injected = 0
        self._live_updates_injected = 0

    def run(self, request: SessionRunRequest) -> SessionRunResult:
        if not request.command:
            raise AgentSessionError("Agent command is empty.", transient=False)
        process = self._spawn(request)
        stderr_tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)
        stderr_thread = threading.Thread(
            target=_collect_stderr,
            args=(process, stderr_tail),
            daemon=True,
            name="agent-stderr",
        )
        stderr_thread.start()
        watchdog = threading.Timer(
            request.timeout_seconds,
            self._on_timeout,
            args=(process, request.graceful_shutdown_seconds),
        )
        watchdog.daemon = True
        events_processed = 0
        try:
            self._stdin = process.stdin
            if request.prompt:
                self._write_stdin(user_message(request.prompt))
            if not self._bidirectional:
                self._close_stdin()
            self._start_monitors()
            watchdog.start()
            for line in process.stdout or ():
                events = self._handler.process_line(line)
                events_processed += len(events)
                if not self._bidirectional:
                    continue
                self._inject_live_updates()
                injected = self._inject_feedback()
                if any(isinstance(event, SessionResult) for event in events) and not injected:
                    self._close_stdin()
            exit_code = process.wait()
        finally:
            watchdog.cancel()
            self._stop_monitors()
            self._close_stdin()
            if process.poll() is None:
                _terminate_process(process, request.graceful_shutdown_seconds)
            stderr_thread.join(timeout=5)
            self._handler.flush()

        timed_out = self._timed_out.is_set()
        if timed_out:
            exit_code = TIMEOUT_EXIT_CODE
        logger.info(
            "Agent exited with %s after %d events (%d feedback, %d live updates injected)",
            exit_code,
            events_processed,
            self._feedback_injected,
            self._live_updates_injected,
        )
        return SessionRunResult(
            exit_code=exit_code,
            timed_out=timed_out,
            events_processed=events_processed,
            feedback_injected=self._feedback_injected,
            live_updates_injected=self._live_updates_injected,
            state=self._handler.get_state(),
            stderr_tail=list(stderr_tail),
        )

    def _spawn(self, request: SessionRunRequest) -> subprocess.Popen[str]:
        env = os.environ.copy()
        env.update(request.env)
        try:
            return subprocess.Popen(  # noqa: S603
                request.command,
                env=env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as error:
            raise AgentSessionError(
                f"Agent command not found: {request.command[0]}",
                transient=False,
            ) from error
        except OSError as error:
            raise AgentSessionError(f"Agent failed to start: {error}", transient=True) from error

    def _start_monitors(self) -> None:
        if self._feedback is not None:
            self._feedback.start()
        if self._live_updates is not None:
            self._live_updates.start()

    def _stop_monitors(self) -> None:
        if self._feedback is not None:
            self._feedback.stop()
        if self._live_updates is not None:
            self._live_updates.stop()

    def _inject_feedback(self) -> int:
        if self._feedback is None or self._stdin is None:
            return 0
        injected = 0
        while (item := self._feedback.pop()) is not None:
            if not self._write_stdin(item.message):
                break
            injected += 1
            logger.info("Injected feedback from @%s (comment #%s)", item.author, item.comment_id)
        self._feedback_injected += injected
        return injected

    def _inject_live_updates(self) -> None:
        if self._live_updates is None or not self._live_updates.has_updates():
            return
        message = format_updates_message(self._live_updates.latest_updates)
        self._live_updates.clear_updates()
        if message is not None and self._write_stdin(message):
            self._live_updates_injected += 1
            logger.info("Injected live update notice")

    def _write_stdin(self, line: str) -> bool:
        with self._stdin_lock:
            if self._stdin is None:
                logger.debug("Agent stdin is closed; message not delivered")
                return False
            try:
                self._stdin.write(line + "\n")
                self._stdin.flush()
            except (BrokenPipeError, OSError, ValueError) as error:
                logger.warning("Failed to write to agent stdin: %s", error)
                self._stdin = None
                return False
            return True

    def _close_stdin(self) -> None:
        with self._stdin_lock:
            stdin, self._stdin = self._stdin, None
            if stdin is None:
                return
            try:
                stdin.close()
            except (BrokenPipeError, OSError) as error:
                logger.debug("Closing agent stdin failed: %s", error)

    def _on_timeout(self, process: subprocess.Popen[str], graceful_seconds: float) -> None:
        logger.warning("Agent timed out; terminating")
        self._timed_out.set()
        _terminate_process(process, graceful_seconds)


def _collect_stderr(process: subprocess.Popen[str], tail: deque[str]) -> None:
    if process.stderr is None:
        return
    for line in process.stderr:
        text = line.rstrip("\n")
        tail.append(text)
        logger.debug("agent stderr: %s", text)


def _terminate_process(process: subprocess.Popen[str], graceful_seconds: float = 2) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=max(graceful_seconds, 0.1))
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)
