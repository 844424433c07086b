from __future__ import annotations

import allure
import pytest

from hive_mind.interactive.modes import (
    is_bidirectional_mode_supported,
    is_interactive_mode_supported,
    resolve_interactive_options,
)

pytestmark = [
    allure.epic("Interactive Mode"),
    allure.feature("Mode Support"),
]


@pytest.mark.parametrize(
    ("tool", "supported"),
    [("claude", True), ("Claude", True), ("opencode", False), ("codex", False), (None, False)],
)
def test_mode_support_by_tool(tool, supported: bool) -> None:
    assert is_interactive_mode_supported(tool) is supported
    assert is_bidirectional_mode_supported(tool) is supported


def test_bidirectional_enables_interactive_with_warning() -> None:
    options = resolve_interactive_options("claude", interactive=False, bidirectional=True)

    assert options.interactive is True
    assert options.bidirectional is True
    assert len(options.warnings) == 1


def test_unsupported_tool_disables_both_modes() -> None:
    options = resolve_interactive_options("codex", interactive=True, bidirectional=True)

    assert options.interactive is False
    assert options.bidirectional is False
    assert len(options.warnings) == 2


def test_supported_request_is_left_alone() -> None:
    options = resolve_interactive_options("claude", interactive=True, bidirectional=False)

    assert (options.interactive, options.bidirectional, options.warnings) == (True, False, [])
