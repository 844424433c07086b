"""Which interactive features a given agent tool can use."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

INTERACTIVE_TOOLS = frozenset({"claude"})
BIDIRECTIONAL_TOOLS = frozenset({"claude"})


def is_interactive_mode_supported(tool: str | None) -> bool:
    return (tool or "").lower() in INTERACTIVE_TOOLS


def is_bidirectional_mode_supported(tool: str | None) -> bool:
    """Only tools that accept stream-json on stdin can receive feedback."""

    return (tool or "").lower() in BIDIRECTIONAL_TOOLS


@dataclass(slots=True)
class InteractiveOptions:
    interactive: bool
    bidirectional: bool
    warnings: list[str] = field(default_factory=list)


def resolve_interactive_options(
    tool: str | None,
    *,
    interactive: bool,
    bidirectional: bool,
) -> InteractiveOptions:
    """Reconcile requested modes with tool support.

    Bidirectional mode implies interactive mode and turns it on when missing.
    Unsupported tools get both modes switched off. Every adjustment is logged
    as a warning and returned in ``warnings``.
    """

    options = InteractiveOptions(interactive=interactive, bidirectional=bidirectional)
    if options.bidirectional:
        if not is_bidirectional_mode_supported(tool):
            options.warnings.append(
                f"Bidirectional interactive mode is only supported for tool 'claude' "
                f"(current: {tool}); disabled for this session.",
            )
            options.bidirectional = False
        elif not options.interactive:
            options.warnings.append(
                "Bidirectional interactive mode requires interactive mode; enabling it automatically.",
            )
            options.interactive = True
    if options.interactive and not is_interactive_mode_supported(tool):
        options.warnings.append(
            f"Interactive mode is only supported for tool 'claude' (current: {tool}); "
            "disabled for this session.",
        )
        options.interactive = False
        options.bidirectional = False
    for warning in options.warnings:
        logger.warning(warning)
    return options
