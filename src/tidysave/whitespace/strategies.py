"""Pluggable whitespace-removal strategies.

A strategy needs a ``name`` and a side-effecting ``clean(buffer)``. Strategies
that can tell cheaply whether a buffer is already clean also provide
``is_clean(buffer)``; for the rest the controller falls back to running the
strategy on a detached copy and checking whether the copy changed.

Strategies always edit through :meth:`EditorBuffer.apply_edits` so the cursor
moves the way it would for in-place deletions.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Protocol, runtime_checkable

from ..editor.buffer import EditorBuffer, TextEdit
from ..editor.document_model import EditorOptions

__all__ = [
    "CleanStrategy",
    "SupportsCleanCheck",
    "TrailingWhitespaceStrategy",
    "WhitespaceCleanupStrategy",
    "DEFAULT_STRATEGY_NAME",
    "get_strategy",
    "register_strategy",
    "available_strategies",
]

LOGGER = logging.getLogger(__name__)

_TRAILING_WS = re.compile(r"[ \t]+$", re.MULTILINE)
_LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\n)+")
_INDENTATION = re.compile(r"^[ \t]+(?=[^ \t\n])", re.MULTILINE)

DEFAULT_STRATEGY_NAME = "delete-trailing-whitespace"


@runtime_checkable
class CleanStrategy(Protocol):
    """Anything that can strip whitespace from a whole buffer."""

    name: str

    def clean(self, buffer: EditorBuffer) -> None:
        ...


@runtime_checkable
class SupportsCleanCheck(Protocol):
    """Optional fast check paired with :class:`CleanStrategy`."""

    def is_clean(self, buffer: EditorBuffer) -> bool:
        ...


class TrailingWhitespaceStrategy:
    """Delete spaces and tabs at the end of every line.

    When the host option ``delete_trailing_lines`` is on, blank (or
    whitespace-only) lines at the end of the document are removed as well,
    leaving a single terminating newline.
    """

    name = DEFAULT_STRATEGY_NAME

    def clean(self, buffer: EditorBuffer) -> None:
        edits = _trailing_edits(buffer.text, trim_lines=buffer.options.delete_trailing_lines)
        if edits:
            buffer.apply_edits(edits)

    def is_clean(self, buffer: EditorBuffer) -> bool:
        text = buffer.text
        if _TRAILING_WS.search(text) is not None:
            return False
        if buffer.options.delete_trailing_lines and text.endswith("\n\n"):
            return False
        return True


class WhitespaceCleanupStrategy:
    """Broader normalization in the spirit of a full whitespace cleanup.

    * indentation is re-rendered with tabs or spaces according to the host's
      ``indent_tabs`` and ``tab_width`` options;
    * trailing spaces and tabs are removed from every line;
    * blank lines at the start of the document are removed;
    * blank lines at the end of the document are collapsed to one newline.

    There is no fast check; cleanliness is decided by running the strategy on a
    copy of the document.
    """

    name = "whitespace-cleanup"

    def clean(self, buffer: EditorBuffer) -> None:
        text = buffer.text
        options = buffer.options
        edits: list[TextEdit] = []
        covered_until = 0

        leading = _LEADING_BLANK_LINES.search(text)
        if leading is not None:
            edits.append(TextEdit(leading.start(), leading.end()))
            covered_until = leading.end()

        for match in _INDENTATION.finditer(text, covered_until):
            width = _visual_width(match.group(0), options.tab_width)
            edits.append(TextEdit(match.start(), match.end(), _render_indent(width, options)))

        edits.extend(_trailing_edits(text, trim_lines=True, start=covered_until))

        if edits:
            buffer.apply_edits(edits)


def _visual_width(indent: str, tab_width: int) -> int:
    width = 0
    for char in indent:
        if char == "\t" and tab_width > 0:
            width += tab_width - (width % tab_width)
        else:
            width += 1
    return width


def _render_indent(width: int, options: EditorOptions) -> str:
    if options.indent_tabs and options.tab_width > 0:
        tabs, spaces = divmod(width, options.tab_width)
        return "\t" * tabs + " " * spaces
    return " " * width


def _trailing_edits(text: str, *, trim_lines: bool, start: int = 0) -> list[TextEdit]:
    """Edits deleting trailing spaces/tabs and, with ``trim_lines``, blank lines at the end.

    The newline ending the last non-blank line is kept, so the cursor on that
    line stays on it.
    """

    limit = len(text)
    edits: list[TextEdit] = []
    if trim_lines:
        content_end = max(start, len(text.rstrip(" \t\n")))
        newline = text.find("\n", content_end)
        if newline != -1:
            if newline > content_end:
                edits.append(TextEdit(content_end, newline))
            if newline + 1 < len(text):
                edits.append(TextEdit(newline + 1, len(text)))
            limit = content_end
    edits.extend(TextEdit(match.start(), match.end()) for match in _TRAILING_WS.finditer(text, start, limit))
    return edits


_REGISTRY: Dict[str, CleanStrategy] = {}


def register_strategy(strategy: CleanStrategy, *, replace: bool = False) -> CleanStrategy:
    """Make ``strategy`` available by name to settings and the CLI."""

    if not isinstance(strategy, CleanStrategy):
        raise TypeError(f"{strategy!r} does not implement CleanStrategy")
    if strategy.name in _REGISTRY and not replace:
        raise ValueError(f"Strategy '{strategy.name}' is already registered")
    _REGISTRY[strategy.name] = strategy
    LOGGER.debug("Registered clean strategy %s", strategy.name)
    return strategy


def get_strategy(name: str | None = None) -> CleanStrategy:
    key = name or DEFAULT_STRATEGY_NAME
    try:
        return _REGISTRY[key]
    except KeyError:
        raise KeyError(
            f"Unknown clean strategy '{key}'; available: {', '.join(available_strategies())}"
        ) from None


def available_strategies() -> tuple[str, ...]:
    return tuple(sorted(_REGISTRY))


register_strategy(TrailingWhitespaceStrategy())
register_strategy(WhitespaceCleanupStrategy())
