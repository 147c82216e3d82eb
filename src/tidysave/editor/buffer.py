"""Headless editor buffer exposing the primitives save hooks operate on.

The buffer keeps the logical editing model (text, cursor, modified flag,
narrowing) independent of any widget toolkit so hooks and tests can run
without a display. :mod:`tidysave.editor.qt_view` mirrors a buffer into a Qt
widget when a desktop UI is wanted.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Protocol, Sequence

from .document_model import DocumentState, EditorOptions
from .save_hooks import SaveHooks

__all__ = [
    "EditorBuffer",
    "TextEdit",
    "TextChangeListener",
    "CursorListener",
    "ModifiedListener",
    "ReadOnlyDocumentError",
    "RegionRestrictedError",
]

LOGGER = logging.getLogger(__name__)


class ReadOnlyDocumentError(RuntimeError):
    """Raised when a mutation is attempted on a read-only document."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} is read-only")
        self.document_id = document_id


class RegionRestrictedError(ValueError):
    """Raised when an edit falls outside the buffer's narrowed region."""

    def __init__(self, start: int, end: int, restriction: tuple[int, int]) -> None:
        super().__init__(
            f"Edit [{start}:{end}] lies outside the accessible region "
            f"[{restriction[0]}:{restriction[1]}]"
        )
        self.start = start
        self.end = end
        self.restriction = restriction


@dataclass(slots=True, frozen=True)
class TextEdit:
    """Replace ``text[start:end]`` with ``replacement`` (offsets in the pre-edit text)."""

    start: int
    end: int
    replacement: str = ""

    @property
    def delta(self) -> int:
        return len(self.replacement) - (self.end - self.start)


class TextChangeListener(Protocol):
    """Callback signature invoked when the buffer text changes."""

    def __call__(self, text: str, state: DocumentState) -> None:
        ...


class CursorListener(Protocol):
    """Callback invoked with the new cursor offset after it moves."""

    def __call__(self, offset: int) -> None:
        ...


class ModifiedListener(Protocol):
    """Callback invoked when the modified flag is set explicitly."""

    def __call__(self, modified: bool) -> None:
        ...


class EditorBuffer:
    """One open document plus the editing operations a host editor offers."""

    def __init__(
        self,
        document: DocumentState | None = None,
        *,
        options: EditorOptions | None = None,
    ) -> None:
        self._state = document or DocumentState()
        self._options = options or EditorOptions()
        self._hooks = SaveHooks()
        self._text_listeners: list[TextChangeListener] = []
        self._cursor_listeners: list[CursorListener] = []
        self._modified_listeners: list[ModifiedListener] = []
        # Restrictions stacked by without_restriction(), kept in sync with edits.
        self._saved_restrictions: list[tuple[int, int] | None] = []
        self._state.cursor = self._clamp(self._state.cursor)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def document(self) -> DocumentState:
        return self._state

    @property
    def document_id(self) -> str:
        return self._state.document_id

    @property
    def options(self) -> EditorOptions:
        return self._options

    @property
    def hooks(self) -> SaveHooks:
        return self._hooks

    @property
    def text(self) -> str:
        """Full document contents, ignoring any narrowing."""

        return self._state.text

    @property
    def visible_text(self) -> str:
        start, end = self.accessible_range
        return self._state.text[start:end]

    @property
    def accessible_range(self) -> tuple[int, int]:
        restriction = self._state.restriction
        if restriction is None:
            return (0, len(self._state.text))
        return restriction

    @property
    def is_narrowed(self) -> bool:
        return self._state.restriction is not None

    @property
    def read_only(self) -> bool:
        return self._state.read_only

    def set_read_only(self, read_only: bool) -> None:
        self._state.read_only = bool(read_only)

    @property
    def modified(self) -> bool:
        return self._state.modified

    def set_modified(self, modified: bool) -> None:
        flag = bool(modified)
        if flag == self._state.modified:
            return
        self._state.modified = flag
        for listener in list(self._modified_listeners):
            listener(flag)

    def add_text_listener(self, listener: TextChangeListener) -> None:
        self._text_listeners.append(listener)

    def remove_text_listener(self, listener: TextChangeListener) -> None:
        try:
            self._text_listeners.remove(listener)
        except ValueError:
            pass

    def add_cursor_listener(self, listener: CursorListener) -> None:
        self._cursor_listeners.append(listener)

    def remove_cursor_listener(self, listener: CursorListener) -> None:
        try:
            self._cursor_listeners.remove(listener)
        except ValueError:
            pass

    def add_modified_listener(self, listener: ModifiedListener) -> None:
        self._modified_listeners.append(listener)

    def remove_modified_listener(self, listener: ModifiedListener) -> None:
        try:
            self._modified_listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Cursor helpers
    # ------------------------------------------------------------------
    @property
    def cursor(self) -> int:
        return self._state.cursor

    def set_cursor(self, offset: int) -> int:
        """Move the cursor to ``offset`` clamped to the accessible region."""

        previous = self._state.cursor
        self._state.cursor = self._clamp(offset)
        if self._state.cursor != previous:
            self._emit_cursor_moved()
        return self._state.cursor

    def line_bounds(self, offset: int) -> tuple[int, int]:
        """Return ``(start, end)`` of the line containing ``offset``, excluding its newline."""

        text = self._state.text
        offset = max(0, min(int(offset), len(text)))
        start = text.rfind("\n", 0, offset) + 1
        end = text.find("\n", offset)
        if end == -1:
            end = len(text)
        return start, end

    def current_line_bounds(self) -> tuple[int, int]:
        return self.line_bounds(self._state.cursor)

    def current_column(self) -> int:
        start, _ = self.current_line_bounds()
        return self._state.cursor - start

    def line_and_column(self) -> tuple[int, int]:
        """Return the zero-based ``(line, column)`` of the cursor."""

        cursor = self._state.cursor
        line = self._state.text.count("\n", 0, cursor)
        return line, self.current_column()

    def move_to_column(self, column: int, *, force: bool = False) -> int:
        """Move the cursor to ``column`` on the current line.

        When the line is shorter than ``column`` the cursor stops at the end of
        the line, unless ``force`` is set, in which case the line is padded
        with spaces so the column can be reached. Returns the column reached.
        """

        if column < 0:
            raise ValueError(f"Column must be non-negative, got {column}")
        start, end = self.current_line_bounds()
        length = end - start
        if column <= length:
            self.set_cursor(start + column)
            return column
        if not force:
            self.set_cursor(end)
            return length
        self.apply_edits([TextEdit(end, end, " " * (column - length))])
        self.set_cursor(start + column)
        return column

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_text(self, text: str) -> None:
        """Replace the whole accessible region with ``text``."""

        start, end = self.accessible_range
        self.apply_edits([TextEdit(start, end, text)])

    def insert(self, text: str, position: int | None = None) -> None:
        """Insert ``text`` at ``position`` (default: the cursor) and move the cursor after it."""

        at = self._state.cursor if position is None else int(position)
        if self.apply_edits([TextEdit(at, at, text)]):
            self.set_cursor(at + len(text))

    def delete_ranges(self, spans: Iterable[tuple[int, int]]) -> bool:
        return self.apply_edits(TextEdit(start, end) for start, end in spans)

    def apply_edits(self, edits: Iterable[TextEdit]) -> bool:
        """Apply non-overlapping edits expressed in current-text offsets.

        The cursor and region bounds move the way they would for in-place
        edits. Edits that do not change the text are dropped; when nothing
        changes the modified flag is left untouched and ``False`` is returned.
        """

        text = self._state.text
        pending = sorted(
            (edit for edit in edits if text[edit.start : edit.end] != edit.replacement),
            key=lambda edit: (edit.start, edit.end),
        )
        if not pending:
            return False
        self._validate(pending, len(text))

        pieces: list[str] = []
        last = 0
        for edit in pending:
            pieces.append(text[last : edit.start])
            pieces.append(edit.replacement)
            last = edit.end
        pieces.append(text[last:])
        new_text = "".join(pieces)

        self._state.cursor = _shift(self._state.cursor, pending, advance=False)
        self._state.restriction = _shift_region(self._state.restriction, pending)
        self._saved_restrictions = [
            _shift_region(region, pending) for region in self._saved_restrictions
        ]
        self._state.update_text(new_text)
        self._state.cursor = max(0, min(self._state.cursor, len(new_text)))
        LOGGER.debug(
            "Applied %d edit(s) to document %s (version=%d)",
            len(pending),
            self.document_id,
            self._state.version_id,
        )
        self._emit_text_changed()
        self._emit_cursor_moved()
        return True

    # ------------------------------------------------------------------
    # Narrowing
    # ------------------------------------------------------------------
    def narrow(self, start: int, end: int) -> None:
        """Restrict editing and :attr:`visible_text` to ``[start:end]``."""

        length = len(self._state.text)
        start = max(0, min(int(start), length))
        end = max(0, min(int(end), length))
        if end < start:
            start, end = end, start
        self._state.restriction = (start, end)
        self._state.cursor = self._clamp(self._state.cursor)

    def widen(self) -> None:
        self._state.restriction = None

    @contextmanager
    def without_restriction(self) -> Iterator["EditorBuffer"]:
        """Temporarily widen the buffer, restoring the (edit-adjusted) restriction on exit."""

        self._saved_restrictions.append(self._state.restriction)
        self._state.restriction = None
        try:
            yield self
        finally:
            self._state.restriction = self._saved_restrictions.pop()
            self._state.cursor = self._clamp(self._state.cursor)

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------
    def clone_detached(self) -> "EditorBuffer":
        """Return an unmodified, hook-free copy of the full document contents."""

        state = DocumentState(
            text=self._state.text,
            metadata=replace(self._state.metadata),
            cursor=self._state.cursor,
        )
        return EditorBuffer(state, options=self._options)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _clamp(self, offset: int) -> int:
        start, end = self.accessible_range
        return max(start, min(int(offset), end))

    def _validate(self, edits: Sequence[TextEdit], length: int) -> None:
        if self._state.read_only:
            raise ReadOnlyDocumentError(self.document_id)
        region = self.accessible_range
        previous_end = -1
        for edit in edits:
            if edit.start < 0 or edit.end > length or edit.start > edit.end:
                raise ValueError(f"Invalid edit range [{edit.start}:{edit.end}] for length {length}")
            if edit.start < previous_end:
                raise ValueError("Edits must not overlap")
            if edit.start < region[0] or edit.end > region[1]:
                raise RegionRestrictedError(edit.start, edit.end, region)
            previous_end = edit.end

    def _emit_text_changed(self) -> None:
        for listener in list(self._text_listeners):
            listener(self._state.text, self._state)

    def _emit_cursor_moved(self) -> None:
        for listener in list(self._cursor_listeners):
            listener(self._state.cursor)


def _shift(position: int, edits: Sequence[TextEdit], *, advance: bool) -> int:
    """Map ``position`` through sorted ``edits``.

    An insertion exactly at ``position`` pushes it forward only when
    ``advance`` is set. A position inside a replaced span stays within the
    replacement.
    """

    delta = 0
    for edit in edits:
        if edit.end < position or (edit.end == position and (edit.start < position or advance)):
            delta += edit.delta
        elif edit.start < position:
            return edit.start + delta + min(position - edit.start, len(edit.replacement))
        else:
            break
    return position + delta


def _shift_region(region: tuple[int, int] | None, edits: Sequence[TextEdit]) -> tuple[int, int] | None:
    if region is None:
        return None
    start = _shift(region[0], edits, advance=False)
    end = _shift(region[1], edits, advance=True)
    return (start, max(start, end))
