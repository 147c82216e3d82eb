"""Qt widget mirroring an :class:`~tidysave.editor.buffer.EditorBuffer`.

The buffer stays the source of truth: cleanup hooks edit the buffer and the
view repaints, while keystrokes in the widget are folded back into the buffer
as a single minimal edit so cursor tracking keeps working.
"""

from __future__ import annotations

import logging
from typing import Any, cast

from .buffer import EditorBuffer, TextEdit
from .document_model import DocumentState

__all__ = ["QtEditorView"]

LOGGER = logging.getLogger(__name__)


class QtEditorView:
    """Bind a ``QPlainTextEdit`` to a buffer in both directions."""

    def __init__(self, buffer: EditorBuffer, parent: Any = None) -> None:
        try:  # Local import to avoid mandatory PySide6 dependency at import time.
            from PySide6.QtGui import QTextCursor
            from PySide6.QtWidgets import QPlainTextEdit
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 must be installed to display documents.") from exc

        self._buffer = buffer
        self._cursor_cls = QTextCursor
        self._widget = cast(Any, QPlainTextEdit(parent))
        self._syncing = False
        self.refresh()
        self._widget.textChanged.connect(self._handle_qt_text_changed)
        self._widget.cursorPositionChanged.connect(self._handle_qt_cursor_moved)
        buffer.add_text_listener(self._handle_buffer_text_changed)
        buffer.add_cursor_listener(self._handle_buffer_cursor_moved)
        buffer.add_modified_listener(self._handle_buffer_modified_changed)

    @property
    def widget(self) -> Any:
        return self._widget

    @property
    def buffer(self) -> EditorBuffer:
        return self._buffer

    def refresh(self) -> None:
        """Repaint the widget from the buffer's text, cursor and modified flag."""

        self._syncing = True
        self._widget.blockSignals(True)
        try:
            self._widget.setPlainText(self._buffer.text)
            self._widget.setReadOnly(self._buffer.read_only)
            self._place_cursor(self._buffer.cursor)
            self._widget.document().setModified(self._buffer.modified)
        finally:
            self._widget.blockSignals(False)
            self._syncing = False

    def close(self) -> None:
        """Stop mirroring the buffer."""

        self._buffer.remove_text_listener(self._handle_buffer_text_changed)
        self._buffer.remove_cursor_listener(self._handle_buffer_cursor_moved)
        self._buffer.remove_modified_listener(self._handle_buffer_modified_changed)

    # ------------------------------------------------------------------
    # Buffer -> widget
    # ------------------------------------------------------------------
    def _handle_buffer_text_changed(self, text: str, state: DocumentState) -> None:
        if self._syncing:
            return
        self.refresh()

    def _handle_buffer_cursor_moved(self, offset: int) -> None:
        if self._syncing:
            return
        self._syncing = True
        self._widget.blockSignals(True)
        try:
            self._place_cursor(offset)
        finally:
            self._widget.blockSignals(False)
            self._syncing = False

    def _handle_buffer_modified_changed(self, modified: bool) -> None:
        self._widget.document().setModified(modified)

    def _place_cursor(self, offset: int) -> None:
        cursor = self._widget.textCursor()
        cursor.setPosition(offset, self._cursor_cls.MoveMode.MoveAnchor)
        self._widget.setTextCursor(cursor)

    # ------------------------------------------------------------------
    # Widget -> buffer
    # ------------------------------------------------------------------
    def _handle_qt_text_changed(self) -> None:
        if self._syncing:
            return
        edit = _minimal_edit(self._buffer.text, self._widget.toPlainText())
        if edit is None:
            return
        self._syncing = True
        try:
            self._buffer.apply_edits([edit])
            self._buffer.set_cursor(self._widget.textCursor().position())
        except Exception:
            LOGGER.warning("Rejected widget edit on %s", self._buffer.document_id, exc_info=True)
            self._syncing = False
            self.refresh()
        finally:
            self._syncing = False

    def _handle_qt_cursor_moved(self) -> None:
        if self._syncing:
            return
        self._syncing = True
        try:
            self._buffer.set_cursor(self._widget.textCursor().position())
        finally:
            self._syncing = False


def _minimal_edit(old: str, new: str) -> TextEdit | None:
    """Return the single edit turning ``old`` into ``new``, or ``None`` if equal."""

    if old == new:
        return None
    limit = min(len(old), len(new))
    prefix = 0
    while prefix < limit and old[prefix] == new[prefix]:
        prefix += 1
    suffix = 0
    while suffix < limit - prefix and old[-1 - suffix] == new[-1 - suffix]:
        suffix += 1
    return TextEdit(prefix, len(old) - suffix, new[prefix : len(new) - suffix])
