"""Per-document controller that cleans whitespace around a save.

The controller hooks the buffer's save lifecycle:

``BEFORE_SAVE`` (runs first)
    Remember the cursor column, then run the clean strategy unless the
    "only if initially clean" policy says the document started out dirty.
``AFTER_SAVE`` (runs last)
    Optionally put the cursor back on the remembered column, padding the
    line with spaces if cleaning made it shorter, and report what happened.
``SAVE_ABORTED``
    Forget the remembered column; the next save captures a fresh one.

Cleanliness under the "only if initially clean" policy is computed once, when
the controller is enabled. A document that starts dirty stays
:attr:`CleanState.DIRTY` until the controller is disabled and enabled again.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator

from ..editor.buffer import EditorBuffer
from ..editor.save_hooks import PRIORITY_FIRST, PRIORITY_LAST, SaveStage
from .strategies import CleanStrategy, SupportsCleanCheck

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..services.settings import CleanupSettings

__all__ = ["CleanState", "SaveLifecycleController", "is_buffer_clean"]

LOGGER = logging.getLogger(__name__)

Notifier = Callable[[str], None]


class CleanState(Enum):
    """Whether the document was free of removable whitespace when last checked."""

    UNKNOWN = "unknown"
    CLEAN = "clean"
    DIRTY = "dirty"


def is_buffer_clean(buffer: EditorBuffer, strategy: CleanStrategy) -> bool:
    """Return ``True`` when ``strategy`` would leave ``buffer`` unchanged.

    Strategies with a fast ``is_clean`` check answer directly. Otherwise the
    strategy runs against a detached, unmodified copy of the full document and
    the copy's modified flag gives the answer.
    """

    if isinstance(strategy, SupportsCleanCheck):
        return strategy.is_clean(buffer)
    scratch = buffer.clone_detached()
    scratch.set_modified(False)
    strategy.clean(scratch)
    return not scratch.modified


class SaveLifecycleController:
    """Cleans one document on save according to :class:`CleanupSettings`."""

    def __init__(
        self,
        buffer: EditorBuffer,
        settings: "CleanupSettings",
        strategy: CleanStrategy,
        *,
        notify: Notifier | None = None,
    ) -> None:
        self._buffer = buffer
        self._settings = settings
        self._strategy = strategy
        self._notify = notify
        self._clean_state = CleanState.UNKNOWN
        self._saved_column: int | None = None
        self._enabled = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def buffer(self) -> EditorBuffer:
        return self._buffer

    @property
    def settings(self) -> "CleanupSettings":
        return self._settings

    @property
    def strategy(self) -> CleanStrategy:
        return self._strategy

    @property
    def clean_state(self) -> CleanState:
        return self._clean_state

    @property
    def saved_column(self) -> int | None:
        return self._saved_column

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def enable(self) -> None:
        """Attach to the buffer's save hooks, caching initial cleanliness if required."""

        if self._enabled:
            return
        if self._settings.only_if_initially_clean and self._clean_state is CleanState.UNKNOWN:
            clean = self.is_already_clean()
            self._clean_state = CleanState.CLEAN if clean else CleanState.DIRTY
            LOGGER.debug(
                "Document %s is initially %s",
                self._buffer.document_id,
                self._clean_state.value,
            )
        hooks = self._buffer.hooks
        hooks.add(SaveStage.BEFORE_SAVE, self.on_pre_persist, priority=PRIORITY_FIRST, outermost=True)
        hooks.add(SaveStage.AFTER_SAVE, self.on_post_persist, priority=PRIORITY_LAST, outermost=True)
        hooks.add(SaveStage.SAVE_ABORTED, self.on_save_aborted)
        self._enabled = True

    def disable(self) -> None:
        """Detach from the save hooks and forget all per-document state."""

        hooks = self._buffer.hooks
        hooks.remove(SaveStage.BEFORE_SAVE, self.on_pre_persist)
        hooks.remove(SaveStage.AFTER_SAVE, self.on_post_persist)
        hooks.remove(SaveStage.SAVE_ABORTED, self.on_save_aborted)
        self._clean_state = CleanState.UNKNOWN
        self._saved_column = None
        self._enabled = False

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def is_already_clean(self) -> bool:
        return is_buffer_clean(self._buffer, self._strategy)

    def clean(self) -> None:
        """Run the strategy over the whole document, ignoring any narrowing.

        Errors raised by the buffer (read-only documents, for example)
        propagate to the caller.
        """

        with self._buffer.without_restriction():
            self._strategy.clean(self._buffer)
        self._clean_state = CleanState.CLEAN

    def should_clean(self) -> bool:
        return not self._settings.only_if_initially_clean or self._clean_state is CleanState.CLEAN

    def on_pre_persist(self, buffer: EditorBuffer | None = None) -> None:
        self._saved_column = self._buffer.current_column()
        if self.should_clean():
            self.clean()

    def on_post_persist(self, buffer: EditorBuffer | None = None) -> None:
        if self._settings.restore_column:
            with self.pending_cursor_restore() as column:
                if column is not None:
                    self._restore_column(column)
        else:
            self._saved_column = None
        if self._settings.verbose:
            self._emit(self.describe_last_save())

    def on_save_aborted(self, buffer: EditorBuffer | None = None) -> None:
        if self._saved_column is not None:
            LOGGER.debug("Save of %s aborted; dropping saved column", self._buffer.document_id)
        self._saved_column = None

    @contextmanager
    def pending_cursor_restore(self) -> Iterator[int | None]:
        """Hand out the saved column and release it on every exit path."""

        column = self._saved_column
        try:
            yield column
        finally:
            self._saved_column = None

    def describe_last_save(self) -> str:
        prefix = self._settings.message_prefix
        name = self._strategy.name
        if not self._settings.only_if_initially_clean:
            return f"{prefix}: ran {name}"
        if self._clean_state is CleanState.CLEAN:
            return f"{prefix}: ran {name} (reason: document was clean)"
        return f"{prefix}: skipped (reason: document was not clean)"

    def status_indicator(self) -> str:
        """Short mode-line label; flagged when saves will leave whitespace alone."""

        return "WSC" if self.should_clean() else "WSC!"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _restore_column(self, column: int) -> None:
        buffer = self._buffer
        try:
            buffer.move_to_column(column, force=True)
        except Exception as exc:
            LOGGER.warning(
                "Could not restore column %d in document %s: %s",
                column,
                buffer.document_id,
                exc,
            )
            return
        buffer.set_modified(False)

    def _emit(self, message: str) -> None:
        LOGGER.info("%s [%s]", message, self._buffer.document_id)
        if self._notify is not None:
            self._notify(message)
