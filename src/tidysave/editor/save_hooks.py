"""Priority-ordered hooks fired around a document save.

Each :class:`~tidysave.editor.buffer.EditorBuffer` owns one :class:`SaveHooks`
registry. The workspace save pipeline runs the ``BEFORE_SAVE`` hooks, writes
the document, then runs ``AFTER_SAVE`` (or ``SAVE_ABORTED`` when the write
fails).

Unlike :class:`tidysave.events.EventBus`, hook failures are not swallowed: an
exception raised by a ``BEFORE_SAVE`` hook aborts the save and surfaces to the
caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .buffer import EditorBuffer

__all__ = [
    "SaveStage",
    "SaveHook",
    "SaveHooks",
    "PRIORITY_FIRST",
    "PRIORITY_DEFAULT",
    "PRIORITY_LAST",
]

logger = logging.getLogger(__name__)

SaveHook = Callable[["EditorBuffer"], None]

PRIORITY_FIRST = -100
PRIORITY_DEFAULT = 0
PRIORITY_LAST = 100


class SaveStage(Enum):
    """Points in the save lifecycle where hooks can run."""

    BEFORE_SAVE = "before_save"
    AFTER_SAVE = "after_save"
    SAVE_ABORTED = "save_aborted"


@dataclass(slots=True)
class _HookEntry:
    handler: SaveHook
    priority: int
    sequence: int


class SaveHooks:
    """Hook lists for one document, ordered by ascending priority.

    Hooks with equal priority run in registration order. Ordinary priorities are
    clamped strictly between ``PRIORITY_FIRST`` and ``PRIORITY_LAST``; the two
    extremes are reserved for hooks added with ``outermost=True``, which wrap
    every other participant of the stage.

    Example::

        hooks = SaveHooks()
        hooks.add(SaveStage.BEFORE_SAVE, capture_cursor, priority=PRIORITY_FIRST, outermost=True)
        hooks.add(SaveStage.BEFORE_SAVE, reformat)
        hooks.run(SaveStage.BEFORE_SAVE, buffer)  # capture_cursor, then reformat
    """

    __slots__ = ("_hooks", "_sequence")

    def __init__(self) -> None:
        self._hooks: dict[SaveStage, list[_HookEntry]] = {stage: [] for stage in SaveStage}
        self._sequence = 0

    def add(
        self,
        stage: SaveStage,
        handler: SaveHook,
        *,
        priority: int = PRIORITY_DEFAULT,
        outermost: bool = False,
    ) -> None:
        """Register ``handler`` for ``stage``.

        Registering a handler that is already present for the stage moves it to
        the new priority instead of adding a second entry. With ``outermost``
        the priority must be ``PRIORITY_FIRST`` or ``PRIORITY_LAST``.
        """

        if outermost and priority not in (PRIORITY_FIRST, PRIORITY_LAST):
            raise ValueError("outermost hooks must use PRIORITY_FIRST or PRIORITY_LAST")
        self.remove(stage, handler)
        clamped = priority if outermost else max(PRIORITY_FIRST + 1, min(PRIORITY_LAST - 1, int(priority)))
        self._sequence += 1
        entries = self._hooks[stage]
        entries.append(_HookEntry(handler=handler, priority=clamped, sequence=self._sequence))
        entries.sort(key=lambda entry: (entry.priority, entry.sequence))
        logger.debug("Added %s hook %s (priority=%d)", stage.value, _handler_name(handler), clamped)

    def remove(self, stage: SaveStage, handler: SaveHook) -> bool:
        """Remove ``handler`` from ``stage``; returns ``False`` when it was not registered."""

        entries = self._hooks[stage]
        for index, entry in enumerate(entries):
            if entry.handler == handler:
                entries.pop(index)
                logger.debug("Removed %s hook %s", stage.value, _handler_name(handler))
                return True
        return False

    def run(self, stage: SaveStage, buffer: "EditorBuffer") -> None:
        """Invoke every hook registered for ``stage`` with ``buffer``.

        Exceptions propagate to the caller and stop the remaining hooks.
        """

        for entry in list(self._hooks[stage]):
            entry.handler(buffer)

    def handlers(self, stage: SaveStage) -> tuple[SaveHook, ...]:
        return tuple(entry.handler for entry in self._hooks[stage])

    def handler_count(self, stage: SaveStage | None = None) -> int:
        if stage is not None:
            return len(self._hooks[stage])
        return sum(len(entries) for entries in self._hooks.values())

    def clear(self) -> None:
        for entries in self._hooks.values():
            entries.clear()


def _handler_name(handler: SaveHook) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
