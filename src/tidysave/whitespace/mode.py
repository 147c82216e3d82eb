"""Registry of cleanup controllers keyed by document identity.

:class:`WhitespaceCleanupMode` is what a host talks to: it turns the cleanup on
or off for individual documents, runs the explicit "clean now" command, and,
once attached to a :class:`~tidysave.editor.workspace.DocumentWorkspace`, turns
itself on for every suitable document the workspace opens.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict

from ..editor.buffer import EditorBuffer
from ..events import DocumentClosed, DocumentOpened, EventBus, StatusMessage
from .controller import SaveLifecycleController
from .strategies import CleanStrategy, get_strategy

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..editor.workspace import DocumentWorkspace
    from ..services.settings import CleanupSettings

__all__ = ["WhitespaceCleanupMode"]

LOGGER = logging.getLogger(__name__)
_SOURCE = "whitespace-cleanup"


class WhitespaceCleanupMode:
    """Owns one :class:`SaveLifecycleController` per enabled document.

    Controllers are dropped when their document closes: a ``DocumentClosed``
    published on ``bus`` (or on the bus of an attached workspace) disables the
    document. Hosts without a bus call :meth:`disable_for_document` themselves.
    """

    def __init__(
        self,
        settings: "CleanupSettings",
        *,
        bus: EventBus | None = None,
        strategy: CleanStrategy | None = None,
    ) -> None:
        self._settings = settings
        self._bus = bus
        self._strategy = strategy or get_strategy(settings.strategy)
        self._controllers: Dict[str, SaveLifecycleController] = {}
        self._workspace: "DocumentWorkspace | None" = None
        self._close_buses: list[EventBus] = []
        self._home_bus = bus
        if bus is not None:
            self._watch_closes(bus)

    @property
    def settings(self) -> "CleanupSettings":
        return self._settings

    @property
    def strategy(self) -> CleanStrategy:
        return self._strategy

    # ------------------------------------------------------------------
    # Per-document switches
    # ------------------------------------------------------------------
    def enable_for_document(self, buffer: EditorBuffer) -> SaveLifecycleController:
        controller = self._controllers.get(buffer.document_id)
        if controller is None:
            controller = SaveLifecycleController(
                buffer,
                self._settings,
                self._strategy,
                notify=self._notifier(buffer.document_id),
            )
            self._controllers[buffer.document_id] = controller
        controller.enable()
        LOGGER.debug(
            "Whitespace cleanup enabled for %s (%s)",
            buffer.document_id,
            controller.clean_state.value,
        )
        return controller

    def disable_for_document(self, buffer: EditorBuffer | str) -> None:
        document_id = buffer if isinstance(buffer, str) else buffer.document_id
        controller = self._controllers.pop(document_id, None)
        if controller is None:
            return
        controller.disable()
        LOGGER.debug("Whitespace cleanup disabled for %s", document_id)

    def is_enabled(self, buffer: EditorBuffer | str) -> bool:
        document_id = buffer if isinstance(buffer, str) else buffer.document_id
        return document_id in self._controllers

    def controller_for(self, buffer: EditorBuffer | str) -> SaveLifecycleController | None:
        document_id = buffer if isinstance(buffer, str) else buffer.document_id
        return self._controllers.get(document_id)

    def enabled_documents(self) -> tuple[str, ...]:
        return tuple(self._controllers)

    def clean_now(self, buffer: EditorBuffer) -> bool:
        """Clean ``buffer`` immediately, outside the save lifecycle.

        Works whether or not the mode is enabled for the document; when it is,
        the document becomes clean for the "only if initially clean" policy.
        Returns ``True`` when the text changed.
        """

        version = buffer.document.version_id
        controller = self._controllers.get(buffer.document_id)
        if controller is not None:
            controller.clean()
        else:
            with buffer.without_restriction():
                self._strategy.clean(buffer)
        changed = buffer.document.version_id != version
        LOGGER.debug("clean_now on %s changed=%s", buffer.document_id, changed)
        return changed

    def is_suitable(self, buffer: EditorBuffer) -> bool:
        """Whether the global mode should switch itself on for ``buffer``."""

        if buffer.read_only:
            return False
        language = (buffer.document.metadata.language or "").lower()
        ignored = {item.lower() for item in self._settings.ignore_languages}
        return language not in ignored

    # ------------------------------------------------------------------
    # Global mode
    # ------------------------------------------------------------------
    def attach(self, workspace: "DocumentWorkspace") -> None:
        """Enable the mode on suitable open and future documents of ``workspace``.

        The workspace bus holds the mode weakly, so the caller keeps it alive.
        """

        if self._workspace is workspace:
            return
        if self._workspace is not None:
            self.detach()
        self._workspace = workspace
        if self._bus is None:
            self._bus = workspace.bus
        workspace.bus.subscribe(DocumentOpened, self._on_document_opened)
        self._watch_closes(workspace.bus)
        for buffer in workspace.iter_buffers():
            if self.is_suitable(buffer):
                self.enable_for_document(buffer)

    def detach(self) -> None:
        workspace = self._workspace
        if workspace is None:
            return
        workspace.bus.unsubscribe(DocumentOpened, self._on_document_opened)
        if workspace.bus is not self._home_bus:
            self._unwatch_closes(workspace.bus)
        for document_id in list(self._controllers):
            self.disable_for_document(document_id)
        self._workspace = None

    def _on_document_opened(self, event: DocumentOpened) -> None:
        if self._workspace is None:
            return
        buffer = self._workspace.get_buffer(event.document_id)
        if self.is_suitable(buffer):
            self.enable_for_document(buffer)
        else:
            LOGGER.debug("Skipping whitespace cleanup for %s", event.document_id)

    def _on_document_closed(self, event: DocumentClosed) -> None:
        self.disable_for_document(event.document_id)

    def _watch_closes(self, bus: EventBus) -> None:
        if any(known is bus for known in self._close_buses):
            return
        bus.subscribe(DocumentClosed, self._on_document_closed)
        self._close_buses.append(bus)

    def _unwatch_closes(self, bus: EventBus) -> None:
        bus.unsubscribe(DocumentClosed, self._on_document_closed)
        self._close_buses = [known for known in self._close_buses if known is not bus]

    def _notifier(self, document_id: str) -> Callable[[str], None]:
        def notify(message: str) -> None:
            if self._bus is not None:
                self._bus.publish(StatusMessage(message=message, source=_SOURCE, document_id=document_id))

        return notify
