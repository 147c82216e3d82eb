"""Event bus used to decouple the workspace from the cleanup mode.

The workspace publishes document lifecycle events; the global cleanup mode
subscribes to them, and status messages produced by verbose cleanup runs are
published back for whichever front end is listening.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]

__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "DocumentOpened",
    "DocumentClosed",
    "DocumentSaved",
    "StatusMessage",
]


@dataclass(slots=True)
class Event:
    """Base class for everything published on an :class:`EventBus`."""


@dataclass(slots=True)
class DocumentOpened(Event):
    """A buffer joined the workspace.

    Attributes:
        document_id: Identity of the new buffer.
        path: File the buffer was loaded from, if any.
    """

    document_id: str
    path: str | None = None


@dataclass(slots=True)
class DocumentClosed(Event):
    """A buffer left the workspace."""

    document_id: str


@dataclass(slots=True)
class DocumentSaved(Event):
    """A buffer was written to ``path`` and its after-save hooks have run."""

    document_id: str
    path: str


@dataclass(slots=True)
class StatusMessage(Event):
    """One line of user-facing feedback.

    Attributes:
        message: Text for a status bar or terminal.
        source: Name of the component that produced it.
        document_id: Buffer the message is about, if any.
    """

    message: str
    source: str = ""
    document_id: str | None = None


@dataclass(slots=True)
class _Subscription:
    """A handler held strongly, or weakly when it is a bound method."""

    target: Any
    weak: bool

    @classmethod
    def wrap(cls, handler: Handler) -> "_Subscription":
        if getattr(handler, "__self__", None) is not None and hasattr(handler, "__func__"):
            return cls(WeakMethod(handler), weak=True)
        return cls(handler, weak=False)

    def callback(self) -> Handler | None:
        return self.target() if self.weak else self.target

    def is_for(self, handler: Handler) -> bool:
        current = self.callback()
        return current is not None and current == handler


class EventBus(Generic[E]):
    """Synchronous publish/subscribe keyed on the exact event class.

    Bound methods are referenced weakly, so an object that subscribed one of
    its methods can be collected without unsubscribing; the stale entry is
    dropped on the next publish. A handler that raises is logged and does not
    stop delivery to the others.
    """

    __slots__ = ("_subscriptions",)

    def __init__(self) -> None:
        self._subscriptions: Dict[type[Event], List[_Subscription]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._subscriptions.setdefault(event_type, []).append(_Subscription.wrap(handler))
        logger.debug("%s subscribed to %s", _describe(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Drop the first subscription of ``handler``; unknown handlers are ignored."""

        entries = self._subscriptions.get(event_type, [])
        for index, entry in enumerate(entries):
            if entry.is_for(handler):
                del entries[index]
                logger.debug("%s unsubscribed from %s", _describe(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to its subscribers in subscription order."""

        event_type = type(event)
        entries = self._subscriptions.get(event_type)
        if not entries:
            logger.debug("No subscribers for %s", event_type.__name__)
            return

        live: List[_Subscription] = []
        for entry in tuple(entries):
            handler = entry.callback()
            if handler is None:
                continue
            live.append(entry)
            try:
                handler(event)
            except Exception:
                logger.exception("%s failed while handling %s", _describe(handler), event_type.__name__)
        if len(live) != len(entries):
            entries[:] = [entry for entry in entries if entry.callback() is not None]

    def clear(self) -> None:
        self._subscriptions.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._subscriptions.get(event_type, ()))
        return sum(len(entries) for entries in self._subscriptions.values())


def _describe(handler: Any) -> str:
    owner = getattr(handler, "__self__", None)
    name = getattr(handler, "__name__", None)
    if owner is not None and name:
        return f"{type(owner).__name__}.{name}"
    return name or repr(handler)
