"""Workspace managing open documents and their save pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List

from ..events import DocumentClosed, DocumentOpened, DocumentSaved, EventBus
from ..utils import file_io
from .buffer import EditorBuffer
from .document_model import DocumentMetadata, DocumentState, EditorOptions
from .save_hooks import SaveStage

__all__ = ["DocumentWorkspace", "FileWriter", "language_for_path"]

LOGGER = logging.getLogger(__name__)

FileWriter = Callable[..., Path]

_LANGUAGE_BY_SUFFIX: Dict[str, str] = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".py": "python",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".toml": "toml",
    ".txt": "text",
}


def _normalize_path(path: Path | str | None) -> Path | None:
    if path is None:
        return None
    return Path(path).expanduser().resolve()


def language_for_path(path: Path | str | None) -> str:
    """Best-effort language name derived from a file suffix."""

    if path is None:
        return "text"
    return _LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower(), "text")


class DocumentWorkspace:
    """Open buffers keyed by document id, plus the host side of saving."""

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        options: EditorOptions | None = None,
        file_writer: FileWriter | None = None,
    ) -> None:
        self._bus = bus or EventBus()
        self._options = options or EditorOptions()
        self._file_writer = file_writer or file_io.write_text
        self._buffers: Dict[str, EditorBuffer] = {}
        self._order: List[str] = []

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def options(self) -> EditorOptions:
        return self._options

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------
    def open_document(
        self,
        path: Path | str | None = None,
        *,
        text: str | None = None,
        language: str | None = None,
        read_only: bool = False,
    ) -> EditorBuffer:
        """Open ``path`` (or an untitled document holding ``text``) and publish ``DocumentOpened``."""

        resolved = _normalize_path(path)
        metadata = DocumentMetadata(path=resolved, language=language or language_for_path(resolved))
        if text is None and resolved is not None and resolved.exists():
            loaded = file_io.load_text(resolved)
            text = loaded.text
            metadata.newline = loaded.newline
            metadata.encoding = loaded.encoding
        document = DocumentState(text=text or "", metadata=metadata, read_only=read_only)
        return self.add_buffer(EditorBuffer(document, options=self._options))

    def add_buffer(self, buffer: EditorBuffer) -> EditorBuffer:
        document_id = buffer.document_id
        if document_id in self._buffers:
            raise ValueError(f"Document {document_id} is already open")
        self._buffers[document_id] = buffer
        self._order.append(document_id)
        LOGGER.debug("Opened document %s (%s)", document_id, buffer.document.metadata.path)
        path = buffer.document.metadata.path
        self._bus.publish(DocumentOpened(document_id=document_id, path=str(path) if path else None))
        return buffer

    def close_document(self, document_id: str) -> EditorBuffer:
        """Close and return the specified document."""

        if document_id not in self._buffers:
            raise KeyError(f"Unknown document_id: {document_id}")
        buffer = self._buffers.pop(document_id)
        self._order.remove(document_id)
        self._bus.publish(DocumentClosed(document_id=document_id))
        return buffer

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    def get_buffer(self, document_id: str) -> EditorBuffer:
        buffer = self._buffers.get(document_id)
        if buffer is not None:
            return buffer
        match = self.find_by_path(document_id)
        if match is not None:
            return match
        raise KeyError(f"Unknown document_id: {document_id}")

    def find_by_path(self, path: Path | str) -> EditorBuffer | None:
        normalized = _normalize_path(path)
        for buffer in self.iter_buffers():
            if buffer.document.metadata.path == normalized:
                return buffer
        return None

    def iter_buffers(self) -> Iterator[EditorBuffer]:
        for document_id in self._order:
            yield self._buffers[document_id]

    def document_count(self) -> int:
        return len(self._order)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save_document(self, document_id: str, path: Path | str | None = None) -> Path:
        """Run the save lifecycle for one document.

        ``BEFORE_SAVE`` hooks run first; any exception they raise aborts the
        save and propagates. A failed write runs the ``SAVE_ABORTED`` hooks
        before re-raising. After a successful write the buffer is marked
        unmodified, ``AFTER_SAVE`` hooks run and ``DocumentSaved`` is
        published.
        """

        buffer = self.get_buffer(document_id)
        metadata = buffer.document.metadata
        target = _normalize_path(path) or metadata.path
        if target is None:
            raise RuntimeError(f"Document {document_id} has no path to save to")

        hooks = buffer.hooks
        try:
            hooks.run(SaveStage.BEFORE_SAVE, buffer)
            self._file_writer(
                target,
                buffer.text,
                encoding=metadata.encoding,
                newline=metadata.newline,
            )
        except Exception:
            LOGGER.warning("Save of %s to %s failed", document_id, target, exc_info=True)
            hooks.run(SaveStage.SAVE_ABORTED, buffer)
            raise

        metadata.path = target
        buffer.set_modified(False)
        hooks.run(SaveStage.AFTER_SAVE, buffer)
        self._bus.publish(DocumentSaved(document_id=document_id, path=str(target)))
        LOGGER.debug("Saved %s to %s", document_id, target)
        return target
