"""Plain data held by an :class:`~tidysave.editor.buffer.EditorBuffer`."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


def content_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class EditorOptions:
    """Per-buffer editor preferences read by the cleanup strategies.

    ``delete_trailing_lines`` also collapses the blank lines piled up at the
    end of a document whenever trailing whitespace is stripped.
    """

    delete_trailing_lines: bool = True
    tab_width: int = 8
    indent_tabs: bool = False


@dataclass(slots=True)
class DocumentMetadata:
    """File path and on-disk conventions of a document."""

    path: Optional[Path] = None
    language: str = "text"
    newline: str = "\n"
    encoding: str = "utf-8"


@dataclass(slots=True)
class DocumentState:
    text: str = ""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    cursor: int = 0
    modified: bool = False
    read_only: bool = False
    restriction: tuple[int, int] | None = None
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = ""

    def __post_init__(self) -> None:
        self.content_hash = self.content_hash or content_digest(self.text)

    def update_text(self, new_text: str) -> None:
        """Replace the contents, bumping ``version_id`` and flagging the edit."""

        self.text = new_text
        self.version_id += 1
        self.content_hash = content_digest(new_text)
        self.modified = True

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of the document for logs and debugging."""

        optional = {
            "path": str(self.metadata.path) if self.metadata.path else None,
            "restriction": list(self.restriction) if self.restriction is not None else None,
        }
        return {
            "document_id": self.document_id,
            "version_id": self.version_id,
            "content_hash": self.content_hash,
            "language": self.metadata.language,
            "text": self.text,
            "cursor": self.cursor,
            "modified": self.modified,
            "read_only": self.read_only,
            **{key: value for key, value in optional.items() if value is not None},
        }
