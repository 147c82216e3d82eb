"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from tidysave.editor.buffer import EditorBuffer
from tidysave.editor.document_model import DocumentMetadata, DocumentState, EditorOptions
from tidysave.services.settings import CleanupSettings

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

BufferFactory = Callable[..., EditorBuffer]


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep log files and env overrides from leaking between tests."""

    for name in list(os.environ):
        if name.startswith("TIDYSAVE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TIDYSAVE_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def make_buffer() -> BufferFactory:
    def factory(
        text: str = "",
        *,
        cursor: int = 0,
        language: str = "text",
        read_only: bool = False,
        **options: object,
    ) -> EditorBuffer:
        document = DocumentState(
            text=text,
            metadata=DocumentMetadata(language=language),
            cursor=cursor,
            read_only=read_only,
        )
        return EditorBuffer(document, options=EditorOptions(**options))  # type: ignore[arg-type]

    return factory


@pytest.fixture
def cleanup_settings() -> CleanupSettings:
    return CleanupSettings()
