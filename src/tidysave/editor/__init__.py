"""Editor package containing the document model, buffers and the save pipeline."""

from importlib import import_module
from typing import Any

from . import buffer, document_model, save_hooks

__all__ = ["buffer", "document_model", "save_hooks"]


def __getattr__(name: str) -> Any:
    if name in {"qt_view", "workspace"}:
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
