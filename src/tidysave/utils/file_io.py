"""Reading and writing document files for the save pipeline.

Buffers always hold ``\\n`` line endings. :func:`load_text` reports the
encoding and line terminator a file used so :func:`write_text` can put them
back when the document is saved.
"""

from __future__ import annotations

import codecs
import locale
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

__all__ = [
    "LoadedText",
    "read_text",
    "load_text",
    "write_text",
    "detect_newline",
]

_BOMS: tuple[tuple[bytes, str], ...] = (
    # UTF-32 first: its little-endian BOM starts with the UTF-16 one.
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)
_NEWLINES = ("\n", "\r\n", "\r")


@dataclass(slots=True, frozen=True)
class LoadedText:
    """Decoded file contents plus the conventions needed to write them back."""

    text: str
    encoding: str
    newline: str


def read_text(
    path: Path | str,
    *,
    encoding: str | None = None,
    errors: str = "strict",
    normalize_newlines: bool = True,
) -> str:
    return load_text(path, encoding=encoding, errors=errors, normalize_newlines=normalize_newlines).text


def load_text(
    path: Path | str,
    *,
    encoding: str | None = None,
    errors: str = "strict",
    normalize_newlines: bool = True,
) -> LoadedText:
    """Decode ``path``, guessing the encoding from its BOM or by trial decoding.

    A leading byte-order mark never reaches the returned text. With
    ``normalize_newlines`` every ``\\r\\n`` and lone ``\\r`` becomes ``\\n``;
    ``newline`` reports the first terminator the file used either way.
    """

    raw = Path(path).read_bytes()
    chosen = encoding or _guess_encoding(raw)
    text = raw.decode(chosen, errors=errors).removeprefix("\ufeff")
    newline = detect_newline(text)
    if normalize_newlines:
        text = _to_lf(text)
    return LoadedText(text=text, encoding=chosen, newline=newline)


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    newline: str = "\n",
    atomic: bool = True,
) -> Path:
    """Write ``content`` with ``newline`` terminators, via a temp file unless ``atomic`` is off."""

    if newline not in _NEWLINES:
        raise ValueError(f"Unsupported newline policy: {newline!r}")
    data = _to_lf(content).replace("\n", newline).encode(encoding)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if atomic:
        _replace_atomically(target, data)
    else:
        with target.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
    return target


def detect_newline(text: str) -> str:
    """Return the first line terminator found in ``text`` (``"\\n"`` when none)."""

    for index, char in enumerate(text):
        if char == "\n":
            return "\n"
        if char == "\r":
            return "\r\n" if text.startswith("\n", index + 1) else "\r"
    return "\n"


def _replace_atomically(target: Path, data: bytes) -> None:
    handle = tempfile.NamedTemporaryFile(
        "wb", dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False
    )
    tmp_path = Path(handle.name)
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _guess_encoding(raw: bytes) -> str:
    for bom, name in _BOMS:
        if raw.startswith(bom):
            return name
    for candidate in _candidate_encodings():
        try:
            raw.decode(candidate)
        except UnicodeDecodeError:
            continue
        return candidate
    return "utf-8"


def _candidate_encodings() -> Iterator[str]:
    seen: set[str] = set()
    for name in ("utf-8", locale.getpreferredencoding(False), "latin-1"):
        if name and codecs.lookup(name).name not in seen:
            seen.add(codecs.lookup(name).name)
            yield name


def _to_lf(text: str) -> str:
    if "\r" not in text:
        return text
    return text.replace("\r\n", "\n").replace("\r", "\n")
