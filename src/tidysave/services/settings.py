"""Settings dataclasses and persistence helpers.

Settings are immutable: they are loaded once at startup and handed by
reference to every per-document controller, so changing them means building a
new :class:`Settings` (``dataclasses.replace``) and re-enabling the mode.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, get_type_hints

from ..editor.document_model import EditorOptions

__all__ = [
    "Settings",
    "CleanupSettings",
    "SettingsStore",
    "apply_overrides",
    "setting_annotation",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".tidysave"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "debug"})


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


# Environment variable -> (settings key, parser).
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "TIDYSAVE_STRATEGY": ("cleanup.strategy", str),
    "TIDYSAVE_MESSAGE_PREFIX": ("cleanup.message_prefix", str),
    "TIDYSAVE_VERBOSE": ("cleanup.verbose", _env_bool),
    "TIDYSAVE_RESTORE_COLUMN": ("cleanup.restore_column", _env_bool),
    "TIDYSAVE_ONLY_IF_INITIALLY_CLEAN": ("cleanup.only_if_initially_clean", _env_bool),
    "TIDYSAVE_DELETE_TRAILING_LINES": ("editor.delete_trailing_lines", _env_bool),
    "TIDYSAVE_DEBUG_LOGGING": ("debug_logging", _env_bool),
    "TIDYSAVE_TAB_WIDTH": ("editor.tab_width", lambda raw: int(raw, 10)),
}


@dataclass(slots=True, frozen=True)
class CleanupSettings:
    """Behaviour of the save-time whitespace cleanup."""

    verbose: bool = False
    restore_column: bool = False
    only_if_initially_clean: bool = True
    strategy: str = "delete-trailing-whitespace"
    ignore_languages: tuple[str, ...] = ("markdown",)
    message_prefix: str = "whitespace-cleanup"


@dataclass(slots=True, frozen=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    cleanup: CleanupSettings = field(default_factory=CleanupSettings)
    editor: EditorOptions = field(default_factory=EditorOptions)
    debug_logging: bool = False


_SECTIONS: Mapping[str, type] = {"cleanup": CleanupSettings, "editor": EditorOptions}


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI then environment overrides."""

        payload = self._read_payload()
        settings = _settings_from_payload(payload) if payload else Settings()
        LOGGER.debug("Settings loaded from %s: %s", self._path, settings)

        if overrides:
            settings = apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        body = json.dumps({**asdict(settings), "version": _SETTINGS_VERSION}, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if isinstance(data, Mapping):
            return dict(data)
        LOGGER.warning("Settings file %s does not contain a JSON object", self._path)
        return {}

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, (key, parse) in _ENV_OVERRIDES.items():
            raw = os.environ.get(env_name)
            if raw is None:
                continue
            try:
                overrides[key] = parse(raw)
            except ValueError:
                LOGGER.warning("Ignoring environment override %s=%r", env_name, raw)
        if not overrides:
            return settings
        return apply_overrides(settings, overrides, source="environment")


def apply_overrides(
    settings: Settings,
    overrides: Mapping[str, Any],
    *,
    source: str = "runtime",
) -> Settings:
    """Return a copy of ``settings`` with dotted-key ``overrides`` applied.

    Keys are either top-level fields (``debug_logging``) or ``section.field``
    (``cleanup.verbose``). ``None`` values are ignored; unknown keys raise
    :class:`KeyError`.
    """

    top_level: Dict[str, Any] = {}
    sections: Dict[str, Dict[str, Any]] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        section, name = _split_key(key)
        if section is None:
            top_level[name] = value
        else:
            sections.setdefault(section, {})[name] = _normalize_value(name, value)
    for section, values in sections.items():
        top_level[section] = replace(getattr(settings, section), **values)
    if top_level:
        LOGGER.debug("Applying %s settings overrides: %s", source, sorted(overrides))
        settings = replace(settings, **top_level)
    return settings


def setting_annotation(key: str) -> Any:
    """Return the resolved type annotation for a dotted settings key."""

    section, name = _split_key(key)
    owner = Settings if section is None else _SECTIONS[section]
    return get_type_hints(owner)[name]


def _split_key(key: str) -> tuple[str | None, str]:
    section, _, name = key.rpartition(".")
    if not section:
        allowed = {item.name for item in fields(Settings)} - set(_SECTIONS)
        if name not in allowed:
            raise KeyError(f"Unknown setting '{key}'")
        return None, name
    section_cls = _SECTIONS.get(section)
    if section_cls is None or name not in {item.name for item in fields(section_cls)}:
        raise KeyError(f"Unknown setting '{key}'")
    return section, name


def _normalize_value(name: str, value: Any) -> Any:
    if name == "ignore_languages" and not isinstance(value, tuple):
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return tuple(value)
    return value


def _settings_from_payload(payload: Mapping[str, Any]) -> Settings:
    updates: Dict[str, Any] = {}
    allowed = {item.name for item in fields(Settings)}
    for key, value in payload.items():
        if key == "version":
            continue
        if key not in allowed:
            LOGGER.warning("Ignoring unknown setting '%s'", key)
            continue
        section_cls = _SECTIONS.get(key)
        if section_cls is not None:
            updates[key] = _section_from_payload(section_cls, key, value)
        else:
            updates[key] = value
    try:
        return Settings(**updates)
    except TypeError as exc:
        LOGGER.warning("Settings payload contained unexpected data: %s", exc)
        return Settings()


def _section_from_payload(section_cls: type, section: str, payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        LOGGER.warning("Settings section '%s' is not an object; using defaults", section)
        return section_cls()
    known = {item.name for item in fields(section_cls)}
    values: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in known:
            LOGGER.warning("Ignoring unknown setting '%s.%s'", section, key)
            continue
        values[key] = _normalize_value(key, value)
    try:
        return section_cls(**values)
    except TypeError as exc:
        LOGGER.warning("Settings section '%s' is invalid: %s", section, exc)
        return section_cls()
