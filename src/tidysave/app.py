"""Command line entry point: clean and save files through the editor pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin

from .editor.workspace import DocumentWorkspace
from .events import StatusMessage
from .services.settings import Settings, SettingsStore, setting_annotation
from .utils import logging as logging_utils
from .whitespace import WhitespaceCleanupMode, available_strategies, is_buffer_clean

_LOGGER = logging.getLogger(__name__)
_BOOL_WORDS = {
    **dict.fromkeys(("1", "true", "yes", "on", "debug"), True),
    **dict.fromkeys(("0", "false", "no", "off", "disabled"), False),
}
_ENV_PREFIX = "TIDYSAVE_"


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Send warnings (everything with ``debug``) to stderr and the log file."""

    log_path = logging_utils.setup_logging(logging.DEBUG if debug else logging.WARNING, force=force)
    _LOGGER.debug("Debug logging enabled; writing to %s", log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Read settings from ``store`` (or ``path``); unreadable files yield defaults."""

    store = store or SettingsStore(path)
    try:
        return store.load(overrides=overrides)
    except (OSError, ValueError, TypeError) as exc:
        _LOGGER.warning("Ignoring settings at %s: %s", store.path, exc)
    return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``tidysave`` console script."""

    args = _parse_cli_args(argv)

    debug = bool(args.debug) or _env_flag("TIDYSAVE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("TIDYSAVE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if not args.files:
        print("No files given; nothing to do.", file=sys.stderr)
        return 0

    try:
        mode = WhitespaceCleanupMode(settings.cleanup)
    except KeyError as exc:
        print(f"Unknown cleanup strategy: {exc}", file=sys.stderr)
        return 2

    workspace = DocumentWorkspace(options=settings.editor)
    if args.check:
        return _check_files(workspace, mode, args.files)
    return _clean_files(workspace, mode, args.files, force=args.force)


def _check_files(
    workspace: DocumentWorkspace,
    mode: WhitespaceCleanupMode,
    files: Sequence[str],
    *,
    stream: TextIO | None = None,
) -> int:
    destination = stream or sys.stdout
    status = 0
    for name in files:
        path = Path(name)
        if not path.is_file():
            print(f"{name}: no such file", file=sys.stderr)
            status = 1
            continue
        try:
            buffer = workspace.open_document(path)
        except (OSError, UnicodeDecodeError) as exc:
            print(f"{name}: {exc}", file=sys.stderr)
            status = 1
            continue
        try:
            if mode.is_suitable(buffer) and not is_buffer_clean(buffer, mode.strategy):
                destination.write(f"{name}\n")
                status = 1
        finally:
            workspace.close_document(buffer.document_id)
    return status


def _clean_files(
    workspace: DocumentWorkspace,
    mode: WhitespaceCleanupMode,
    files: Sequence[str],
    *,
    force: bool = False,
    stream: TextIO | None = None,
) -> int:
    destination = stream or sys.stdout
    names: Dict[str, str] = {}

    def report(event: StatusMessage) -> None:
        label = names.get(event.document_id or "", event.document_id or "")
        destination.write(f"{label}: {event.message}\n")

    workspace.bus.subscribe(StatusMessage, report)
    mode.attach(workspace)
    status = 0
    try:
        for name in files:
            path = Path(name)
            if not path.is_file():
                print(f"{name}: no such file", file=sys.stderr)
                status = 1
                continue
            try:
                buffer = workspace.open_document(path)
            except (OSError, UnicodeDecodeError) as exc:
                print(f"{name}: {exc}", file=sys.stderr)
                status = 1
                continue
            names[buffer.document_id] = name
            try:
                if force and mode.is_suitable(buffer):
                    mode.clean_now(buffer)
                workspace.save_document(buffer.document_id)
            except (OSError, UnicodeEncodeError) as exc:
                print(f"{name}: {exc}", file=sys.stderr)
                status = 1
            finally:
                workspace.close_document(buffer.document_id)
    finally:
        mode.detach()
        workspace.bus.unsubscribe(StatusMessage, report)
    return status


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tidysave",
        add_help=True,
        description="Strip trailing whitespace from files by running them through the save pipeline.",
    )
    parser.add_argument("files", nargs="*", metavar="FILE", help="Files to clean and save.")
    parser.add_argument(
        "--check",
        action="store_true",
        help="List files that are not clean without changing them; exit 1 if any.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Clean every file, even ones that were not clean when opened.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.tidysave/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings, e.g. cleanup.verbose=true (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        try:
            annotation = setting_annotation(key)
        except KeyError as exc:
            raise ValueError(f"Unknown setting '{key}'.") from exc
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is tuple:
        return tuple(filter(None, (part.strip() for part in raw_value.split(","))))
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin in (tuple, list):
        return tuple
    if origin is not None:
        # Optional[X] and friends collapse to their first concrete member.
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        return members[0] if members else origin
    return annotation


def _parse_bool(value: str) -> bool:
    try:
        return _BOOL_WORDS[value.strip().lower()]
    except KeyError:
        raise ValueError(f"Expected a boolean, got '{value}'.") from None


def _env_flag(name: str, *, default: bool) -> bool:
    raw = os.environ.get(name)
    return default if raw is None else _BOOL_WORDS.get(raw.strip().lower(), False)


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    out = stream or sys.stdout
    report = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "cli_overrides": sorted(overrides),
            "environment_variables": sorted(name for name in os.environ if name.startswith(_ENV_PREFIX)),
            "strategies": list(available_strategies()),
        },
    }
    out.write(json.dumps(report, indent=2) + "\n")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
