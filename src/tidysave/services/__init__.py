"""Service layer helpers (settings persistence)."""

from .settings import CleanupSettings, Settings, SettingsStore

__all__ = ["CleanupSettings", "Settings", "SettingsStore"]
