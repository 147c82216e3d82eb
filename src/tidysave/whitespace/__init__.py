"""Whitespace cleanup strategies and the controllers that run them on save."""

from .controller import CleanState, SaveLifecycleController, is_buffer_clean
from .mode import WhitespaceCleanupMode
from .strategies import (
    DEFAULT_STRATEGY_NAME,
    CleanStrategy,
    SupportsCleanCheck,
    TrailingWhitespaceStrategy,
    WhitespaceCleanupStrategy,
    available_strategies,
    get_strategy,
    register_strategy,
)

__all__ = [
    "CleanState",
    "CleanStrategy",
    "DEFAULT_STRATEGY_NAME",
    "SaveLifecycleController",
    "SupportsCleanCheck",
    "TrailingWhitespaceStrategy",
    "WhitespaceCleanupMode",
    "WhitespaceCleanupStrategy",
    "available_strategies",
    "get_strategy",
    "is_buffer_clean",
    "register_strategy",
]
