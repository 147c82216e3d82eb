"""Save-time whitespace cleanup for editor buffers."""

__version__ = "0.1.0"
