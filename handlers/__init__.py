"""WebSocket message handlers, split by domain."""

from . import files, info

__all__ = ["files", "info"]
