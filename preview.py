"""
Image preview for the most recently added file.

The reader turns an image file into a data URL; the slot holds one value
and only accepts the result belonging to the latest request.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Optional

from logs import logger
from upload import SourceFile

# Larger images are not previewed.
MAX_PREVIEW_BYTES = 20 * 1024 * 1024


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read(MAX_PREVIEW_BYTES + 1)


async def read_data_url(source: SourceFile) -> Optional[str]:
    """Return a ``data:`` URL for an image file, or None when not applicable."""
    if not source.is_image:
        return None

    if source.data is not None:
        data = source.data
    elif source.path:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, _read_bytes, source.path)
    else:
        return None

    if len(data) > MAX_PREVIEW_BYTES:
        logger.info(f"Preview skipped for {source.name}: larger than {MAX_PREVIEW_BYTES} bytes")
        return None

    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{source.mime_type};base64,{b64}"


class PreviewSlot:
    """Single preview value with last-write-wins semantics."""

    def __init__(self):
        self._value: Optional[str] = None
        self._generation = 0

    @property
    def value(self) -> Optional[str]:
        return self._value

    def begin(self) -> int:
        """Start a new preview request; older requests can no longer write."""
        self._generation += 1
        return self._generation

    def offer(self, token: int, value: Optional[str]) -> bool:
        """Store ``value`` if ``token`` is still the latest request."""
        if token != self._generation:
            return False
        self._value = value
        return True

    def clear(self) -> bool:
        """Empty the slot and invalidate pending requests. Returns True if it held a value."""
        self._generation += 1
        had_value = self._value is not None
        self._value = None
        return had_value
