"""
Upload session state tracking.
"""

from __future__ import annotations

import base64
import binascii
import enum
import mimetypes
import os
import time
from dataclasses import dataclass, field
from typing import Optional

BYTES_PER_MB = 1024 * 1024


class UploadStatus(str, enum.Enum):
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class SourceFile:
    """Read-only metadata of a file handed to the intake."""

    name: str
    size: int
    mime_type: str = ""
    last_modified: int = 0  # ms since epoch
    path: Optional[str] = None
    data: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("file name is required")
        if self.size < 0:
            raise ValueError(f"negative file size: {self.size}")

    @property
    def extension(self) -> str:
        base, dot, ext = self.name.rpartition(".")
        if not dot or not base or not ext:
            return "N/A"
        return ext.upper()

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @classmethod
    def from_path(cls, path: str) -> SourceFile:
        """Build from a local file. Raises OSError if it cannot be stat'ed."""
        st = os.stat(path)
        mime_type, _ = mimetypes.guess_type(path)
        return cls(
            name=os.path.basename(path),
            size=st.st_size,
            mime_type=mime_type or "",
            last_modified=int(st.st_mtime * 1000),
            path=path,
        )

    @classmethod
    def from_payload(cls, payload: dict) -> SourceFile:
        """Build from a bridge payload: name, size, type, lastModified, data (base64)."""
        if not isinstance(payload, dict):
            raise ValueError("payload must be a JSON object")

        data = payload.get("data")
        if isinstance(data, str):
            try:
                data = base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"invalid base64 data: {e}") from e
        elif data is not None:
            raise ValueError("data must be a base64 string")

        name = payload.get("name", "")
        if not isinstance(name, str):
            raise ValueError("name must be a string")
        mime_type = payload.get("type") or ""
        if not isinstance(mime_type, str):
            raise ValueError("type must be a string")

        return cls(
            name=name,
            size=_as_int("size", payload.get("size", len(data) if data else 0)),
            mime_type=mime_type,
            last_modified=_as_int("lastModified", payload.get("lastModified", 0)),
            data=data,
        )


def _as_int(key: str, value) -> int:
    # JSON numbers may arrive as floats; only whole values are accepted.
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


class CancellationHandle:
    """One-shot cancellation signal owned by a single session."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Signal cancellation. Returns False if it was already signaled."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True


class Session:
    """Manages the lifecycle state of one added file."""

    def __init__(self, upload_id: str, source: SourceFile):
        self.id = upload_id
        self.source = source
        self.progress = 0
        self.status = UploadStatus.UPLOADING
        self.cancelled = False
        self.cancellation = CancellationHandle()
        self.is_active = True
        self.ticks = 0
        self.created_at = time.time()

    @property
    def terminal(self) -> bool:
        return self.status is not UploadStatus.UPLOADING

    def to_dict(self) -> dict:
        return {
            "uploadId": self.id,
            "name": self.source.name,
            "type": self.source.mime_type,
            "size": self.source.size,
            "sizeMb": round(self.source.size / BYTES_PER_MB, 2),
            "lastModified": self.source.last_modified,
            "extension": self.source.extension,
            "progress": self.progress,
            "status": self.status.value,
            "cancelled": self.cancelled,
        }

    def __repr__(self):
        return (
            f"Session(id={self.id}, name={self.source.name}, "
            f"progress={self.progress}, status={self.status.value})"
        )
