"""
JSON-file backed settings for the intake service.
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

from logs import logger
from upload import SourceFile

DEFAULT_SETTINGS_PATH = os.path.join("~", ".config", "fileintake", "settings.json")

DEFAULTS: dict[str, Any] = {
    "tick_interval": 0.5,
    "progress_step": 10,
    "accept": ["image/*", ".pdf", ".doc", ".docx"],
    "host": "0.0.0.0",
    "port": 0,
    "max_message_size": 50 * 1024 * 1024,
}

MIN_TICK_INTERVAL = 0.05
MAX_TICK_INTERVAL = 10.0


class IntakeSettings:
    """Settings stored as a flat JSON object."""

    def __init__(self, path: Optional[str] = None):
        self.path = os.path.expanduser(path or DEFAULT_SETTINGS_PATH)
        self.settings: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.path):
            self.settings = {}
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read settings from {self.path}, using defaults: {e}")
            self.settings = {}
            return
        if not isinstance(data, dict):
            logger.warning(f"Settings file {self.path} is not a JSON object, using defaults")
            data = {}
        self.settings = data

    def commit(self) -> None:
        """Write settings to disk."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.settings, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def getSetting(self, key: str, default: Any = None) -> Any:
        return self.settings.get(key, default)

    def setSetting(self, key: str, value: Any) -> None:
        self.settings[key] = value
        self.commit()

    # ── Typed accessors ──────────────────────────────────────────────────

    def _number(self, key: str, cast, low, high):
        raw = self.getSetting(key, DEFAULTS[key])
        try:
            value = cast(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid {key} setting {raw!r}, using {DEFAULTS[key]}")
            value = DEFAULTS[key]
        return max(low, min(value, high))

    @property
    def tick_interval(self) -> float:
        return self._number("tick_interval", float, MIN_TICK_INTERVAL, MAX_TICK_INTERVAL)

    @property
    def progress_step(self) -> int:
        return self._number("progress_step", int, 1, 100)

    @property
    def accept(self) -> list[str]:
        value = self.getSetting("accept", DEFAULTS["accept"])
        if not isinstance(value, list):
            return list(DEFAULTS["accept"])
        return [str(v) for v in value]

    @property
    def host(self) -> str:
        return str(self.getSetting("host", DEFAULTS["host"]))

    @property
    def port(self) -> int:
        return self._number("port", int, 0, 65535)

    @property
    def max_message_size(self) -> int:
        return self._number("max_message_size", int, 1024, 1024 * 1024 * 1024)

    def accepts(self, source: SourceFile) -> bool:
        """Check ``source`` against the accept list (MIME wildcards, MIME types, .ext)."""
        patterns = self.accept
        if not patterns:
            return True
        return any(_accept_matches(p, source) for p in patterns)


def _accept_matches(pattern: str, source: SourceFile) -> bool:
    pattern = pattern.strip().lower()
    mime_type = source.mime_type.lower()
    if not pattern:
        return False
    if pattern.startswith("."):
        return source.name.lower().endswith(pattern)
    if pattern.endswith("/*"):
        return mime_type.startswith(pattern[:-1])
    return mime_type == pattern
