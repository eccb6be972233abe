"""
Ordered registry of upload sessions. Single source of truth for observers.
"""

from __future__ import annotations

import itertools
import secrets
from typing import Callable, Optional

from logs import logger
from upload import Session, SourceFile

Listener = Callable[[str, Session], None]

# Fields a caller may change through update(); everything else is fixed at creation.
_MUTABLE_FIELDS = frozenset({"progress", "status", "cancelled", "is_active", "ticks"})


class SessionRegistry:
    """Insertion-ordered sessions keyed by id."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._listeners: list[Listener] = []
        self._seq = itertools.count(1)

    def _new_id(self) -> str:
        while True:
            upload_id = f"upload-{next(self._seq)}-{secrets.token_hex(3)}"
            if upload_id not in self._sessions:
                return upload_id

    def add(self, source: SourceFile) -> str:
        """Create a session for ``source`` and return its id."""
        upload_id = self._new_id()
        session = Session(upload_id, source)
        self._sessions[upload_id] = session
        logger.info(f"Session added: {upload_id} ({source.name}, {source.size} bytes)")
        self._notify("added", session)
        return upload_id

    def remove(self, upload_id: str) -> Optional[Session]:
        """Signal the session's cancellation handle and drop it. No-op if absent."""
        session = self._sessions.get(upload_id)
        if session is None:
            logger.debug(f"Remove ignored, unknown session: {upload_id}")
            return None
        session.cancellation.cancel()
        del self._sessions[upload_id]
        logger.info(f"Session removed: {upload_id}")
        self._notify("removed", session)
        return session

    def get(self, upload_id: str) -> Optional[Session]:
        return self._sessions.get(upload_id)

    def list(self) -> list[Session]:
        return list(self._sessions.values())

    def snapshot(self) -> list[dict]:
        return [s.to_dict() for s in self._sessions.values()]

    def update(self, upload_id: str, **changes) -> Optional[Session]:
        """Apply ``changes`` to one session in a single step.

        Returns the updated session, or None when the id is unknown.
        Raises AttributeError for fields that cannot be updated.
        """
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise AttributeError(f"cannot update session fields: {sorted(unknown)}")

        session = self._sessions.get(upload_id)
        if session is None:
            return None
        for name, value in changes.items():
            setattr(session, name, value)
        self._notify("updated", session)
        return session

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for added/updated/removed events."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: str, session: Session) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception as e:
                logger.error(f"Registry listener failed on {event} for {session.id}: {e}")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, upload_id: object) -> bool:
        return upload_id in self._sessions
