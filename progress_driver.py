"""
Per-session progress ticking.

Each uploading session owns at most one pending timer. A tick advances the
session by a fixed step; a cancelled, removed or finished session gets no
further ticks.
"""

from __future__ import annotations

import asyncio

from logs import logger
from registry import SessionRegistry
from upload import UploadStatus

TICK_INTERVAL = 0.5  # seconds
PROGRESS_STEP = 10  # percentage points per tick
MAX_PROGRESS = 100


class ProgressDriver:
    """Schedules and applies progress ticks for sessions in a registry."""

    def __init__(
        self,
        registry: SessionRegistry,
        clock=None,
        interval: float = TICK_INTERVAL,
        step: int = PROGRESS_STEP,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"tick interval must be positive: {interval}")
        if step <= 0:
            raise ValueError(f"progress step must be positive: {step}")
        self.registry = registry
        self.interval = interval
        self.step = step
        self._clock = clock
        self._handles: dict = {}

    @property
    def clock(self):
        # Resolved lazily so the driver can be built before the loop runs.
        if self._clock is None:
            self._clock = asyncio.get_running_loop()
        return self._clock

    def start(self, upload_id: str) -> bool:
        """Begin ticking an uploading session. Returns False if nothing was scheduled."""
        if upload_id in self._handles:
            return False
        session = self.registry.get(upload_id)
        if session is None or not session.is_active or session.terminal:
            return False
        if session.cancellation.cancelled:
            return False
        self._schedule(upload_id)
        logger.debug(f"Progress ticking started for {upload_id} (every {self.interval}s)")
        return True

    def stop(self, upload_id: str) -> None:
        """Cancel the pending tick for ``upload_id``, if any."""
        handle = self._handles.pop(upload_id, None)
        if handle is not None:
            handle.cancel()
            logger.debug(f"Progress ticking stopped for {upload_id}")

    def stop_all(self) -> None:
        for upload_id in list(self._handles):
            self.stop(upload_id)

    def running(self, upload_id: str) -> bool:
        return upload_id in self._handles

    @property
    def pending(self) -> int:
        return len(self._handles)

    def _schedule(self, upload_id: str) -> None:
        self._handles[upload_id] = self.clock.call_later(self.interval, self._tick, upload_id)

    def _tick(self, upload_id: str) -> None:
        self._handles.pop(upload_id, None)

        session = self.registry.get(upload_id)
        if session is None:
            return

        if (session.cancellation.cancelled or not session.is_active
                or session.status is not UploadStatus.UPLOADING):
            # The cancel command owns the visible transition; only halt here.
            if session.is_active:
                self.registry.update(upload_id, is_active=False)
            return

        new_progress = session.progress + self.step
        if new_progress >= MAX_PROGRESS:
            self.registry.update(
                upload_id,
                progress=MAX_PROGRESS,
                status=UploadStatus.DONE,
                is_active=False,
                ticks=session.ticks + 1,
            )
            logger.info(f"Upload complete: {upload_id} ({session.source.name})")
            return

        self.registry.update(upload_id, progress=new_progress, ticks=session.ticks + 1)

        # Listeners run inside update() and may have removed, cancelled or
        # restarted this session.
        if upload_id in self._handles:
            return
        if (self.registry.get(upload_id) is not session or not session.is_active
                or session.cancellation.cancelled):
            return
        self._schedule(upload_id)


def ticks_to_complete(step: int = PROGRESS_STEP) -> int:
    """Number of ticks a session needs to reach MAX_PROGRESS."""
    return -(-MAX_PROGRESS // step)
