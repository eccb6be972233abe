"""
Command surface of the file intake: add, cancel and remove files.

Commands are synchronous with respect to registry state. Progress ticks and
preview reads happen later on the clock and event loop.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from logs import logger
from preview import PreviewSlot, read_data_url
from progress_driver import PROGRESS_STEP, TICK_INTERVAL, ProgressDriver
from registry import SessionRegistry
from upload import Session, SourceFile, UploadStatus

IntakeListener = Callable[[str, dict], None]
PreviewReader = Callable[[SourceFile], Awaitable[Optional[str]]]


class FileIntake:
    """Owns the session registry, the progress driver and the preview slot."""

    def __init__(
        self,
        clock=None,
        interval: float = TICK_INTERVAL,
        step: int = PROGRESS_STEP,
        reader: PreviewReader = read_data_url,
    ) -> None:
        self.registry = SessionRegistry()
        self.driver = ProgressDriver(self.registry, clock=clock, interval=interval, step=step)
        self._preview = PreviewSlot()
        self._reader = reader
        self._preview_tasks: set[asyncio.Task] = set()
        self._listeners: list[IntakeListener] = []
        self.registry.subscribe(self._on_registry_event)

    # ── Commands ─────────────────────────────────────────────────────────

    def add_file(self, source: SourceFile) -> str:
        """Track a new file and start its upload. Returns the session id."""
        upload_id = self.registry.add(source)
        self.driver.start(upload_id)
        if source.is_image:
            self._start_preview(source)
        elif self._preview.clear():
            self._emit("preview", {"preview": None})
        return upload_id

    def cancel_upload(self, upload_id: str) -> None:
        """Cancel an uploading file. No-op for unknown or finished sessions."""
        session = self.registry.get(upload_id)
        if session is None:
            logger.debug(f"Cancel ignored, unknown session: {upload_id}")
            return
        if session.status is not UploadStatus.UPLOADING:
            logger.debug(f"Cancel ignored, {upload_id} is {session.status.value}")
            return

        session.cancellation.cancel()
        self.driver.stop(upload_id)
        self.registry.update(
            upload_id,
            status=UploadStatus.ERROR,
            cancelled=True,
            is_active=False,
            progress=0,
        )
        logger.info(f"Upload cancelled: {upload_id} ({session.source.name})")

    def remove_file(self, upload_id: str) -> None:
        """Forget a file, stopping its upload. No-op for unknown ids."""
        self.driver.stop(upload_id)
        if self.registry.remove(upload_id) is None:
            return
        if not len(self.registry) and self._preview.clear():
            self._emit("preview", {"preview": None})

    # ── Queries ──────────────────────────────────────────────────────────

    def get(self, upload_id: str) -> Optional[Session]:
        return self.registry.get(upload_id)

    def list(self) -> list[Session]:
        return self.registry.list()

    def snapshot(self) -> list[dict]:
        return self.registry.snapshot()

    @property
    def preview(self) -> Optional[str]:
        return self._preview.value

    # ── Observers ────────────────────────────────────────────────────────

    def subscribe(self, listener: IntakeListener) -> Callable[[], None]:
        """Receive ("added" | "updated" | "removed", session dict) and ("preview", {...})."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _on_registry_event(self, event: str, session: Session) -> None:
        self._emit(event, session.to_dict())

    def _emit(self, event: str, data: dict) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, data)
            except Exception as e:
                logger.error(f"Intake listener failed on {event}: {e}")

    # ── Preview ──────────────────────────────────────────────────────────

    def _start_preview(self, source: SourceFile) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, preview skipped for {source.name}")
            return
        token = self._preview.begin()
        task = loop.create_task(self._load_preview(token, source))
        self._preview_tasks.add(task)
        task.add_done_callback(self._preview_tasks.discard)

    async def _load_preview(self, token: int, source: SourceFile) -> None:
        try:
            value = await self._reader(source)
        except Exception as e:
            logger.warning(f"Preview failed for {source.name}: {e}")
            value = None
        if self._preview.offer(token, value):
            self._emit("preview", {"preview": value})

    async def wait_previews(self) -> None:
        """Wait for pending preview reads to settle."""
        if self._preview_tasks:
            await asyncio.gather(*list(self._preview_tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop every pending tick and preview read."""
        self.driver.stop_all()
        for task in list(self._preview_tasks):
            task.cancel()
        logger.info("File intake closed")
