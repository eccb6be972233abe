"""
File intake service - entry point.
Thin wiring: all logic lives in dedicated modules.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional

import logs
from intake import FileIntake
from intake_settings import IntakeSettings
from logs import logger
from ws_server import WebSocketServer


class App:
    settings: IntakeSettings
    intake: FileIntake
    ws_server: WebSocketServer

    def __init__(self, settings_path: Optional[str] = None):
        self.settings_path = settings_path

    async def _main(self, host: Optional[str] = None, port: Optional[int] = None) -> bool:
        """Build the intake and start serving. Returns False if the server failed."""
        self.settings = IntakeSettings(self.settings_path)
        self.intake = FileIntake(
            interval=self.settings.tick_interval,
            step=self.settings.progress_step,
        )
        self.ws_server = WebSocketServer(self.intake, self.settings)

        if not await self.ws_server.start(host, port):
            logger.error("Server failed to start - deps missing or port in use?")
            return False
        logger.info("File intake loaded")
        return True

    async def _unload(self):
        await self.ws_server.stop()
        self.intake.close()
        logger.info("File intake unloaded")

    async def serve_forever(self, host: Optional[str] = None, port: Optional[int] = None) -> int:
        if not await self._main(host, port):
            return 1
        try:
            await asyncio.Event().wait()
        finally:
            await self._unload()
        return 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the file intake over WebSocket.")
    parser.add_argument("--settings", default=None, help="path to the settings JSON file")
    parser.add_argument("--host", default=None, help="bind address (overrides settings)")
    parser.add_argument("--port", type=int, default=None, help="bind port (overrides settings)")
    parser.add_argument("--log-level", default="INFO", help="logging level")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logs.configure(args.log_level)
    app = App(args.settings)
    try:
        return asyncio.run(app.serve_forever(args.host, args.port))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
