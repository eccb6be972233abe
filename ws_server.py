"""
WebSocket bridge between the file intake and its presentation layer.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Optional, TYPE_CHECKING

from handlers import files, info
from logs import logger

if TYPE_CHECKING:
    from intake import FileIntake
    from intake_settings import IntakeSettings

# Intake event -> pushed message type
EVENT_TYPES = {
    "added": "session_added",
    "updated": "session_updated",
    "removed": "session_removed",
    "preview": "preview_changed",
}

# Messages buffered per connection before a stalled client is dropped.
SEND_QUEUE_SIZE = 256

HANDLERS = {
    "ping": info.handle_ping,
    "get_config": info.handle_get_config,
    "add_file": files.handle_add_file,
    "cancel_upload": files.handle_cancel_upload,
    "remove_file": files.handle_remove_file,
    "list_files": files.handle_list_files,
}


class WebSocketServer:
    """WebSocket server for presentation-layer connections."""

    def __init__(self, intake: FileIntake, settings: IntakeSettings):
        self.intake = intake
        self.settings = settings
        self.server = None
        self.actual_port: int = 0  # Assigned by OS after start()
        self._queues: dict = {}  # websocket -> asyncio.Queue
        self._closing: set = set()
        self._unsubscribe = None

    @property
    def connections(self) -> int:
        return len(self._queues)

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> bool:
        """Start the WebSocket server. Returns True on success."""
        if self.server:
            logger.info("WebSocket server already running")
            return True

        try:
            import websockets
        except ImportError:
            logger.error("websockets package not found. Install it: pip install websockets")
            return False

        host = host if host is not None else self.settings.host
        port = port if port is not None else self.settings.port
        try:
            self.server = await websockets.serve(
                self.handle_connection,
                host,
                port,
                max_size=self.settings.max_message_size,
            )
            self.actual_port = self.server.sockets[0].getsockname()[1]
        except OSError as e:
            logger.error(f"Failed to start WebSocket server on {host}:{port}: {e}")
            self.server = None
            return False

        self._unsubscribe = self.intake.subscribe(self._broadcast_event)
        logger.info(f"WebSocket server started on {host}:{self.actual_port}")
        return True

    async def stop(self):
        """Stop the WebSocket server."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("WebSocket server stopped")

    async def _write_pump(self, websocket, send_queue: asyncio.Queue):
        """Dedicated task writing queued messages to one connection."""
        try:
            while True:
                msg_data = await send_queue.get()
                if msg_data is None:  # Shutdown signal
                    break
                try:
                    await websocket.send(msg_data)
                except Exception as e:
                    logger.error(f"Write error: {e}")
                    break
        except asyncio.CancelledError:
            pass

    async def handle_connection(self, websocket):
        """Serve one presentation-layer connection."""
        logger.info(f"New connection from {websocket.remote_address}")

        send_queue: asyncio.Queue = asyncio.Queue(maxsize=SEND_QUEUE_SIZE)
        write_task = asyncio.create_task(self._write_pump(websocket, send_queue))
        self._queues[websocket] = send_queue

        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    logger.warning("Binary messages are not supported")
                    continue
                await self.dispatch(websocket, message)
        except Exception as e:
            logger.error(f"Connection error: {e}")
        finally:
            self._queues.pop(websocket, None)
            if not send_queue.full():
                send_queue.put_nowait(None)
            write_task.cancel()
            try:
                await write_task
            except asyncio.CancelledError:
                pass
            logger.info(f"Connection closed: {websocket.remote_address}")

    async def dispatch(self, websocket, message: str) -> None:
        """Parse one JSON message and route it to its handler."""
        try:
            msg = json.loads(message)
        except json.JSONDecodeError:
            logger.error("Failed to parse JSON message")
            return
        if not isinstance(msg, dict):
            logger.error("Message is not a JSON object")
            return

        msg_type = msg.get("type")
        msg_id = msg.get("id", "")
        payload = msg.get("payload") or {}

        logger.debug(f"WS RECV [{msg_type}] id={msg_id}")

        handler = HANDLERS.get(msg_type)
        if handler is None:
            logger.warning(f"Unknown message type: {msg_type}")
            await self.send_error(websocket, msg_id, 400, f"unknown message type: {msg_type}")
            return

        try:
            await handler(self, websocket, msg_id, payload)
        except Exception as e:
            logger.error(f"Error handling {msg_type}: {e}")
            await self.send_error(websocket, msg_id, 500, "internal error")

    def _broadcast_event(self, event: str, data: dict) -> None:
        msg_type = EVENT_TYPES.get(event)
        if msg_type is None:
            return
        msg = json.dumps({"id": str(uuid.uuid4()), "type": msg_type, "payload": data})
        for websocket in list(self._queues):
            self._offer(websocket, msg)

    def _offer(self, websocket, data: str) -> None:
        queue = self._queues.get(websocket)
        if queue is None:
            logger.debug("No send queue for connection, message dropped")
            return
        try:
            queue.put_nowait(data)
        except asyncio.QueueFull:
            self._drop_stalled(websocket)

    def _drop_stalled(self, websocket) -> None:
        """Disconnect a client that stopped reading its messages."""
        self._queues.pop(websocket, None)
        logger.warning(f"Send queue full, closing stalled connection: {websocket.remote_address}")
        task = asyncio.ensure_future(websocket.close(1008, "send queue overflow"))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def send(self, websocket, msg_id: str, msg_type: str, payload):
        """Send a JSON message via the connection's write queue."""
        msg = {"id": msg_id, "type": msg_type}
        if payload is not None:
            msg["payload"] = payload
        await self._enqueue(websocket, json.dumps(msg))
        logger.debug(f"WS QUEUE [{msg_type}] id={msg_id}")

    async def send_error(self, websocket, msg_id: str, code: int, message: str):
        """Send an error message via the connection's write queue."""
        msg = {
            "id": msg_id,
            "type": "error",
            "error": {"code": code, "message": message},
        }
        await self._enqueue(websocket, json.dumps(msg))

    async def _enqueue(self, websocket, data: str) -> None:
        self._offer(websocket, data)
