"""File add, cancel, remove and list handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from logs import logger
from upload import SourceFile

if TYPE_CHECKING:
    from ws_server import WebSocketServer


async def handle_add_file(
    server: WebSocketServer, websocket, msg_id: str, payload: dict
) -> None:
    """Add a file from its metadata (and optional base64 content)."""
    try:
        source = SourceFile.from_payload(payload)
    except ValueError as e:
        await server.send_error(websocket, msg_id, 400, f"invalid file: {e}")
        return

    if not server.settings.accepts(source):
        logger.info(f"Rejected file type: {source.name} ({source.mime_type or 'unknown'})")
        await server.send_error(
            websocket, msg_id, 415, f"file type not accepted: {source.name}"
        )
        return

    upload_id = server.intake.add_file(source)
    await server.send(websocket, msg_id, "add_file_response", {"uploadId": upload_id})


def _upload_id(payload) -> str:
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    upload_id = payload.get("uploadId", "")
    if not isinstance(upload_id, str):
        raise ValueError("uploadId must be a string")
    return upload_id


async def handle_cancel_upload(
    server: WebSocketServer, websocket, msg_id: str, payload: dict
) -> None:
    """Cancel an uploading file. Unknown ids are ignored."""
    try:
        upload_id = _upload_id(payload)
    except ValueError as e:
        await server.send_error(websocket, msg_id, 400, str(e))
        return
    server.intake.cancel_upload(upload_id)
    await server.send(websocket, msg_id, "operation_result", {"success": True})


async def handle_remove_file(
    server: WebSocketServer, websocket, msg_id: str, payload: dict
) -> None:
    """Remove a file from the intake. Unknown ids are ignored."""
    try:
        upload_id = _upload_id(payload)
    except ValueError as e:
        await server.send_error(websocket, msg_id, 400, str(e))
        return
    server.intake.remove_file(upload_id)
    await server.send(websocket, msg_id, "operation_result", {"success": True})


async def handle_list_files(
    server: WebSocketServer, websocket, msg_id: str, payload: dict
) -> None:
    await server.send(websocket, msg_id, "files_response", {
        "files": server.intake.snapshot(),
        "preview": server.intake.preview,
    })
