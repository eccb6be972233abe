"""Liveness and config query handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ws_server import WebSocketServer


async def handle_ping(
    server: WebSocketServer, websocket, msg_id: str, payload: dict
) -> None:
    await server.send(websocket, msg_id, "pong", None)


async def handle_get_config(
    server: WebSocketServer, websocket, msg_id: str, payload: dict
) -> None:
    """Return the intake's ticking policy and accepted file types."""
    await server.send(websocket, msg_id, "config_response", {
        "tickInterval": server.intake.driver.interval,
        "progressStep": server.intake.driver.step,
        "accept": server.settings.accept,
    })
