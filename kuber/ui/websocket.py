from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from kuber.orchestrator.events import State
from kuber.telemetry.logging import get_logger


class StateBridge:
    """Pushes conversation state to UI sockets.

    A socket that connects mid-conversation first receives the most recent
    state so it can render without waiting for the next change. Sockets whose
    send fails are dropped.
    """

    def __init__(self, path: str = "/ws/state") -> None:
        self._sockets: set[WebSocket] = set()
        self._last: dict[str, Any] | None = None
        self._router = APIRouter()
        self._router.add_api_websocket_route(path, self._serve)
        self._logger = get_logger(__name__)

    @property
    def router(self) -> APIRouter:
        return self._router

    @property
    def last_message(self) -> dict[str, Any] | None:
        return self._last

    @property
    def connected(self) -> int:
        return len(self._sockets)

    async def publish_state(self, state: State, payload: dict[str, Any] | None = None) -> None:
        self._last = {"state": state, "payload": payload or {}}
        await self._broadcast(self._last)

    async def _serve(self, websocket: WebSocket) -> None:
        await websocket.accept()
        if self._last is not None:
            await websocket.send_json(self._last)
        self._sockets.add(websocket)
        self._logger.info("ui.socket.connected", count=len(self._sockets))
        try:
            while True:
                # Inbound frames are keep-alives only.
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            self._sockets.discard(websocket)
            self._logger.info("ui.socket.disconnected", count=len(self._sockets))

    async def _broadcast(self, message: dict[str, Any]) -> None:
        sockets = list(self._sockets)
        if not sockets:
            return
        results = await asyncio.gather(*(ws.send_json(message) for ws in sockets), return_exceptions=True)
        for ws, result in zip(sockets, results):
            if isinstance(result, Exception):
                self._sockets.discard(ws)
                self._logger.warning("ui.socket.dropped", error=str(result))


__all__ = ["StateBridge"]
