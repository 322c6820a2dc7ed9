"""
Container Logs WebSocket Endpoint

Binds a FastAPI WebSocket to a BridgeSession. Binary frames carry raw log
bytes, text frames carry diagnostics, and the server closes the connection
when the session ends.
"""

from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from logdash.core.exceptions import SinkWriteError
from logdash.services.logs.base import LogSink, LogSource
from logdash.services.logs.bridge import BridgeSession
from logdash.services.logs.container_logs import ContainerLogSource


router = APIRouter()

SELECTOR_PARAMETER = "container"

# Raised by Starlette/uvicorn when writing to a connection that is gone
SEND_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class WebSocketSink(LogSink):
    """LogSink backed by a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket, parameter: str = SELECTOR_PARAMETER):
        self.websocket = websocket
        self.parameter = parameter
        self._closed = False

    async def accept(self) -> None:
        try:
            await self.websocket.accept()
        except SEND_ERRORS as e:
            raise SinkWriteError(f"handshake failed: {e}")

    def selector(self) -> Optional[str]:
        return self.websocket.query_params.get(self.parameter)

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self.websocket.send_bytes(data)
        except SEND_ERRORS as e:
            raise SinkWriteError(f"send failed: {e}")

    async def send_text(self, message: str) -> None:
        try:
            await self.websocket.send_text(message)
        except SEND_ERRORS as e:
            raise SinkWriteError(f"send failed: {e}")

    async def wait_closed(self) -> None:
        # Anything the client sends is ignored; only the disconnect matters
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    return
        except (WebSocketDisconnect, RuntimeError):
            return

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if (
            self.websocket.client_state == WebSocketState.DISCONNECTED
            or self.websocket.application_state == WebSocketState.DISCONNECTED
        ):
            return

        try:
            await self.websocket.close()
        except SEND_ERRORS:
            pass


def get_log_source() -> LogSource:
    """Dependency providing the container log source"""
    return ContainerLogSource()


@router.websocket("/logs")
async def container_logs_ws(
    websocket: WebSocket,
    log_source: LogSource = Depends(get_log_source)
):
    """Stream the live output of the container named by ?container=."""
    session = BridgeSession(WebSocketSink(websocket), log_source)
    await session.run()
