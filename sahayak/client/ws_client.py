# sahayak/client/ws_client.py
# =====================================================================================
# PURPOSE
#   Transport-only WebSocket client for the learner (no UI code) that:
#     - Holds ONE connection to the educator at a time
#     - Does NOT reconnect on its own; the learner asks for it (`reconnect`)
#     - Decodes every frame with the shared codec (plain-text frames included)
#     - Exposes `send(envelope) -> bool` and async callbacks for events/status
#
# KEY TECHNOLOGIES
#   - websockets: lightweight WS library for asyncio
# =====================================================================================

import logging
from typing import Awaitable, Callable, Optional, Union

import websockets

from ..server.codec import Envelope, LegacyText, decode, encode_envelope

logger = logging.getLogger("sahayak.client.ws")

CONNECTING = "Connecting..."
CONNECTED = "Connected"
DISCONNECTED = "Disconnected"
ERROR = "Error"

EventCallback = Callable[[Union[Envelope, LegacyText]], Awaitable[None]]
StatusCallback = Callable[[str, Optional[str]], Awaitable[None]]


class WSClient:
    """One learner connection.

    Parameters
    ----------
    url : str
        Full ws:// URL of the educator, e.g. ws://192.168.1.20:8080/ws
    on_event : async callback
        Invoked with every decoded inbound frame.
    on_status : async callback
        Invoked with (status, detail) on connecting/connected/disconnected/error.
    """

    def __init__(self, url: str, on_event: EventCallback, on_status: StatusCallback):
        self.url = url
        self.on_event = on_event
        self.on_status = on_status
        self._ws = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self) -> None:
        """Connect and pump inbound frames until the connection ends."""
        await self.on_status(CONNECTING, None)
        try:
            async with websockets.connect(
                self.url,
                ping_interval=20,  # Send ping every 20 seconds
                ping_timeout=10,   # Wait 10 seconds for pong response
                close_timeout=5,   # Wait 5 seconds for close handshake
                max_size=2**23,    # Larger message size limit (~8MB)
            ) as ws:
                self._ws = ws
                await self.on_status(CONNECTED, None)
                try:
                    async for raw in ws:
                        try:
                            await self.on_event(decode(raw))
                        except Exception:
                            logger.exception("Error processing message")
                finally:
                    self._ws = None
        except websockets.ConnectionClosedError as e:
            logger.info(f"connection dropped: {e}")
            await self.on_status(DISCONNECTED, str(e))
        except (OSError, websockets.WebSocketException) as e:
            logger.warning(f"connection error: {e}")
            await self.on_status(ERROR, str(e))
        else:
            await self.on_status(DISCONNECTED, None)

    async def send(self, envelope: Envelope) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(encode_envelope(envelope))
        except websockets.ConnectionClosed as e:
            logger.info(f"send {envelope.type} failed: {e}")
            return False
        return True

    async def close(self) -> None:
        ws = self._ws
        if ws is not None:
            await ws.close()
