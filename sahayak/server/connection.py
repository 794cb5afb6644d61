"""Ownership of the single learner connection.

There is never more than one live peer. A newly accepted socket replaces the
previous one; the old socket's late disconnect/error callbacks are ignored
because they no longer refer to the current connection. Sends are
best-effort: no queue, no retry, a failed send is simply lost.
"""
import logging
from typing import Any, Optional

from starlette.websockets import WebSocketState

from .codec import Envelope, encode_envelope
from .quiz_types import SessionStatus
from .session_state import SessionStateMachine

logger = logging.getLogger("sahayak.connection")


def _is_open(ws: Any) -> bool:
    return (
        getattr(ws, "client_state", None) == WebSocketState.CONNECTED
        and getattr(ws, "application_state", None) == WebSocketState.CONNECTED
    )


class ConnectionManager:
    def __init__(self, state: SessionStateMachine):
        self.state = state
        self._ws: Optional[Any] = None

    @property
    def connection(self) -> Optional[Any]:
        return self._ws

    def is_current(self, ws: Any) -> bool:
        return ws is not None and ws is self._ws

    @property
    def is_open(self) -> bool:
        return self._ws is not None and _is_open(self._ws)

    async def accept(self, ws: Any) -> None:
        """Install `ws` as the active connection, closing any previous one."""
        old = self._ws
        # install first so the old socket's disconnect handler sees a stale socket
        self._ws = ws
        if old is not None and old is not ws:
            logger.debug("[ws] replacing previous learner connection")
            if _is_open(old):
                try:
                    await old.close(code=1000)
                except Exception as e:
                    logger.debug(f"[ws] error closing replaced connection: {e}")
        self.state.transition(SessionStatus.CONNECTED)

    async def send(self, envelope: Envelope) -> bool:
        ws = self._ws
        if ws is None:
            logger.info(f"[ws] dropped {envelope.type}: no learner connected")
            return False
        if not _is_open(ws):
            logger.info(f"[ws] dropped {envelope.type}: connection not open")
            return False
        try:
            await ws.send_text(encode_envelope(envelope))
        except Exception as e:
            logger.warning(f"[ws] send {envelope.type} failed: {e}")
            return False
        return True

    async def broadcast(self, envelope: Envelope) -> int:
        """Send to every connected peer; returns how many received it (0 or 1)."""
        return 1 if await self.send(envelope) else 0

    def on_disconnect(self, ws: Any) -> bool:
        """Returns False when `ws` was already replaced (stale callback)."""
        if not self.is_current(ws):
            logger.debug("[ws] ignoring disconnect from replaced connection")
            return False
        self._ws = None
        self.state.transition(SessionStatus.DISCONNECTED)
        return True

    def on_error(self, ws: Any, error: BaseException) -> bool:
        if not self.is_current(ws):
            logger.debug(f"[ws] ignoring error from replaced connection: {error}")
            return False
        logger.error(f"[ws] transport error: {error}")
        self._ws = None
        self.state.transition(SessionStatus.ERROR)
        return True

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and _is_open(ws):
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"[ws] error on close: {e}")
