# sahayak/server/app.py
"""
Educator-side WebSocket server.

Responsibilities:
- Exposes HTTP health-check `/ping`.
- Exposes WebSocket endpoint `/ws` for the learner. Exactly one learner is
    served at a time; a new connection replaces the previous one.
- Feeds connect/disconnect/error events and every inbound frame to the
    process's single `EducatorSession`, which owns all quiz and doubt state.

Notes / operational caveats:
- Session state is kept in-process and is lost on restart.
- The server does not retry or poll; reconnecting is up to the learner.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings
from .session import EducatorSession

logger = logging.getLogger("sahayak.server")


def create_app(session: Optional[EducatorSession] = None) -> FastAPI:
    """Build the FastAPI app around one educator session."""
    session = session or EducatorSession(Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """App lifespan handler."""
        logger.debug("[lifespan] starting")
        try:
            yield
        finally:
            logger.debug("[lifespan] shutting down")
            await session.shutdown()
            logger.debug("[lifespan] bye")

    app = FastAPI(lifespan=lifespan)
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/ping")
    def health_check():
        """Health check endpoint."""
        return {"ok": True, "status": session.status.value}

    @app.websocket("/ws")
    async def ws_endpoint(ws: WebSocket):
        await ws.accept()
        logger.debug(f"[ws] learner connected from {ws.client.host if ws.client else '?'}")
        await session.on_connect(ws)

        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes") or b""
                logger.debug(f"[ws] recv {frame[:120]!r}")
                await session.handle_frame(frame)

        except WebSocketDisconnect:
            logger.debug("[ws] learner disconnect")
            session.on_disconnect(ws)

        except Exception as e:
            logger.exception("[ws] transport error")
            session.on_error(ws, e)
            try:
                await ws.close()
            except Exception as close_err:
                logger.debug(f"[ws] close after error failed: {close_err}")

    return app


def run(settings: Optional[Settings] = None, session: Optional[EducatorSession] = None) -> None:
    settings = settings or Settings.from_env()
    app = create_app(session or EducatorSession(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info", log_config=None)


if __name__ == "__main__":
    from ..logging_config import configure_logging

    configure_logging("server", "SERVER")
    run()
