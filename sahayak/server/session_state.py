"""Top-level connection status of the educator session.

WAITING -> CONNECTED -> DISCONNECTED -> CONNECTED (learner reconnects) ...
ERROR is reachable from any state on a transport fault. There is no terminal
state; the educator side never retries, it only waits for the learner.
"""
import logging
from typing import Optional

from .events import STATUS_CHANGED, EventBus
from .quiz_types import SessionStatus

logger = logging.getLogger("sahayak.session")

_ALLOWED = {
    SessionStatus.WAITING: {SessionStatus.CONNECTED, SessionStatus.ERROR},
    SessionStatus.CONNECTED: {SessionStatus.CONNECTED, SessionStatus.DISCONNECTED, SessionStatus.ERROR},
    SessionStatus.DISCONNECTED: {SessionStatus.CONNECTED, SessionStatus.ERROR},
    SessionStatus.ERROR: {SessionStatus.CONNECTED, SessionStatus.DISCONNECTED, SessionStatus.ERROR},
}


class SessionStateMachine:
    def __init__(self, events: Optional[EventBus] = None):
        self.status = SessionStatus.WAITING
        self.events = events or EventBus()

    @property
    def is_connected(self) -> bool:
        return self.status == SessionStatus.CONNECTED

    def transition(self, new: SessionStatus) -> bool:
        """Move to `new`. Returns False (and logs) for a transition the machine does not allow."""
        old = self.status
        if new not in _ALLOWED[old]:
            logger.warning(f"[session] ignored transition {old.name} -> {new.name}")
            return False
        self.status = new
        logger.debug(f"[session] status {old.name} -> {new.name}")
        if new != old:
            self.events.publish(STATUS_CHANGED, new)
        return True
