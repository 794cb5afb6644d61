"""Change notifications published by the session core.

The UI subscribes to the events it renders; the core never calls into
presentation code directly.
"""
from collections import defaultdict
from typing import Any, Callable, Dict, List
import logging

logger = logging.getLogger("sahayak.events")

STATUS_CHANGED = "status_changed"
MESSAGE_ADDED = "message_added"
QUIZ_CHANGED = "quiz_changed"
STATS_CHANGED = "stats_changed"
DOUBTS_CHANGED = "doubts_changed"
GENERATING_CHANGED = "generating_changed"
HINT_CHANGED = "hint_changed"
FEEDBACK_CHANGED = "feedback_changed"

Listener = Callable[..., Any]


class EventBus:
    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it again."""
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners[event].remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                # a broken view must not take the session down with it
                logger.exception(f"[events] listener for {event} failed")
