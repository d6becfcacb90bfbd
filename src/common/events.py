# ABOUTME: Provides the in-process publish/subscribe channel used between engine and game loop.
# ABOUTME: Dispatches synchronously and isolates subscriber failures from each other.

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventHandler = Callable[..., None]

PATTERN_GENERATED = "ai:pattern-generated"
PATTERN_APPLIED = "ai:pattern-applied"
ACTION_RECORDED = "learning:action-recorded"
SESSION_COMPLETED = "learning:session-completed"

PLAYER_MOVE = "player:move"
PLAYER_HINT_USED = "player:hint-used"
PLAYER_GAME_PAUSED = "player:game-paused"


class EventChannel:
    """
    Explicitly constructed message bus passed to the generator and collector.

    Delivery is at-most-once per publish: persistent handlers run first in
    subscription order, then one-shot handlers, which are removed before they run.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._once_handlers: Dict[str, List[EventHandler]] = {}

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._handlers.setdefault(topic, []).append(handler)

    def once(self, topic: str, handler: EventHandler) -> None:
        self._once_handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: str, handler: Optional[EventHandler] = None) -> None:
        """Remove one handler, or every handler for the topic when none is given."""
        if handler is None:
            self._handlers.pop(topic, None)
            self._once_handlers.pop(topic, None)
            return

        for registry in (self._handlers, self._once_handlers):
            handlers = registry.get(topic)
            if not handlers:
                continue
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                del registry[topic]

    def publish(self, topic: str, *args: Any, **kwargs: Any) -> int:
        """Deliver to all current subscribers; returns how many handlers ran without error."""
        delivered = 0
        for handler in list(self._handlers.get(topic, ())):
            delivered += self._dispatch(topic, handler, args, kwargs)

        once = self._once_handlers.pop(topic, [])
        for handler in once:
            delivered += self._dispatch(topic, handler, args, kwargs)
        return delivered

    def clear(self) -> None:
        self._handlers.clear()
        self._once_handlers.clear()

    def topics(self) -> List[str]:
        return sorted(set(self._handlers) | set(self._once_handlers))

    def handler_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, ())) + len(self._once_handlers.get(topic, ()))

    @staticmethod
    def _dispatch(topic: str, handler: EventHandler, args, kwargs) -> int:
        try:
            handler(*args, **kwargs)
        except Exception:
            logger.exception("[events] Handler %r failed for topic '%s'", handler, topic)
            return 0
        return 1
