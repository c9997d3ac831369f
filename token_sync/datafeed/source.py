"""
Abstract push source of UpdateEvents.

Concrete feeds (SimulatedFeed, WebSocketFeed) own their own lifecycle and call
publish() for every event. Subscribers are plain synchronous callables.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable

from ..types import Token, UpdateEvent

logger = logging.getLogger(__name__)

Handler = Callable[[UpdateEvent], None]


class FeedSource(ABC):
    """
    Base feed: subscriber registry + fan-out.

    Each subscribe() call is an independent registration, even for the same
    callable. Dispatch iterates over a copy of the registry, so handlers may
    subscribe/unsubscribe while an event is being delivered.
    """

    def __init__(self) -> None:
        self._handlers: dict[int, Handler] = {}
        self._handler_ids = itertools.count()

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register handler. Returns a callable removing exactly this registration."""
        handler_id = next(self._handler_ids)
        self._handlers[handler_id] = handler

        def unsubscribe() -> None:
            self._handlers.pop(handler_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, event: UpdateEvent) -> None:
        """Deliver event to every current subscriber."""
        for handler in tuple(self._handlers.values()):
            try:
                handler(event)
            except Exception:
                logger.exception("Feed subscriber %r failed on event for %s", handler, event.id)

    def push_update(self, token_id: str, **changes) -> None:
        """Manually publish an update for one token."""
        self.publish(UpdateEvent(token_id, changes, changes.get('last_updated')))

    def set_universe(self, tokens: Iterable[Token]) -> None:
        """Give the feed its reference copy of the tracked tokens. Ignored by default."""

    @property
    @abstractmethod
    def is_running(self) -> bool:
        ...

    @abstractmethod
    def start(self) -> None:
        """Begin emitting. No-op if already running."""

    @abstractmethod
    def stop(self) -> None:
        """Stop emitting. No-op if not running."""
