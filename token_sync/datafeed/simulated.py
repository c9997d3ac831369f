"""
Simulated real-time price feed.

Emits one UpdateEvent per tick for a random token from its own copy of the
universe. Price moves are a bounded symmetric draw (±max_change_pct percent);
the 24h change follows a bounded random walk.

Timer: a single asyncio task. stop() bumps a generation counter and cancels
the task, so a wake-up that was already scheduled cannot emit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Optional

import numpy as np

from ..types import Token, UpdateEvent
from .source import FeedSource

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_INTERVAL_MS = 2000
DEFAULT_MAX_CHANGE_PCT = 5.0
DEFAULT_MAX_CHANGE_24H_NUDGE = 2.0
MIN_PRICE = 0.001


class SimulatedFeed(FeedSource):
    """
    Random-walk tick generator.

    Usage:
        feed = SimulatedFeed(interval_ms=2000, seed=42)
        feed.set_universe(tokens)
        unsubscribe = feed.subscribe(handler)
        feed.start()    # inside a running event loop
        ...
        feed.stop()
    """

    def __init__(
        self,
        interval_ms: int = DEFAULT_UPDATE_INTERVAL_MS,
        max_change_pct: float = DEFAULT_MAX_CHANGE_PCT,
        max_change_24h_nudge: float = DEFAULT_MAX_CHANGE_24H_NUDGE,
        min_price: float = MIN_PRICE,
        seed: Optional[int] = None,
    ) -> None:
        super().__init__()
        self.interval_ms = interval_ms
        self.max_change_pct = max_change_pct
        self.max_change_24h_nudge = max_change_24h_nudge
        self.min_price = min_price

        self._rng = np.random.default_rng(seed)

        # Private reference copy: id -> (price, price_change_24h)
        self._universe: dict[str, tuple[float, float]] = {}
        self._ids: list[str] = []

        # State
        self._running = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._tick_count = 0

    def set_universe(self, tokens: Iterable[Token]) -> None:
        self._universe = {t.id: (t.price, t.price_change_24h) for t in tokens}
        self._ids = list(self._universe)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def start(self) -> None:
        """Start the timer task. Must be called from a running event loop."""
        if self._running:
            return

        loop = asyncio.get_running_loop()
        self._running = True
        self._generation += 1
        self._task = loop.create_task(self._run(self._generation))
        logger.info("Simulated feed started (interval=%dms, tokens=%d)",
                    self.interval_ms, len(self._ids))

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.info("Simulated feed stopped after %d ticks", self._tick_count)

    async def _run(self, generation: int) -> None:
        interval_sec = self.interval_ms / 1000
        while True:
            await asyncio.sleep(interval_sec)
            if generation != self._generation:
                return
            self.tick()

    def tick(self) -> Optional[UpdateEvent]:
        """
        Emit one random price update. Returns the event, or None if there
        are no tokens to pick from.
        """
        if not self._ids:
            return None

        token_id = self._ids[int(self._rng.integers(len(self._ids)))]
        price, change_24h = self._universe[token_id]

        change_pct = float(self._rng.uniform(-self.max_change_pct, self.max_change_pct))
        new_price = max(self.min_price, price * (1 + change_pct / 100))
        nudge = float(self._rng.uniform(-self.max_change_24h_nudge, self.max_change_24h_nudge))
        new_change_24h = change_24h + nudge

        self._universe[token_id] = (new_price, new_change_24h)
        self._tick_count += 1

        stamp = int(time.time() * 1000)
        event = UpdateEvent(
            id=token_id,
            changes={'price': new_price, 'price_change_24h': new_change_24h},
            last_updated=stamp,
        )
        logger.debug("Tick #%d: %s price=%.6f (%+.2f%%)",
                     self._tick_count, token_id, new_price, change_pct)

        self.publish(event)
        return event
