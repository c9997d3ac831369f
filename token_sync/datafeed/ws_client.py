"""
WebSocket feed client: the real-transport counterpart of SimulatedFeed.

Handles:
1. WebSocket connection via aiohttp, reconnecting after errors
2. JSON message decoding with orjson
3. Translation of camelCase wire payloads into UpdateEvents

Message format:
    {"type": "price-update" | "status-change" | "new-token",
     "data": {"id": "...", "price": 1.23, "lastUpdated": 1700000000000, ...}}

Only price-update and status-change are merged; priceDirection in the payload
is discarded because the store computes it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
import orjson

from ..types import WIRE_FIELDS, UpdateEvent
from .source import FeedSource

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_MS = 3000

MERGEABLE_TYPES = frozenset({"price-update", "status-change"})


def parse_message(raw: bytes | str) -> Optional[UpdateEvent]:
    """
    Decode one wire message into an UpdateEvent.

    Returns None for message types that are not merged and for malformed
    payloads.
    """
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Dropping undecodable message: %.80r", raw)
        return None

    if not isinstance(message, dict):
        logger.warning("Dropping non-object message: %.80r", raw)
        return None

    msg_type = message.get("type")
    data = message.get("data")

    if msg_type not in MERGEABLE_TYPES:
        logger.debug("Ignoring message type %r", msg_type)
        return None

    if not isinstance(data, dict) or not isinstance(data.get("id"), str):
        logger.warning("Dropping %s message without id", msg_type)
        return None

    changes = {}
    for wire_name, value in data.items():
        field = WIRE_FIELDS.get(wire_name)
        if field is None:
            logger.debug("Unknown wire field %r in update for %s", wire_name, data["id"])
            continue
        if field in ("id", "price_direction", "last_updated"):
            continue
        changes[field] = value

    return UpdateEvent(data["id"], changes, data.get("lastUpdated"))


class WebSocketFeed(FeedSource):
    """
    Async WebSocket client publishing UpdateEvents to subscribers.

    Usage:
        feed = WebSocketFeed("wss://example.com/tokens")
        feed.subscribe(handler)
        feed.start()    # inside a running event loop
    """

    def __init__(
        self,
        url: str,
        reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS,
    ) -> None:
        super().__init__()
        self.url = url
        self.reconnect_delay_ms = reconnect_delay_ms

        # State
        self._running = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._message_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return

        loop = asyncio.get_running_loop()
        self._running = True
        self._generation += 1
        self._task = loop.create_task(self._run(self._generation))
        self._task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        """Clear running state if the run task died on its own."""
        if task.cancelled() or task is not self._task:
            return
        exc = task.exception()
        if exc is not None:
            logger.error("WebSocket feed for %s stopped on error", self.url, exc_info=exc)
        self._running = False
        self._generation += 1
        self._task = None

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, generation: int) -> None:
        """Connect, consume, reconnect on failure until stopped."""
        async with aiohttp.ClientSession() as session:
            while generation == self._generation:
                try:
                    await self._consume(session, generation)
                except aiohttp.ClientError as e:
                    logger.warning("WebSocket error on %s: %s", self.url, e)

                if generation != self._generation:
                    return
                logger.info("Reconnecting to %s in %dms", self.url, self.reconnect_delay_ms)
                await asyncio.sleep(self.reconnect_delay_ms / 1000)

    async def _consume(self, session: aiohttp.ClientSession, generation: int) -> None:
        async with session.ws_connect(self.url) as ws:
            logger.info("Connected to %s", self.url)

            async for msg in ws:
                if generation != self._generation:
                    break

                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_raw(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("WebSocket closed with error: %s", ws.exception())
                    break

    def handle_raw(self, raw: bytes | str) -> None:
        """
        Handle one incoming message.

        HOT PATH - called for every message.
        """
        self._message_count += 1
        event = parse_message(raw)
        if event is not None:
            self.publish(event)
