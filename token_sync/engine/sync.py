"""
Token sync orchestrator.

Wires a FeedSource into a TokenStore and exposes the read/command surface
for the presentation layer:

1. initialize(): initial bulk load, then subscribe to and start the feed
2. Every feed event is merged into the store
3. sort()/filter() commands update the store's configs
4. Every store change is pushed to snapshot_queue for a UI consumer

Ordering: all store mutations go through one FIFO command queue with a
single active consumer. A command submitted while another is running
(re-entrantly, or from another thread) runs after it, never interleaved.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
from collections import deque
from typing import Any, Callable, Iterable, Optional

from ..datafeed.mock_data import DEFAULT_UNIVERSE_SIZE, generate_mock_tokens
from ..datafeed.simulated import SimulatedFeed
from ..datafeed.source import FeedSource
from ..datafeed.token_store import Observer, TokenStore
from ..errors import InvalidFilterError, InvalidSortKeyError, InvalidUpdateError
from ..types import (
    FILTER_STATUSES,
    MUTABLE_FIELDS,
    NUMERIC_FIELDS,
    OPTIONAL_TEXT_FIELDS,
    SORTABLE_FIELDS,
    STATUSES,
    TEXT_FIELDS,
    FilterConfig,
    SortConfig,
    StoreSnapshot,
    Token,
    UpdateEvent,
)

logger = logging.getLogger(__name__)

UniverseFactory = Callable[[], Iterable[Token]]


def validate_sort_key(key: Any) -> str:
    if not isinstance(key, str) or key not in SORTABLE_FIELDS:
        raise InvalidSortKeyError(f"Unknown sort key: {key!r}")
    return key


def validate_filter(changes: dict[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(FilterConfig._fields)
    if unknown:
        raise InvalidFilterError(f"Unknown filter options: {sorted(unknown)}")
    if 'status' in changes and changes['status'] not in FILTER_STATUSES:
        raise InvalidFilterError(f"Unknown status filter: {changes['status']!r}")
    if 'search' in changes and not isinstance(changes['search'], str):
        raise InvalidFilterError("Search must be a string")
    return changes


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_update(event: UpdateEvent) -> UpdateEvent:
    """Reject updates whose fields or value types cannot be merged into a Token."""
    if not isinstance(event.id, str):
        raise InvalidUpdateError(f"Update id must be a string, got {event.id!r}")
    unknown = set(event.changes) - MUTABLE_FIELDS - {'id', 'price_direction'}
    if unknown:
        raise InvalidUpdateError(f"Cannot merge unknown fields {sorted(unknown)} into {event.id}")
    if event.last_updated is not None and not _is_number(event.last_updated):
        raise InvalidUpdateError(f"Bad timestamp for {event.id}: {event.last_updated!r}")

    for field, value in event.changes.items():
        if field in NUMERIC_FIELDS:
            ok = _is_number(value)
        elif field in TEXT_FIELDS:
            ok = isinstance(value, str)
        elif field in OPTIONAL_TEXT_FIELDS:
            ok = value is None or isinstance(value, str)
        elif field == 'status':
            ok = value in STATUSES
        else:
            # id / price_direction are ignored by the store
            ok = True
        if not ok:
            raise InvalidUpdateError(f"Bad value for {field} in update for {event.id}: {value!r}")
    return event


def next_sort_config(current: SortConfig, key: str) -> SortConfig:
    """Sort state machine: same key toggles asc <-> desc, a new key starts asc."""
    if current.key == key and current.direction == "asc":
        return SortConfig(key, "desc")
    return SortConfig(key, "asc")


class TokenSyncEngine:
    """
    Lifecycle glue between a feed and the store.

    Usage:
        engine = TokenSyncEngine(SimulatedFeed(interval_ms=2000))
        engine.initialize()          # inside a running event loop
        engine.sort("price")
        engine.filter(status="new", search="sol")
        snap = engine.snapshot
        ...
        engine.teardown()
    """

    def __init__(
        self,
        feed: Optional[FeedSource] = None,
        store: Optional[TokenStore] = None,
        universe_size: int = DEFAULT_UNIVERSE_SIZE,
        snapshot_queue_size: int = 5,
    ) -> None:
        self.feed = feed if feed is not None else SimulatedFeed()
        self.store = store if store is not None else TokenStore()
        self.universe_size = universe_size

        # Single-consumer command queue
        self._pending: deque[Callable[[], None]] = deque()
        self._drain_lock = threading.Lock()

        # State
        self._initialized = False
        self._unsubscribe_feed: Optional[Callable[[], None]] = None
        self._merged_count = 0
        self._ignored_count = 0

        # Output queue for UI - thread-safe for cross-thread consumers
        self.snapshot_queue: queue.Queue[StoreSnapshot] = queue.Queue(maxsize=snapshot_queue_size)
        self._unsubscribe_store: Optional[Callable[[], None]] = self.store.subscribe(self._push_snapshot)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def merged_count(self) -> int:
        return self._merged_count

    @property
    def ignored_count(self) -> int:
        """Events for unknown ids."""
        return self._ignored_count

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Observe every new snapshot. Returns unsubscribe."""
        return self.store.subscribe(observer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(
        self,
        initial_tokens: Optional[Iterable[Token]] = None,
        universe_factory: Optional[UniverseFactory] = None,
    ) -> None:
        """
        Load the initial universe, then subscribe to and start the feed.

        Load failures are recorded on the snapshot's error field; the feed is
        not started in that case.
        """
        if self._initialized:
            logger.info("Re-initializing: tearing down previous session")
            self.teardown()

        self._submit(lambda: self.store.set_loading(True))

        try:
            if initial_tokens is not None:
                tokens = list(initial_tokens)
            elif universe_factory is not None:
                tokens = list(universe_factory())
            else:
                tokens = generate_mock_tokens(self.universe_size)
            ids = [t.id for t in tokens]
            if len(set(ids)) != len(ids):
                raise ValueError("Initial universe contains duplicate token ids")
        except Exception as e:
            logger.exception("Initial token load failed")
            message = f"Failed to load tokens: {e}"
            self._submit(lambda: self.store.set_error(message))
            return

        self._submit(lambda: self.store.replace_all(tokens))

        self.feed.set_universe(tokens)
        self._unsubscribe_feed = self.feed.subscribe(self._on_feed_event)
        self._initialized = True

        try:
            self.feed.start()
        except RuntimeError as e:
            # e.g. SimulatedFeed started outside a running event loop
            logger.exception("Feed failed to start")
            message = f"Failed to start feed: {e}"
            self._submit(lambda: self.store.set_error(message))
            return
        logger.info("Token sync initialized with %d tokens", len(tokens))

    def teardown(self) -> None:
        """Unsubscribe, stop the feed, drop state. Safe to call at any time."""
        if self._unsubscribe_feed is not None:
            self._unsubscribe_feed()
            self._unsubscribe_feed = None
        self.feed.stop()

        if self._initialized:
            self._initialized = False
            self._submit(self.store.reset)
            logger.info("Token sync torn down (merged=%d, ignored=%d)",
                        self._merged_count, self._ignored_count)

    def close(self) -> None:
        """Teardown, then detach from the store. The engine is unusable afterwards."""
        self.teardown()
        if self._unsubscribe_store is not None:
            self._unsubscribe_store()
            self._unsubscribe_store = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def sort(self, key: str) -> None:
        """Select a sort key; re-selecting the current key toggles direction."""
        validate_sort_key(key)

        def command() -> None:
            self.store.set_sort(next_sort_config(self.store.snapshot.sort_config, key))

        self._submit(command)

    def filter(self, **changes: str) -> None:
        """Merge status and/or search into the filter config."""
        validate_filter(changes)
        self._submit(lambda: self.store.set_filter(**changes))

    def clear_filters(self) -> None:
        self._submit(self.store.clear_filters)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_feed_event(self, event: UpdateEvent) -> None:
        try:
            validate_update(event)
        except InvalidUpdateError as e:
            logger.warning("Dropping malformed update: %s", e)
            return
        self._submit(lambda: self._merge(event))

    def _merge(self, event: UpdateEvent) -> None:
        if self.store.merge_update(event):
            self._merged_count += 1
        else:
            self._ignored_count += 1
            logger.debug("Ignoring update for unknown token %s", event.id)

    def _submit(self, command: Callable[[], None]) -> None:
        """
        Enqueue a store mutation and drain the queue if no one else is.

        A failing command is logged and skipped; the commands queued behind
        it still run in this drain.
        """
        self._pending.append(command)
        while self._pending and self._drain_lock.acquire(blocking=False):
            try:
                while self._pending:
                    command = self._pending.popleft()
                    try:
                        command()
                    except Exception:
                        logger.exception("Store command %r failed", command)
            finally:
                self._drain_lock.release()

    def _push_snapshot(self, snapshot: StoreSnapshot) -> None:
        """Non-blocking put; drop the oldest snapshot when the queue is full."""
        try:
            self.snapshot_queue.put_nowait(snapshot)
        except queue.Full:
            try:
                self.snapshot_queue.get_nowait()
            except queue.Empty:
                pass
            try:
                self.snapshot_queue.put_nowait(snapshot)
            except queue.Full:
                logger.debug("Snapshot queue still full, dropping snapshot v%d", snapshot.version)
