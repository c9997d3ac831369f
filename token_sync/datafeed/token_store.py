"""
Canonical token store with a derived filter/sort view.

HOT PATH: merge_update() is called for every feed event.

Strategy:
1. dict[str, Token] keyed by id: O(1) lookup, insertion order = canonical order
2. Tokens are immutable; a merge copies the dict and replaces the record via _replace()
3. Every mutation rebuilds a fresh StoreSnapshot (derived view recomputed in full)
4. Observers are notified with the new snapshot after each mutation
5. New state is assigned only after the derived view has been rebuilt from it

Thread-safety: NOT thread-safe. Callers serialize mutations (see engine/sync.py).
"""

from __future__ import annotations

import itertools
import logging
import time
from typing import Callable, Iterable, Optional

from ..engine.view import derive_view
from ..types import (
    FilterConfig,
    SortConfig,
    StoreSnapshot,
    Token,
    UpdateEvent,
    classify_direction,
)

logger = logging.getLogger(__name__)

Observer = Callable[[StoreSnapshot], None]

DEFAULT_SORT = SortConfig("created_at", "desc")
DEFAULT_FILTER = FilterConfig("all", "")

_UNCHANGED = object()


def now_ms() -> int:
    return int(time.time() * 1000)


class TokenStore:
    """
    Canonical collection + filter/sort config + derived view.

    The derived view is a pure function of (tokens, filter_config, sort_config)
    and is recomputed on every mutation, except while an error is set: then it
    is left as-is until a successful replace_all().
    """

    __slots__ = (
        '_tokens', '_filter', '_sort', '_is_loading', '_error',
        '_derived', '_version', '_snapshot', '_observers', '_observer_ids',
        '_clock',
    )

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._tokens: dict[str, Token] = {}
        self._filter: FilterConfig = DEFAULT_FILTER
        self._sort: SortConfig = DEFAULT_SORT
        self._is_loading: bool = False
        self._error: Optional[str] = None
        self._derived: tuple[Token, ...] = ()
        self._version: int = 0
        self._clock = clock

        self._observers: dict[int, Observer] = {}
        self._observer_ids = itertools.count()

        self._snapshot: StoreSnapshot = self._build_snapshot()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    def get(self, token_id: str) -> Optional[Token]:
        return self._tokens.get(token_id)

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token_id: object) -> bool:
        return token_id in self._tokens

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer called with every new snapshot. Returns unsubscribe."""
        observer_id = next(self._observer_ids)
        self._observers[observer_id] = observer

        def unsubscribe() -> None:
            self._observers.pop(observer_id, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_all(self, tokens: Iterable[Token]) -> None:
        """Load the full collection. Clears loading and error state."""
        self._commit(
            tokens={t.id: t for t in tokens},
            is_loading=False,
            error=None,
        )

    def merge_update(self, event: UpdateEvent) -> bool:
        """
        Shallow-merge a partial update into one token.

        HOT PATH - called for every feed event.

        Returns False (and changes nothing) if the id is unknown.
        """
        current = self._tokens.get(event.id)
        if current is None:
            return False

        changes = {
            k: v for k, v in event.changes.items()
            if k != 'id' and k != 'price_direction'
        }

        if 'price' in changes:
            changes['price_direction'] = classify_direction(current.price, changes['price'])

        stamp = event.last_updated
        if stamp is None:
            stamp = changes.get('last_updated')
        if stamp is None:
            stamp = self._clock()
        changes['last_updated'] = max(current.last_updated, stamp)

        tokens = dict(self._tokens)
        tokens[event.id] = current._replace(**changes)
        self._commit(tokens=tokens)
        return True

    def set_filter(self, **changes: str) -> None:
        """Merge changes into the filter config (status and/or search)."""
        self._commit(filter_config=self._filter._replace(**changes))

    def set_sort(self, sort_config: SortConfig) -> None:
        self._commit(sort_config=sort_config)

    def clear_filters(self) -> None:
        self._commit(filter_config=DEFAULT_FILTER)

    def set_loading(self, is_loading: bool) -> None:
        self._commit(is_loading=is_loading)

    def set_error(self, message: Optional[str]) -> None:
        """Record an upstream failure. Clears loading; freezes the derived view."""
        self._commit(error=message, is_loading=False)

    def reset(self) -> None:
        """Back to the empty initial state."""
        self._commit(
            tokens={},
            filter_config=DEFAULT_FILTER,
            sort_config=DEFAULT_SORT,
            is_loading=False,
            error=None,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            tokens=tuple(self._tokens.values()),
            derived=self._derived,
            is_loading=self._is_loading,
            error=self._error,
            sort_config=self._sort,
            filter_config=self._filter,
            version=self._version,
        )

    def _commit(
        self,
        tokens: Optional[dict[str, Token]] = None,
        filter_config: Optional[FilterConfig] = None,
        sort_config: Optional[SortConfig] = None,
        is_loading: Optional[bool] = None,
        error=_UNCHANGED,
    ) -> None:
        """
        Apply new state, recompute the derived view, publish a snapshot,
        notify observers.

        The derived view is computed from the candidate state first; if that
        raises, nothing has been assigned and the store is unchanged.
        """
        tokens = self._tokens if tokens is None else tokens
        filter_config = self._filter if filter_config is None else filter_config
        sort_config = self._sort if sort_config is None else sort_config
        is_loading = self._is_loading if is_loading is None else is_loading
        error = self._error if error is _UNCHANGED else error

        derived = self._derived
        if error is None:
            derived = derive_view(tokens.values(), filter_config, sort_config)

        self._tokens = tokens
        self._filter = filter_config
        self._sort = sort_config
        self._is_loading = is_loading
        self._error = error
        self._derived = derived
        self._version += 1
        self._snapshot = self._build_snapshot()

        for observer in tuple(self._observers.values()):
            try:
                observer(self._snapshot)
            except Exception:
                logger.exception("Store observer %r failed", observer)
