"""
Data types for Token Sync.

Notes:
- Using NamedTuple for immutable records; merges build new tuples via _replace()
- Timestamps are epoch milliseconds
- The wire format (feed payloads) uses camelCase; Python fields are snake_case
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, NamedTuple, Optional

TokenStatus = Literal["new", "final-stretch", "migrated"]
PriceDirection = Literal["up", "down", "neutral"]
SortDirection = Literal["asc", "desc"]

STATUSES: tuple[str, ...] = ("new", "final-stretch", "migrated")
FILTER_STATUSES: tuple[str, ...] = ("all",) + STATUSES
SORT_DIRECTIONS: tuple[str, ...] = ("asc", "desc")


class Token(NamedTuple):
    """Single tracked token. Canonical entity held by the store."""
    id: str
    name: str
    symbol: str
    status: str
    price: float
    price_change_24h: float   # Signed percent
    volume_24h: float
    market_cap: float
    liquidity: float
    holders: int
    created_at: int           # ms
    last_updated: int         # ms, never regresses on merge
    logo: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    price_direction: str = "neutral"  # Computed by the store, never trusted from input


SORTABLE_FIELDS: frozenset[str] = frozenset(Token._fields)
MUTABLE_FIELDS: frozenset[str] = SORTABLE_FIELDS - {"id", "price_direction"}
NUMERIC_FIELDS: frozenset[str] = frozenset({
    "price", "price_change_24h", "volume_24h", "market_cap", "liquidity",
    "holders", "created_at", "last_updated",
})
TEXT_FIELDS: frozenset[str] = frozenset({"name", "symbol"})
OPTIONAL_TEXT_FIELDS: frozenset[str] = frozenset({"logo", "description", "website", "twitter", "telegram"})


class SortConfig(NamedTuple):
    key: str = "created_at"
    direction: str = "desc"


class FilterConfig(NamedTuple):
    status: str = "all"
    search: str = ""


class UpdateEvent(NamedTuple):
    """
    Partial update for one token.

    `changes` maps Token field names to new values. `last_updated` is the
    source timestamp in ms, if the source provides one.
    """
    id: str
    changes: Mapping[str, Any]
    last_updated: Optional[int] = None


class StoreSnapshot(NamedTuple):
    """
    Read-only state handed to the presentation layer.

    Rebuilt (never mutated) on every store mutation.
    """
    tokens: tuple[Token, ...]     # Canonical collection, insertion order
    derived: tuple[Token, ...]    # Filtered + sorted view
    is_loading: bool
    error: Optional[str]
    sort_config: SortConfig
    filter_config: FilterConfig
    version: int


def classify_direction(old_price: float, new_price: float) -> str:
    """Direction of a price move. Inputs must be finite numbers."""
    if new_price > old_price:
        return "up"
    if new_price < old_price:
        return "down"
    return "neutral"


# camelCase wire name -> Token field
WIRE_FIELDS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "symbol": "symbol",
    "status": "status",
    "price": "price",
    "priceChange24h": "price_change_24h",
    "volume24h": "volume_24h",
    "marketCap": "market_cap",
    "liquidity": "liquidity",
    "holders": "holders",
    "createdAt": "created_at",
    "lastUpdated": "last_updated",
    "logo": "logo",
    "description": "description",
    "website": "website",
    "twitter": "twitter",
    "telegram": "telegram",
    "priceDirection": "price_direction",
}
FIELD_TO_WIRE: dict[str, str] = {v: k for k, v in WIRE_FIELDS.items()}


def token_from_wire(data: Mapping[str, Any]) -> Token:
    """Build a Token from a camelCase payload. Unknown keys are ignored."""
    fields = {WIRE_FIELDS[k]: v for k, v in data.items() if k in WIRE_FIELDS}
    return Token(**fields)


def token_to_wire(token: Token) -> dict[str, Any]:
    """Inverse of token_from_wire. Omits unset optional fields."""
    return {
        FIELD_TO_WIRE[field]: value
        for field, value in token._asdict().items()
        if value is not None
    }
