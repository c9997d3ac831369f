"""
Reference token universe for demos, tests and benchmarks.

Draws from a fixed name/symbol pool in shuffled order. Past the pool size,
names cycle with a version suffix ("Solana V2", "Solana V3", ...).
"""

from __future__ import annotations

import time
import uuid
from typing import Optional

import numpy as np

from ..types import STATUSES, Token

DEFAULT_UNIVERSE_SIZE = 60

TOKEN_POOL: tuple[tuple[str, str], ...] = (
    ("Ethereum", "ETH"),
    ("Solana", "SOL"),
    ("Avalanche", "AVAX"),
    ("Polygon", "MATIC"),
    ("Cardano", "ADA"),
    ("Polkadot", "DOT"),
    ("Chainlink", "LINK"),
    ("Uniswap", "UNI"),
    ("Cosmos", "ATOM"),
    ("Algorand", "ALGO"),
    ("ApeCoin", "APE"),
    ("Axie Infinity", "AXS"),
    ("The Sandbox", "SAND"),
    ("Decentraland", "MANA"),
    ("Gala", "GALA"),
    ("Immutable X", "IMX"),
    ("Render Token", "RNDR"),
    ("Theta Network", "THETA"),
    ("Aave", "AAVE"),
    ("Compound", "COMP"),
    ("Maker", "MKR"),
    ("Curve DAO", "CRV"),
    ("SushiSwap", "SUSHI"),
    ("PancakeSwap", "CAKE"),
    ("Fantom", "FTM"),
    ("Near Protocol", "NEAR"),
    ("Harmony", "ONE"),
    ("Zilliqa", "ZIL"),
    ("Elrond", "EGLD"),
    ("Hedera", "HBAR"),
)

MAX_AGE_MS = 30 * 24 * 60 * 60 * 1000


def generate_mock_token(
    name: str,
    symbol: str,
    rng: np.random.Generator,
    now_ms: int,
) -> Token:
    """Generate one token with random market fields."""
    slug = symbol.lower()
    return Token(
        id=uuid.UUID(bytes=rng.bytes(16), version=4).hex,
        name=name,
        symbol=symbol,
        status=STATUSES[int(rng.integers(len(STATUSES)))],
        price=float(rng.uniform(0.01, 1000)),
        price_change_24h=float(rng.uniform(-30, 30)),
        volume_24h=float(rng.uniform(100_000, 50_000_000)),
        market_cap=float(rng.uniform(1_000_000, 1_000_000_000)),
        liquidity=float(rng.uniform(50_000, 10_000_000)),
        holders=int(rng.uniform(100, 100_000)),
        created_at=now_ms - int(rng.uniform(0, MAX_AGE_MS)),
        last_updated=now_ms,
        logo=f"https://ui-avatars.com/api/?name={symbol}&background=random",
        description=f"{name} is a decentralized token with innovative features.",
        website=f"https://{slug}.com",
        twitter=f"https://twitter.com/{slug}",
        telegram=f"https://t.me/{slug}",
        price_direction="neutral",
    )


def generate_mock_tokens(
    count: int = DEFAULT_UNIVERSE_SIZE,
    seed: Optional[int] = None,
    now_ms: Optional[int] = None,
) -> list[Token]:
    """Generate `count` tokens with unique ids."""
    rng = np.random.default_rng(seed)
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    order = rng.permutation(len(TOKEN_POOL))
    pool = [TOKEN_POOL[i] for i in order]

    tokens: list[Token] = []
    for i in range(count):
        name, symbol = pool[i % len(pool)]
        cycle = i // len(pool)
        if cycle > 0:
            name = f"{name} V{cycle + 1}"
        tokens.append(generate_mock_token(name, symbol, rng, now_ms))

    return tokens
