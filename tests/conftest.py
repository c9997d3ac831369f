import pytest

from token_sync.datafeed.source import FeedSource
from token_sync.types import Token


def make_token(
    token_id: str,
    name: str = "Token",
    symbol: str = "TKN",
    status: str = "new",
    price: float = 1.0,
    created_at: int = 1_000,
    last_updated: int = 1_000,
    **fields,
) -> Token:
    defaults = dict(
        price_change_24h=0.0,
        volume_24h=100.0,
        market_cap=1_000.0,
        liquidity=500.0,
        holders=10,
    )
    defaults.update(fields)
    return Token(
        id=token_id,
        name=name,
        symbol=symbol,
        status=status,
        price=price,
        created_at=created_at,
        last_updated=last_updated,
        **defaults,
    )


class ManualFeed(FeedSource):
    """Feed driven by the test via publish()/push_update()."""

    def __init__(self) -> None:
        super().__init__()
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0
        self.universe = []

    @property
    def is_running(self) -> bool:
        return self.running

    def set_universe(self, tokens) -> None:
        self.universe = list(tokens)

    def start(self) -> None:
        self.start_calls += 1
        self.running = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False


@pytest.fixture
def tokens():
    return [
        make_token("sol", name="Solana", symbol="SOL", status="new", price=100.0, created_at=3_000),
        make_token("slr", name="Solaris", symbol="SLR", status="migrated", price=2.0, created_at=1_000),
        make_token("eth", name="Ethereum", symbol="ETH", status="final-stretch", price=3000.0, created_at=2_000),
    ]


@pytest.fixture
def manual_feed():
    return ManualFeed()
