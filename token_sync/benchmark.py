#!/usr/bin/env python3
"""
Micro-benchmark for Token Sync performance.

Tests:
1. Store merge throughput (merge + full derived-view recompute)
2. Derived view recompute speed for a large universe
3. Simulated feed tick throughput (event generation + fan-out)

Usage:
    python -m token_sync.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

from .datafeed.mock_data import generate_mock_tokens
from .datafeed.simulated import SimulatedFeed
from .datafeed.token_store import TokenStore
from .engine.view import derive_view
from .types import FilterConfig, SortConfig, UpdateEvent


def generate_mock_updates(token_ids: list[str], count: int) -> list[UpdateEvent]:
    """Generate random price updates for known ids."""
    base_ts = int(time.time() * 1000)
    return [
        UpdateEvent(
            id=random.choice(token_ids),
            changes={'price': random.uniform(0.01, 1000)},
            last_updated=base_ts + i,
        )
        for i in range(count)
    ]


def benchmark_store_merges(iterations: int = 10000, universe: int = 500) -> float:
    """Benchmark merge_update throughput. Returns updates/sec."""
    print("\n=== Store Merge Benchmark ===")

    store = TokenStore()
    tokens = generate_mock_tokens(universe, seed=1)
    store.replace_all(tokens)
    store.set_sort(SortConfig("price", "desc"))

    updates = generate_mock_updates([t.id for t in tokens], iterations)

    start = time.perf_counter()
    for u in updates:
        store.merge_update(u)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Universe: {universe:,} tokens")
    print(f"  Updates merged: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} updates/sec")
    print(f"  Per update: {elapsed/iterations*1_000_000:.1f}µs")
    return rate


def benchmark_derive_view(iterations: int = 200, universe: int = 5000) -> float:
    """Benchmark full filter + sort recompute. Returns average ms."""
    print("\n=== Derived View Benchmark ===")

    tokens = generate_mock_tokens(universe, seed=2)
    flt = FilterConfig("all", "a")
    sort = SortConfig("market_cap", "desc")

    for _ in range(5):
        derive_view(tokens, flt, sort)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        derive_view(tokens, flt, sort)
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000 if len(times) > 1 else 0.0

    print(f"  Universe: {universe:,} tokens")
    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    return avg_time


def benchmark_feed_ticks(iterations: int = 10000, subscribers: int = 4) -> float:
    """Benchmark simulated tick generation and fan-out. Returns ticks/sec."""
    print("\n=== Feed Tick Benchmark ===")

    feed = SimulatedFeed(seed=3)
    feed.set_universe(generate_mock_tokens(100, seed=3))
    received = [0]

    def handler(event: UpdateEvent) -> None:
        received[0] += 1

    for _ in range(subscribers):
        feed.subscribe(handler)

    start = time.perf_counter()
    for _ in range(iterations):
        feed.tick()
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Ticks: {iterations:,} ({received[0]:,} deliveries)")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} ticks/sec")
    return rate


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Token Sync Performance Benchmark")
    print("=" * 60)

    benchmark_store_merges()
    benchmark_derive_view()
    benchmark_feed_ticks()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
