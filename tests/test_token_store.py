import pytest

from token_sync.datafeed.token_store import DEFAULT_FILTER, DEFAULT_SORT, TokenStore
from token_sync.types import SortConfig, UpdateEvent


def make_store(tokens, clock_value=5_000):
    store = TokenStore(clock=lambda: clock_value)
    store.replace_all(tokens)
    return store


def test_initial_state():
    snap = TokenStore().snapshot
    assert snap.tokens == ()
    assert snap.derived == ()
    assert snap.is_loading is False
    assert snap.error is None
    assert snap.sort_config == DEFAULT_SORT
    assert snap.filter_config == DEFAULT_FILTER


def test_replace_all_sets_collection_and_view(tokens):
    store = TokenStore()
    store.set_loading(True)
    store.replace_all(tokens)

    snap = store.snapshot
    assert snap.is_loading is False
    assert [t.id for t in snap.tokens] == ["sol", "slr", "eth"]
    # default sort: created_at desc
    assert [t.id for t in snap.derived] == ["sol", "eth", "slr"]


def test_unknown_id_is_a_noop(tokens):
    store = make_store(tokens)
    before = store.snapshot
    notified = []
    store.subscribe(notified.append)

    assert store.merge_update(UpdateEvent("missing", {"price": 9.0})) is False
    assert store.snapshot is before
    assert notified == []


def test_merge_is_shallow_and_keeps_absent_fields(tokens):
    store = make_store(tokens)
    store.merge_update(UpdateEvent("sol", {"volume_24h": 42.0}, 2_000))

    sol = store.get("sol")
    assert sol.volume_24h == 42.0
    assert sol.price == 100.0
    assert sol.name == "Solana"
    assert sol.price_direction == "neutral"


def test_price_direction_is_computed_not_trusted(tokens):
    store = make_store(tokens)

    store.merge_update(UpdateEvent("sol", {"price": 120.0, "price_direction": "down"}, 2_000))
    assert store.get("sol").price_direction == "up"

    store.merge_update(UpdateEvent("sol", {"price": 90.0}, 3_000))
    assert store.get("sol").price_direction == "down"

    store.merge_update(UpdateEvent("sol", {"price": 90.0}, 4_000))
    assert store.get("sol").price_direction == "neutral"

    # Non-price update leaves direction alone
    store.merge_update(UpdateEvent("sol", {"holders": 11}, 5_000))
    assert store.get("sol").price_direction == "neutral"


def test_last_updated_never_regresses(tokens):
    store = make_store(tokens)

    store.merge_update(UpdateEvent("sol", {"price": 101.0}, 10_000))
    assert store.get("sol").last_updated == 10_000

    store.merge_update(UpdateEvent("sol", {"price": 102.0}, 4_000))
    assert store.get("sol").last_updated == 10_000
    assert store.get("sol").price == 102.0


def test_last_updated_falls_back_to_merge_time(tokens):
    store = make_store(tokens, clock_value=7_777)
    store.merge_update(UpdateEvent("eth", {"price": 1.0}))
    assert store.get("eth").last_updated == 7_777


def test_merge_recomputes_derived_view(tokens):
    store = make_store(tokens)
    store.set_sort(SortConfig("price", "asc"))
    assert [t.id for t in store.snapshot.derived] == ["slr", "sol", "eth"]

    store.merge_update(UpdateEvent("eth", {"price": 0.5}, 2_000))
    assert [t.id for t in store.snapshot.derived] == ["eth", "slr", "sol"]


def test_id_in_changes_cannot_rename_token(tokens):
    store = make_store(tokens)
    store.merge_update(UpdateEvent("sol", {"id": "other", "price": 1.0}, 2_000))
    assert store.get("sol").id == "sol"
    assert "other" not in store


def test_set_filter_merges_partial_config(tokens):
    store = make_store(tokens)
    store.set_filter(status="new")
    store.set_filter(search="SOL")

    snap = store.snapshot
    assert snap.filter_config.status == "new"
    assert snap.filter_config.search == "SOL"
    assert [t.id for t in snap.derived] == ["sol"]

    store.clear_filters()
    assert store.snapshot.filter_config == DEFAULT_FILTER
    assert len(store.snapshot.derived) == 3


def test_error_freezes_view_until_replace_all(tokens):
    store = make_store(tokens)
    frozen = store.snapshot.derived
    store.set_loading(True)
    store.set_error("boom")

    snap = store.snapshot
    assert snap.error == "boom"
    assert snap.is_loading is False

    store.set_filter(status="new")
    assert store.snapshot.derived == frozen
    assert len(frozen) == 3

    store.replace_all(tokens)
    assert store.snapshot.error is None
    assert [t.id for t in store.snapshot.derived] == ["sol"]


def test_every_mutation_publishes_new_snapshot(tokens):
    store = TokenStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.replace_all(tokens)
    store.set_sort(SortConfig("price", "asc"))
    unsubscribe()
    store.set_filter(search="x")

    assert len(seen) == 2
    assert seen[0].version < seen[1].version
    assert seen[1] is not seen[0]
    assert seen[0].sort_config == DEFAULT_SORT


def test_failing_observer_does_not_break_mutation(tokens):
    store = TokenStore()

    def bad(snapshot):
        raise RuntimeError("observer failure")

    good = []
    store.subscribe(bad)
    store.subscribe(good.append)
    store.replace_all(tokens)

    assert len(store) == 3
    assert len(good) == 1


def test_reset(tokens):
    store = make_store(tokens)
    store.set_sort(SortConfig("price", "asc"))
    store.reset()

    snap = store.snapshot
    assert snap.tokens == ()
    assert snap.sort_config == DEFAULT_SORT


def test_failed_recompute_leaves_store_unchanged(tokens):
    store = make_store(tokens)
    store.set_filter(search="s")
    before = store.snapshot

    with pytest.raises(AttributeError):
        store.merge_update(UpdateEvent("sol", {"name": None}, 2_000))

    assert store.snapshot is before
    assert store.get("sol").name == "Solana"

    assert store.merge_update(UpdateEvent("eth", {"price": 1.0}, 2_000)) is True
    assert store.snapshot.version == before.version + 1
    assert store.get("eth") in store.snapshot.tokens
