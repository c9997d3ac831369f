import asyncio

import orjson
import pytest
from aiohttp import web
from aiohttp import test_utils

from token_sync.datafeed.ws_client import WebSocketFeed, parse_message
from token_sync.types import UpdateEvent


def encode(message) -> bytes:
    return orjson.dumps(message)


def test_price_update_is_translated_to_snake_case():
    raw = encode({
        "type": "price-update",
        "data": {
            "id": "sol",
            "price": 101.5,
            "priceChange24h": -1.25,
            "lastUpdated": 1_700_000_000_000,
            "priceDirection": "down",
        },
    })

    event = parse_message(raw)

    assert event == UpdateEvent(
        "sol",
        {"price": 101.5, "price_change_24h": -1.25},
        1_700_000_000_000,
    )


def test_status_change_is_merged():
    event = parse_message(encode({"type": "status-change", "data": {"id": "a", "status": "migrated"}}))
    assert event.changes == {"status": "migrated"}
    assert event.last_updated is None


@pytest.mark.parametrize("raw", [
    b"not json",
    b"[1, 2]",
    encode({"type": "new-token", "data": {"id": "x"}}),
    encode({"type": "price-update", "data": {"price": 1.0}}),
    encode({"type": "price-update", "data": "sol"}),
    encode({"data": {"id": "x"}}),
])
def test_unmergeable_messages_are_dropped(raw):
    assert parse_message(raw) is None


def test_unknown_wire_fields_are_skipped():
    event = parse_message(encode({"type": "price-update", "data": {"id": "a", "price": 2.0, "foo": 1}}))
    assert event.changes == {"price": 2.0}


def test_handle_raw_publishes_to_subscribers():
    feed = WebSocketFeed("ws://localhost:1/tokens")
    received = []
    feed.subscribe(received.append)

    feed.handle_raw(encode({"type": "price-update", "data": {"id": "a", "price": 2.0}}))
    feed.handle_raw(b"garbage")

    assert [e.id for e in received] == ["a"]


def test_stop_before_start_is_safe():
    feed = WebSocketFeed("ws://localhost:1/tokens")
    feed.stop()
    assert feed.is_running is False


async def wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.01)


async def start_server(handler) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_get("/tokens", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


@pytest.mark.asyncio
async def test_reconnects_after_handshake_error_and_server_close():
    attempts = []

    async def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            # Refused handshake -> ClientError on the client side
            return web.Response(status=500)
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        await ws.send_str(encode({
            "type": "price-update",
            "data": {"id": f"t{len(attempts)}", "price": 1.0},
        }).decode())
        await ws.close()
        return ws

    server = await start_server(handler)
    feed = WebSocketFeed(str(server.make_url("/tokens").with_scheme("ws")), reconnect_delay_ms=10)
    received = []
    feed.subscribe(received.append)

    try:
        feed.start()
        task = feed._task
        # attempt 1 fails, attempts 2 and 3 each deliver one event then close
        await wait_for(lambda: len(received) >= 2)

        assert [e.id for e in received[:2]] == ["t2", "t3"]
        assert len(attempts) >= 3

        feed.stop()
        await asyncio.wait([task], timeout=5)
        assert task.done()
        assert feed.is_running is False
    finally:
        feed.stop()
        await server.close()


@pytest.mark.asyncio
async def test_stop_during_reconnect_wait():
    attempts = []

    async def handler(request):
        attempts.append(request)
        return web.Response(status=503)

    server = await start_server(handler)
    feed = WebSocketFeed(str(server.make_url("/tokens").with_scheme("ws")), reconnect_delay_ms=10_000)

    try:
        feed.start()
        task = feed._task
        await wait_for(lambda: len(attempts) == 1)
        await asyncio.sleep(0.05)

        feed.stop()
        await asyncio.wait([task], timeout=1)

        assert task.done()
        assert len(attempts) == 1
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_unexpected_error_clears_running_state(monkeypatch):
    feed = WebSocketFeed("ws://localhost:1/tokens")
    calls = []

    async def broken_consume(session, generation):
        calls.append(generation)
        raise RuntimeError("unexpected")

    monkeypatch.setattr(feed, "_consume", broken_consume)

    feed.start()
    await wait_for(lambda: not feed.is_running)
    assert len(calls) == 1

    # start() works again after the task died
    feed.start()
    await wait_for(lambda: len(calls) == 2)
    await wait_for(lambda: not feed.is_running)
