import asyncio

import pytest

from connection import Connection
from errors import ChannelClosed
from tests.helpers import BlockingWebSocket, FakeWebSocket


async def test_frames_are_written_in_order(make_connection):
    conn = make_connection()
    for i in range(5):
        conn.send(f'{{"n": {i}}}')

    await conn.flush()

    assert conn.websocket.sent == [{"n": i} for i in range(5)]


async def test_send_after_close_raises(make_connection):
    conn = make_connection()
    await conn.close()

    assert not conn.is_open
    assert conn.websocket.closed
    with pytest.raises(ChannelClosed):
        conn.send('{"n": 1}')


async def test_close_is_idempotent(make_connection):
    conn = make_connection()
    await conn.close()
    await conn.close()

    assert not conn.is_open


async def test_full_outbox_closes_slow_connection():
    websocket = BlockingWebSocket()
    lost = []
    lost_event = asyncio.Event()

    async def on_lost(connection):
        lost.append(connection)
        lost_event.set()

    conn = Connection(websocket, max_pending=2, on_lost=on_lost)
    conn.start()
    try:
        conn.send('{"n": 0}')
        # Let the writer pick up the first frame and stall on it
        await asyncio.sleep(0)
        conn.send('{"n": 1}')
        conn.send('{"n": 2}')

        with pytest.raises(ChannelClosed) as excinfo:
            conn.send('{"n": 3}')
        assert excinfo.value.reason == "outbox full"
        assert not conn.is_open

        await asyncio.wait_for(lost_event.wait(), timeout=1)
        assert lost == [conn]
        assert websocket.closed
        with pytest.raises(ChannelClosed):
            conn.send('{"n": 4}')
    finally:
        await conn.close()


async def test_send_failure_marks_connection_closed(make_connection):
    conn = make_connection(fail_on_send=True)
    conn.send('{"n": 1}')
    conn.send('{"n": 2}')

    await conn.flush()

    assert not conn.is_open
    assert conn.websocket.closed
    with pytest.raises(ChannelClosed):
        conn.send('{"n": 3}')


async def test_close_discards_pending_frames():
    websocket = BlockingWebSocket()
    conn = Connection(websocket)
    conn.start()
    conn.send('{"n": 1}')
    conn.send('{"n": 2}')

    await conn.close()
    await asyncio.wait_for(conn.flush(), timeout=1)

    assert websocket.sent == []


def test_default_display_name_uses_id_prefix():
    conn = Connection(FakeWebSocket(), connection_id="abcdef0123456789")

    assert conn.default_display_name == "User_abcdef01"
