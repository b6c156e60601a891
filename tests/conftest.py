import pytest

from connection import Connection
from message_router import MessageRouter
from registry import ConnectionRegistry
from tests.helpers import FakeWebSocket


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def message_router(registry):
    return MessageRouter(registry)


@pytest.fixture
async def make_connection():
    """Factory for started connections backed by FakeWebSocket; all closed at teardown."""
    created = []

    def factory(connection_id=None, fail_on_send=False, max_pending=256, on_lost=None):
        connection = Connection(
            FakeWebSocket(fail_on_send=fail_on_send),
            connection_id=connection_id,
            max_pending=max_pending,
            on_lost=on_lost,
        )
        connection.start()
        created.append(connection)
        return connection

    yield factory

    for connection in created:
        await connection.close()
