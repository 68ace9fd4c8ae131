"""
Tests for the WebSocket Connection Registry
"""

import pytest

from services.connection_registry import ConnectionRegistry


class FakeConnection:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.closed = False
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise ConnectionError("socket gone")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.closed = True


@pytest.fixture
def registry():
    return ConnectionRegistry()


class TestConnectionRegistry:

    @pytest.mark.asyncio
    async def test_register_and_send(self, registry):
        connection = FakeConnection()
        await registry.register(1, connection)

        assert 1 in registry
        assert await registry.send_to_user(1, "notification", {"id": 5}) is True
        assert connection.sent == [{"type": "notification", "data": {"id": 5}}]

    @pytest.mark.asyncio
    async def test_new_connection_replaces_previous(self, registry):
        first, second = FakeConnection(), FakeConnection()
        await registry.register(1, first)
        await registry.register(1, second)

        assert first.closed is True
        assert registry.get(1) is second
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_stale_unregister_keeps_current_connection(self, registry):
        first, second = FakeConnection(), FakeConnection()
        await registry.register(1, first)
        await registry.register(1, second)

        assert await registry.unregister(1, first) is False
        assert registry.get(1) is second
        assert await registry.unregister(1) is True
        assert 1 not in registry

    @pytest.mark.asyncio
    async def test_failed_send_drops_connection(self, registry):
        await registry.register(1, FakeConnection(fail=True))

        assert await registry.send_to_user(1, "notification", {}) is False
        assert 1 not in registry

    @pytest.mark.asyncio
    async def test_send_to_offline_user(self, registry):
        assert await registry.send_to_user(99, "notification", {}) is False

    @pytest.mark.asyncio
    async def test_broadcast_counts_deliveries(self, registry):
        await registry.register(1, FakeConnection())
        await registry.register(2, FakeConnection())

        assert await registry.broadcast([1, 2, 2, 3], "notification", {"id": 1}) == 2

    @pytest.mark.asyncio
    async def test_close_all(self, registry):
        connections = [FakeConnection(), FakeConnection()]
        for user_id, connection in enumerate(connections, start=1):
            await registry.register(user_id, connection)

        await registry.close_all()

        assert all(c.closed for c in connections)
        assert len(registry) == 0
        assert registry.is_open is False
        with pytest.raises(RuntimeError):
            await registry.register(3, FakeConnection())
