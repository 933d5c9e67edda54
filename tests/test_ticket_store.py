"""
Tests for permission ticket storage.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from rptauthz.ticket import (
    MemoryTicketStore,
    PermissionTicket,
    RedisTicketStore,
    TicketFilter,
    create_ticket_store,
)


def mock_redis():
    """Async redis client backed by dictionaries"""
    hashes = {}
    index = {}
    client = MagicMock()

    async def hset(key, mapping):
        hashes.setdefault(key, {}).update(mapping)

    async def hgetall(key):
        return dict(hashes.get(key, {}))

    async def exists(key):
        return int(key in hashes)

    async def delete(key):
        return 1 if hashes.pop(key, None) is not None else 0

    async def zadd(key, mapping):
        index.update(mapping)

    async def zrange(key, start, end):
        return [member for member, _ in sorted(index.items(), key=lambda item: item[1])]

    async def zrem(key, member):
        index.pop(member, None)

    client.hset = AsyncMock(side_effect=hset)
    client.hgetall = AsyncMock(side_effect=hgetall)
    client.exists = AsyncMock(side_effect=exists)
    client.delete = AsyncMock(side_effect=delete)
    client.zadd = AsyncMock(side_effect=zadd)
    client.zrange = AsyncMock(side_effect=zrange)
    client.zrem = AsyncMock(side_effect=zrem)
    client.aclose = AsyncMock()
    return client


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return create_ticket_store("memory")
    return create_ticket_store("redis", redis_client=mock_redis())


class TestTicketStore:
    """Behaviour shared by every ticket store"""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        ticket = await store.create_ticket(PermissionTicket(resource_id="r1", owner="alice", scope="view"))

        stored = await store.get_ticket(ticket.id)

        assert stored == ticket
        assert stored.granted is False
        assert stored.requester is None

    @pytest.mark.asyncio
    async def test_duplicate_id(self, store):
        ticket = PermissionTicket(resource_id="r1", owner="alice")
        await store.create_ticket(ticket)

        with pytest.raises(ValueError):
            await store.create_ticket(ticket)

    @pytest.mark.asyncio
    async def test_set_granted(self, store):
        ticket = await store.create_ticket(PermissionTicket(resource_id="r1", owner="alice"))

        granted = await store.set_granted(ticket.id)
        revoked = await store.set_granted(ticket.id, False)

        assert granted.granted is True
        assert granted.granted_at is not None
        assert revoked.granted is False
        assert revoked.granted_at is None
        assert await store.set_granted("missing") is None

    @pytest.mark.asyncio
    async def test_bind_requester_only_once(self, store):
        ticket = await store.create_ticket(PermissionTicket(resource_id="r1", owner="alice"))

        bound = await store.bind_requester(ticket.id, "bob")
        again = await store.bind_requester(ticket.id, "carol")

        assert bound.requester == "bob"
        assert again.requester == "bob"

    @pytest.mark.asyncio
    async def test_find_tickets(self, store):
        first = await store.create_ticket(PermissionTicket(resource_id="r1", owner="alice", requester="bob"))
        await store.create_ticket(PermissionTicket(resource_id="r2", owner="alice", requester="carol"))
        await store.set_granted(first.id)

        assert [t.id for t in await store.find_tickets(TicketFilter(requester="bob", granted=True))] == [first.id]
        assert len(await store.find_tickets(TicketFilter(owner="alice"))) == 2
        assert await store.find_tickets(TicketFilter(resource_id="r3")) == []

    @pytest.mark.asyncio
    async def test_delete(self, store):
        ticket = await store.create_ticket(PermissionTicket(resource_id="r1", owner="alice"))

        assert await store.delete_ticket(ticket.id) is True
        assert await store.delete_ticket(ticket.id) is False
        assert await store.get_ticket(ticket.id) is None


class TestRedisTicketStore:
    """Redis specifics"""

    @pytest.mark.asyncio
    async def test_keys_and_close(self):
        client = mock_redis()
        store = RedisTicketStore(client, prefix="test:")
        ticket = await store.create_ticket(PermissionTicket(resource_id="r1", owner="alice"))

        client.hset.assert_awaited_with(f"test:{ticket.id}", mapping=RedisTicketStore._serialize(ticket))
        assert RedisTicketStore._serialize(ticket)["granted"] == "false"

        await store.close()
        client.aclose.assert_awaited_once()

    def test_factory_requires_client(self):
        with pytest.raises(ValueError):
            create_ticket_store("redis")

        with pytest.raises(ValueError):
            create_ticket_store("sql")

    def test_memory_factory(self):
        assert isinstance(create_ticket_store(), MemoryTicketStore)
