"""
Tests for the in-memory and Redis-backed token stores.
"""

import asyncio
import string
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from authcookie.errors import ErrorCode, TokenStoreError
from authcookie.tokenstore import (
    DistributedConfig,
    DistributedTokenStore,
    LookupStatus,
    MemoryTokenStore,
    SessionRecord,
    create_token_store,
    generate_token,
)

from .conftest import FakeClock, T0


class TestSessionRecord:
    """Session record helpers."""

    def test_expiry_boundary(self):
        record = SessionRecord(issued_at=100, credential="x")
        assert not record.is_expired(now=160, timeout=60)
        assert record.is_expired(now=161, timeout=60)

    def test_json_round_trip(self):
        record = SessionRecord(issued_at=100.5, credential="Ym9iOnB3")
        assert SessionRecord.from_json(record.to_json()) == record

    @pytest.mark.parametrize("data", ["not json", "{}", '{"issued_at": "x", "credential": 1}'])
    def test_corrupt_json(self, data):
        with pytest.raises(TokenStoreError):
            SessionRecord.from_json(data)

    def test_generate_token(self):
        token = generate_token()
        assert len(token) == 32
        assert all(c in string.hexdigits for c in token)
        assert generate_token() != token


class TestMemoryTokenStore:
    """In-memory token store."""

    @pytest.mark.asyncio
    async def test_issue_then_lookup(self, store, clock):
        token = await store.issue("bob:pw")
        clock.advance(1)

        result = await store.lookup(token, 86400)

        assert result.found
        assert result.record.credential == "bob:pw"
        assert result.record.issued_at == T0

    @pytest.mark.asyncio
    async def test_lookup_after_timeout_expires(self, store, clock):
        token = await store.issue("bob:pw")
        clock.advance(86400 + 1)

        result = await store.lookup(token, 86400)
        assert result.status is LookupStatus.EXPIRED
        assert result.record is None

        # expiry is reported, not acted on
        result = await store.lookup(token, 86400)
        assert result.status is LookupStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_zero_timeout_immediate_lookup(self, store):
        token = await store.issue("bob:pw")
        result = await store.lookup(token, 0)
        assert result.found

    @pytest.mark.asyncio
    async def test_timeout_is_per_lookup(self, store, clock):
        token = await store.issue("bob:pw")
        clock.advance(120)

        assert (await store.lookup(token, 3600)).found
        assert (await store.lookup(token, 60)).status is LookupStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_short_timeout_does_not_remove_for_longer_one(self, store, clock):
        token = await store.issue("bob:pw")
        clock.advance(15 * 60)

        assert (await store.lookup(token, 600)).status is LookupStatus.EXPIRED

        result = await store.lookup(token, 3600)
        assert result.found
        assert result.record.credential == "bob:pw"

    @pytest.mark.asyncio
    async def test_unknown_token(self, store):
        result = await store.lookup("deadbeef", 86400)
        assert result.status is LookupStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalidate(self, store):
        token = await store.issue("bob:pw")

        assert await store.invalidate(token) is True
        assert await store.invalidate(token) is False
        assert (await store.lookup(token, 86400)).status is LookupStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cleanup(self, store, clock):
        old = await store.issue("old:1")
        clock.advance(100)
        new = await store.issue("new:1")
        clock.advance(10)

        removed = await store.cleanup(max_age=50)

        assert removed == 1
        assert await store.count() == 1
        assert (await store.lookup(old, 86400)).status is LookupStatus.NOT_FOUND
        assert (await store.lookup(new, 86400)).found

    @pytest.mark.asyncio
    async def test_max_entries_evicts_oldest(self, clock):
        store = MemoryTokenStore(clock=clock, max_entries=2)
        first = await store.issue("a:1")
        second = await store.issue("b:2")
        third = await store.issue("c:3")

        assert await store.count() == 2
        assert (await store.lookup(first, 86400)).status is LookupStatus.NOT_FOUND
        assert (await store.lookup(second, 86400)).found
        assert (await store.lookup(third, 86400)).found

    @pytest.mark.asyncio
    async def test_concurrent_issue(self, store):
        tokens = await asyncio.gather(*(store.issue(f"user{i}:pw") for i in range(50)))

        assert len(set(tokens)) == 50
        assert await store.count() == 50

        results = await asyncio.gather(*(store.lookup(t, 86400) for t in tokens))
        assert [r.record.credential for r in results] == [f"user{i}:pw" for i in range(50)]

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.issue("a:1")
        await store.issue("b:2")

        assert await store.clear() == 2
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_background_sweep(self, clock):
        store = MemoryTokenStore(clock=clock, cleanup_interval=0.01, max_age=60)
        await store.issue("a:1")
        clock.advance(61)

        await store.start()
        try:
            for _ in range(50):
                if await store.count() == 0:
                    break
                await asyncio.sleep(0.01)
            assert await store.count() == 0
        finally:
            await store.close()

    def test_factory(self):
        assert isinstance(create_token_store("memory"), MemoryTokenStore)
        assert isinstance(create_token_store("redis"), DistributedTokenStore)
        with pytest.raises(ValueError):
            create_token_store("sqlite")


def make_redis_store(clock=None, **config_kwargs):
    client = AsyncMock()
    config = DistributedConfig(**config_kwargs)
    store = DistributedTokenStore(config, client=client, clock=clock or FakeClock())
    return store, client


class TestDistributedTokenStore:
    """Redis-backed token store against a mocked client."""

    @pytest.mark.asyncio
    async def test_issue(self):
        store, client = make_redis_store(record_ttl=3600)
        client.set.return_value = True

        token = await store.issue("bob:pw")

        client.set.assert_awaited_once()
        args, kwargs = client.set.call_args
        assert args[0] == f"authcookie:token:{token}"
        assert SessionRecord.from_json(args[1]) == SessionRecord(T0, "bob:pw")
        assert kwargs == {"ex": 3600, "nx": True}

    @pytest.mark.asyncio
    async def test_issue_retries_on_collision(self):
        store, client = make_redis_store()
        client.set.side_effect = [False, True]

        await store.issue("bob:pw")

        assert client.set.await_count == 2

    @pytest.mark.asyncio
    async def test_lookup_found(self):
        clock = FakeClock()
        store, client = make_redis_store(clock=clock)
        client.get.return_value = SessionRecord(T0, "bob:pw").to_json()
        clock.advance(1)

        result = await store.lookup("abc", 86400)

        client.get.assert_awaited_once_with("authcookie:token:abc")
        assert result.found
        assert result.record.credential == "bob:pw"

    @pytest.mark.asyncio
    async def test_lookup_expired_keeps_record(self):
        clock = FakeClock()
        store, client = make_redis_store(clock=clock)
        client.get.return_value = SessionRecord(T0, "bob:pw").to_json()
        clock.advance(61)

        result = await store.lookup("abc", 60)

        assert result.status is LookupStatus.EXPIRED
        client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_missing(self):
        store, client = make_redis_store()
        client.get.return_value = None

        result = await store.lookup("abc", 60)
        assert result.status is LookupStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_redis_errors_are_wrapped(self):
        store, client = make_redis_store()
        client.get.side_effect = RedisError("boom")

        with pytest.raises(TokenStoreError) as exc_info:
            await store.lookup("abc", 60)

        assert exc_info.value.code is ErrorCode.STORAGE_ERROR
        assert isinstance(exc_info.value.cause, RedisError)

    @pytest.mark.asyncio
    async def test_invalidate(self):
        store, client = make_redis_store()
        client.delete.return_value = 1
        assert await store.invalidate("abc") is True

        client.delete.return_value = 0
        assert await store.invalidate("abc") is False

    @pytest.mark.asyncio
    async def test_count_scans_all_batches(self):
        store, client = make_redis_store()
        client.scan.side_effect = [(7, ["k1", "k2"]), (0, ["k3"])]

        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_cleanup(self):
        clock = FakeClock()
        store, client = make_redis_store(clock=clock)
        client.scan.return_value = (0, ["old", "new", "corrupt", "gone"])
        client.get.side_effect = [
            SessionRecord(T0 - 100, "a:1").to_json(),
            SessionRecord(T0, "b:2").to_json(),
            "garbage",
            None,
        ]
        client.delete.return_value = 1

        removed = await store.cleanup(max_age=50)

        assert removed == 2
        deleted = [c.args[0] for c in client.delete.await_args_list]
        assert deleted == ["old", "corrupt"]

    @pytest.mark.asyncio
    async def test_falls_back_to_memory(self):
        store = DistributedTokenStore(DistributedConfig(addresses=["redis.invalid:6379"]))

        with patch("authcookie.tokenstore.distributed.redis.Redis") as redis_cls:
            redis_cls.return_value = MagicMock(
                ping=AsyncMock(side_effect=RedisConnectionError("unreachable")))
            token = await store.issue("bob:pw")

        try:
            assert store.using_fallback
            result = await store.lookup(token, 86400)
            assert result.record.credential == "bob:pw"
            assert await store.count() == 1
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_fallback_disabled(self):
        store = DistributedTokenStore(
            DistributedConfig(addresses=["redis.invalid:6379"], fallback_to_memory=False))

        with patch("authcookie.tokenstore.distributed.redis.Redis") as redis_cls:
            redis_cls.return_value = MagicMock(
                ping=AsyncMock(side_effect=RedisConnectionError("unreachable")))
            with pytest.raises(TokenStoreError):
                await store.issue("bob:pw")

        assert not store.using_fallback

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        store, client = make_redis_store()
        await store.close()
        client.aclose.assert_awaited_once()
