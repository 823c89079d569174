"""
Distributed token storage implementation for authcookie.

This module provides Redis-based token storage for deployments where
several edge instances must honour each other's tokens.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..errors import TokenStoreError
from ..util.encoding import mask_sensitive_data
from .memory import DEFAULT_MAX_AGE, MemoryTokenStore
from .store import LookupResult, LookupStatus, SessionRecord, TokenStore, generate_token


logger = logging.getLogger(__name__)


class DistributedConfig:
    """Configuration for distributed token storage."""

    def __init__(self,
                 addresses: List[str] = None,
                 password: Optional[str] = None,
                 db: int = 0,
                 ssl: bool = False,
                 connection_pool_kwargs: Dict[str, Any] = None,
                 key_prefix: str = "authcookie:token:",
                 record_ttl: int = DEFAULT_MAX_AGE,
                 scan_batch_size: int = 100,
                 fallback_to_memory: bool = True):
        """
        Initialize distributed configuration.

        Args:
            addresses: List of Redis addresses (host:port)
            password: Redis password
            db: Redis database number
            ssl: Enable SSL connection
            connection_pool_kwargs: Additional connection pool arguments
            key_prefix: Prefix for Redis keys
            record_ttl: Redis expiry of a record in seconds
            scan_batch_size: Batch size for SCAN based operations
            fallback_to_memory: Use an in-process store if Redis is unreachable
        """
        self.addresses = addresses or ["localhost:6379"]
        self.password = password
        self.db = db
        self.ssl = ssl
        self.connection_pool_kwargs = connection_pool_kwargs or {}
        self.key_prefix = key_prefix
        self.record_ttl = record_ttl
        self.scan_batch_size = scan_batch_size
        self.fallback_to_memory = fallback_to_memory


class DistributedTokenStore(TokenStore):
    """
    Redis-based distributed token store implementation.

    Records are stored as JSON with a Redis TTL. Per-request timeouts are
    applied on lookup without deleting, so a record stays valid for
    locations with a longer timeout until the TTL removes it.
    """

    def __init__(self,
                 config: DistributedConfig,
                 client: Optional[redis.Redis] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize distributed token store.

        Args:
            config: Distributed configuration
            client: Pre-built Redis client (skips connection setup)
            clock: Source of the current time in seconds
        """
        self.config = config
        self._clock = clock
        self._redis: Optional[redis.Redis] = client
        self._lock = asyncio.Lock()
        self._connected = client is not None

        self._fallback_store = MemoryTokenStore(clock=clock, max_age=config.record_ttl)
        self._using_fallback = False

    async def connect(self) -> None:
        """Connect to Redis."""
        async with self._lock:
            if self._connected or self._using_fallback:
                return

            host, port = self.config.addresses[0].split(":")
            try:
                self._redis = redis.Redis(
                    host=host,
                    port=int(port),
                    password=self.config.password,
                    db=self.config.db,
                    ssl=self.config.ssl,
                    decode_responses=True,
                    **self.config.connection_pool_kwargs
                )
                await self._redis.ping()
                self._connected = True
                logger.info(f"Connected to Redis at {host}:{port}")

            except (RedisError, OSError) as e:
                logger.error(f"Failed to connect to Redis: {e}")
                if not self.config.fallback_to_memory:
                    raise TokenStoreError("Redis is unavailable", cause=e)

                logger.warning("Falling back to memory store")
                self._using_fallback = True
                await self._fallback_store.start()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis and self._connected:
            await self._redis.aclose()
            self._connected = False
            logger.info("Disconnected from Redis")

        if self._using_fallback:
            await self._fallback_store.stop()

    async def close(self) -> None:
        await self.disconnect()

    @property
    def using_fallback(self) -> bool:
        return self._using_fallback

    def _get_key(self, token: str) -> str:
        """Get Redis key for token."""
        return f"{self.config.key_prefix}{token}"

    async def _ensure_connected(self) -> None:
        if not self._connected and not self._using_fallback:
            await self.connect()

    async def issue(self, credential: str) -> str:
        """Create a new token for a credential."""
        await self._ensure_connected()

        if self._using_fallback:
            return await self._fallback_store.issue(credential)

        record = SessionRecord(issued_at=self._clock(), credential=credential)
        try:
            while True:
                token = generate_token()
                # NX keeps an (astronomically unlikely) duplicate from overwriting
                created = await self._redis.set(
                    self._get_key(token), record.to_json(),
                    ex=self.config.record_ttl, nx=True
                )
                if created:
                    break
        except RedisError as e:
            logger.error(f"Failed to store token: {e}")
            raise TokenStoreError("Failed to store token", cause=e)

        logger.debug(f"Stored token {mask_sensitive_data(token)}")
        return token

    async def lookup(self, token: str, timeout: float) -> LookupResult:
        """Look up a token, reporting EXPIRED past the given timeout."""
        await self._ensure_connected()

        if self._using_fallback:
            return await self._fallback_store.lookup(token, timeout)

        key = self._get_key(token)
        try:
            value = await self._redis.get(key)
            if value is None:
                return LookupResult.not_found()

            record = SessionRecord.from_json(value)
            if record.is_expired(self._clock(), timeout):
                return LookupResult.expired()

            return LookupResult(LookupStatus.FOUND, record)

        except RedisError as e:
            logger.error(f"Failed to get token: {e}")
            raise TokenStoreError("Failed to look up token", cause=e)

    async def invalidate(self, token: str) -> bool:
        """Remove a token from the store."""
        await self._ensure_connected()

        if self._using_fallback:
            return await self._fallback_store.invalidate(token)

        try:
            result = await self._redis.delete(self._get_key(token))
        except RedisError as e:
            logger.error(f"Failed to delete token: {e}")
            raise TokenStoreError("Failed to invalidate token", cause=e)

        return result > 0

    async def _scan_keys(self) -> List[str]:
        keys = []
        cursor = 0
        while True:
            cursor, batch = await self._redis.scan(
                cursor=cursor,
                match=f"{self.config.key_prefix}*",
                count=self.config.scan_batch_size
            )
            keys.extend(batch)
            if cursor == 0:
                break
        return keys

    async def cleanup(self, max_age: float) -> int:
        """Remove records older than max_age; Redis TTL handles the rest."""
        await self._ensure_connected()

        if self._using_fallback:
            return await self._fallback_store.cleanup(max_age)

        try:
            now = self._clock()
            cleaned_count = 0

            for key in await self._scan_keys():
                value = await self._redis.get(key)
                if value is None:
                    continue
                try:
                    record = SessionRecord.from_json(value)
                except TokenStoreError:
                    logger.warning(f"Dropping corrupt record {key}")
                    record = None

                if record is None or record.is_expired(now, max_age):
                    cleaned_count += await self._redis.delete(key)

            if cleaned_count > 0:
                logger.info(f"Cleaned up {cleaned_count} expired tokens")

            return cleaned_count

        except RedisError as e:
            logger.error(f"Failed to cleanup tokens: {e}")
            raise TokenStoreError("Failed to clean up tokens", cause=e)

    async def count(self) -> int:
        """Count total number of tokens."""
        await self._ensure_connected()

        if self._using_fallback:
            return await self._fallback_store.count()

        try:
            return len(await self._scan_keys())
        except RedisError as e:
            logger.error(f"Failed to count tokens: {e}")
            raise TokenStoreError("Failed to count tokens", cause=e)


def create_distributed_store(addresses: List[str] = None,
                             password: Optional[str] = None,
                             db: int = 0,
                             **kwargs) -> DistributedTokenStore:
    """
    Create a distributed token store.

    Args:
        addresses: List of Redis addresses
        password: Redis password
        db: Redis database number
        **kwargs: Additional configuration options

    Returns:
        DistributedTokenStore instance
    """
    config = DistributedConfig(
        addresses=addresses,
        password=password,
        db=db,
        **kwargs
    )

    return DistributedTokenStore(config)
