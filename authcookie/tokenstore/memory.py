"""
In-memory token storage implementation for authcookie.

This module provides a concurrency-safe in-memory token store
suitable for single-instance deployments.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from ..util.encoding import mask_sensitive_data
from .store import LookupResult, LookupStatus, SessionRecord, TokenStore, generate_token


logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 86400


class MemoryTokenStore(TokenStore):
    """
    In-memory token store implementation.

    A dictionary guarded by a single lock. Lookups report expiry against
    the caller's timeout but leave the record in place, since locations
    may use different timeouts. ``max_entries`` and the background sweep
    against ``max_age`` remove records.
    """

    def __init__(self,
                 clock: Callable[[], float] = time.time,
                 max_entries: Optional[int] = None,
                 cleanup_interval: float = 300,
                 max_age: float = DEFAULT_MAX_AGE):
        """
        Initialize memory token store.

        Args:
            clock: Source of the current time in seconds
            max_entries: Evict oldest records beyond this count (None for unbounded)
            cleanup_interval: Background sweep interval in seconds
            max_age: Age in seconds past which the sweep removes records
        """
        self._store: Dict[str, SessionRecord] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._max_entries = max_entries
        self._cleanup_interval = cleanup_interval
        self._max_age = max_age
        self._cleanup_task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self) -> None:
        """Start the cleanup task."""
        if not self._running:
            self._running = True
            self._cleanup_task = asyncio.create_task(self._auto_cleanup())
            logger.info("Started memory token store with auto-cleanup")

    async def stop(self) -> None:
        """Stop the cleanup task."""
        if self._running:
            self._running = False
            if self._cleanup_task:
                self._cleanup_task.cancel()
                try:
                    await self._cleanup_task
                except asyncio.CancelledError:
                    pass
                self._cleanup_task = None
            logger.info("Stopped memory token store")

    async def close(self) -> None:
        await self.stop()

    async def _auto_cleanup(self) -> None:
        """Automatic cleanup task."""
        while self._running:
            try:
                await asyncio.sleep(self._cleanup_interval)
                if self._running:
                    cleaned = await self.cleanup(self._max_age)
                    if cleaned > 0:
                        logger.debug(f"Auto-cleanup removed {cleaned} expired tokens")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in auto-cleanup: {e}")

    async def issue(self, credential: str) -> str:
        """Create a new token for a credential."""
        record = SessionRecord(issued_at=self._clock(), credential=credential)

        async with self._lock:
            token = generate_token()
            while token in self._store:
                token = generate_token()

            self._store[token] = record
            self._evict_overflow()

        logger.debug(f"Stored token {mask_sensitive_data(token)}")
        return token

    def _evict_overflow(self) -> None:
        if self._max_entries is None:
            return
        while len(self._store) > self._max_entries:
            # dicts keep insertion order, so the first key is the oldest
            oldest = next(iter(self._store))
            del self._store[oldest]
            logger.debug(f"Evicted token {mask_sensitive_data(oldest)} over capacity")

    async def lookup(self, token: str, timeout: float) -> LookupResult:
        """Look up a token, reporting EXPIRED past the given timeout."""
        async with self._lock:
            record = self._store.get(token)

            if record is None:
                return LookupResult.not_found()

            if record.is_expired(self._clock(), timeout):
                return LookupResult.expired()

            return LookupResult(LookupStatus.FOUND, record)

    async def invalidate(self, token: str) -> bool:
        """Remove a token from the store."""
        async with self._lock:
            if self._store.pop(token, None) is not None:
                logger.debug(f"Invalidated token {mask_sensitive_data(token)}")
                return True
            return False

    async def cleanup(self, max_age: float) -> int:
        """Remove records older than max_age."""
        async with self._lock:
            now = self._clock()
            expired_tokens = [token for token, record in self._store.items()
                              if record.is_expired(now, max_age)]

            for token in expired_tokens:
                del self._store[token]

            if expired_tokens:
                logger.info(f"Cleaned up {len(expired_tokens)} expired tokens")

            return len(expired_tokens)

    async def count(self) -> int:
        """Count total number of tokens."""
        async with self._lock:
            return len(self._store)

    async def clear(self) -> int:
        """
        Clear all tokens from the store.

        Returns:
            Number of tokens cleared
        """
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            logger.info(f"Cleared {count} tokens from memory store")
            return count


def create_memory_store(max_entries: Optional[int] = None,
                        cleanup_interval: float = 300,
                        max_age: float = DEFAULT_MAX_AGE,
                        clock: Callable[[], float] = time.time) -> MemoryTokenStore:
    """
    Create a memory token store.

    Call :meth:`MemoryTokenStore.start` from a running loop to enable
    the background sweep.
    """
    return MemoryTokenStore(clock=clock, max_entries=max_entries,
                            cleanup_interval=cleanup_interval, max_age=max_age)
