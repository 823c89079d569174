"""
Token store package for authcookie.

This package provides the server-side mapping from issued tokens to
session records, with in-memory and Redis-backed implementations.
"""

from .store import (
    TOKEN_BYTES,
    SessionRecord,
    LookupStatus,
    LookupResult,
    TokenStore,
    generate_token,
)

from .memory import (
    DEFAULT_MAX_AGE,
    MemoryTokenStore,
    create_memory_store,
)

from .distributed import (
    DistributedConfig,
    DistributedTokenStore,
    create_distributed_store,
)


def create_token_store(kind: str = "memory", **kwargs) -> TokenStore:
    """
    Factory function to create token stores.

    Args:
        kind: "memory" or "redis"
        **kwargs: Arguments for the store factory

    Returns:
        TokenStore instance
    """
    if kind == "memory":
        return create_memory_store(**kwargs)
    elif kind == "redis":
        return create_distributed_store(**kwargs)
    else:
        raise ValueError(f"Unknown token store type: {kind}")


__all__ = [
    # Core types and interfaces
    "TOKEN_BYTES",
    "SessionRecord",
    "LookupStatus",
    "LookupResult",
    "TokenStore",
    "generate_token",
    "create_token_store",

    # Memory store
    "DEFAULT_MAX_AGE",
    "MemoryTokenStore",
    "create_memory_store",

    # Distributed store
    "DistributedConfig",
    "DistributedTokenStore",
    "create_distributed_store",
]
