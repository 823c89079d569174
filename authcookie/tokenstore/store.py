"""
Token storage types and interfaces for authcookie.

This module provides the session record kept for every issued token,
the outcome of a lookup, and the abstract store all backends implement.
"""

import json
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import TokenStoreError


TOKEN_BYTES = 16


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """Generate an unpredictable hex token (128 bits by default)."""
    return secrets.token_hex(nbytes)


@dataclass(frozen=True)
class SessionRecord:
    """
    Issuance record of a token.

    Attributes:
        issued_at: Issue time in seconds since epoch
        credential: base64 of ``username:secret``
    """

    issued_at: float
    credential: str

    def age(self, now: float) -> float:
        """Seconds elapsed since issuance."""
        return now - self.issued_at

    def is_expired(self, now: float, timeout: float) -> bool:
        """Check whether the record is older than the timeout."""
        return self.age(now) > timeout

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> 'SessionRecord':
        try:
            data = json.loads(json_str)
            return cls(issued_at=float(data["issued_at"]),
                       credential=str(data["credential"]))
        except (ValueError, KeyError, TypeError) as e:
            raise TokenStoreError("Corrupt session record", cause=e)


class LookupStatus(Enum):
    """Outcome of a token lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class LookupResult:
    """Result of :meth:`TokenStore.lookup`; ``record`` is set only when found."""

    status: LookupStatus
    record: Optional[SessionRecord] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @classmethod
    def not_found(cls) -> 'LookupResult':
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def expired(cls) -> 'LookupResult':
        return cls(LookupStatus.EXPIRED)


class TokenStore(ABC):
    """
    Abstract base class for token storage implementations.

    All token store implementations must be safe for concurrent use. A
    lookup following the issue that created the same token must observe
    the record.
    """

    @abstractmethod
    async def issue(self, credential: str) -> str:
        """
        Create a new token for a credential.

        Args:
            credential: base64 of ``username:secret``

        Returns:
            Newly generated token

        Raises:
            TokenStoreError: If storage fails
        """
        pass

    @abstractmethod
    async def lookup(self, token: str, timeout: float) -> LookupResult:
        """
        Look up a token.

        Args:
            token: Token string
            timeout: Maximum age in seconds

        Returns:
            FOUND with the record if present and not older than timeout,
            EXPIRED if present but older, NOT_FOUND otherwise
        """
        pass

    @abstractmethod
    async def invalidate(self, token: str) -> bool:
        """
        Remove a token from the store.

        Returns:
            True if token was removed, False if not found
        """
        pass

    @abstractmethod
    async def cleanup(self, max_age: float) -> int:
        """
        Remove records older than max_age.

        Returns:
            Number of records removed
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of records currently held."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        pass
