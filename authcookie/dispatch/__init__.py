"""
Cookie protocol dispatch: locating the cookie, parsing its payload and
routing it to token lookup or crypt verification.
"""

from .cookies import MAX_COOKIE_HEADER, find_cookie
from .payload import (
    TOKEN_TAG,
    CRYPT_TAG,
    TokenReference,
    EncryptedCredential,
    CookiePayload,
    parse_payload,
)
from .dispatcher import DecisionKind, AuthDecision, CookieDispatcher

__all__ = [
    "MAX_COOKIE_HEADER",
    "find_cookie",
    "TOKEN_TAG",
    "CRYPT_TAG",
    "TokenReference",
    "EncryptedCredential",
    "CookiePayload",
    "parse_payload",
    "DecisionKind",
    "AuthDecision",
    "CookieDispatcher",
]
