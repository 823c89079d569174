"""
authcookie Python Package

Cookie relay authentication for edge components: verifies an encrypted,
time-windowed credential cookie, trades it for a short-lived server-held
token and injects the verified credentials into the request.
"""

__version__ = "0.1.0"

from .core.config import AuthPolicy, LocationPolicies, OverrideMode
from .crypto.digest import DigestScheme
from .crypto.encoder import encode_crypt_cookie
from .auth.credentials import Credential
from .dispatch.dispatcher import AuthDecision, CookieDispatcher, DecisionKind
from .tokenstore import MemoryTokenStore, DistributedTokenStore, create_token_store

__all__ = [
    "AuthPolicy",
    "LocationPolicies",
    "OverrideMode",
    "DigestScheme",
    "encode_crypt_cookie",
    "Credential",
    "AuthDecision",
    "CookieDispatcher",
    "DecisionKind",
    "MemoryTokenStore",
    "DistributedTokenStore",
    "create_token_store",
]
