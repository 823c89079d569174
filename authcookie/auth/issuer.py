"""
Token issuance for verified credentials.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..tokenstore.store import TokenStore
from ..util.encoding import mask_sensitive_data
from .credentials import Credential, encode_credential

if TYPE_CHECKING:
    from ..core.config import AuthPolicy


logger = logging.getLogger(__name__)

TOKEN_PREFIX = "token:"


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted token and everything needed to deliver it."""

    token: str
    set_cookie: str
    authorization: str
    credential: Credential


def format_token_cookie(cookie_name: str, token: str, options: str = "") -> str:
    """Build ``<name>=token:<token>; <options>`` for a Set-Cookie header."""
    field = f"{cookie_name}={TOKEN_PREFIX}{token}"
    if options:
        field = f"{field}; {options}"
    return field


class TokenIssuer:
    """Mints tokens for verified credentials and records them in a store."""

    def __init__(self, store: TokenStore):
        self.store = store

    async def issue(self, credential: Credential, policy: "AuthPolicy") -> IssuedToken:
        """
        Issue a token for a verified credential.

        Args:
            credential: Verified credential
            policy: Policy providing cookie name and attributes

        Returns:
            IssuedToken carrying the token, its Set-Cookie value and the
            Authorization header for the current request
        """
        authinfo = encode_credential(credential)
        token = await self.store.issue(authinfo)
        logger.debug(f"Pairing credential of {credential.username} with token "
                     f"{mask_sensitive_data(token)}")

        set_cookie = format_token_cookie(policy.cookie_name, token, policy.cookie_options)

        return IssuedToken(
            token=token,
            set_cookie=set_cookie,
            authorization=f"Basic {authinfo}",
            credential=credential,
        )
