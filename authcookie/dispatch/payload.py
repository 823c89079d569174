"""
Cookie payload parsing.

The value of the auth cookie is percent-encoded text of one of::

    token:<hex-token>
    crypt:<hex-digest>:<hex-ciphertext>
"""

from dataclasses import dataclass
from typing import Union

from ..errors import MalformedPayload
from ..util.encoding import is_hex, url_unescape


TOKEN_TAG = "token"
CRYPT_TAG = "crypt"


@dataclass(frozen=True)
class TokenReference:
    """Reference to a previously issued token."""

    token: str


@dataclass(frozen=True)
class EncryptedCredential:
    """Self-contained, time-limited credential blob."""

    digest_hex: str
    ciphertext_hex: str


CookiePayload = Union[TokenReference, EncryptedCredential]


def parse_payload(raw: str) -> CookiePayload:
    """
    Percent-decode a cookie value and classify it by its tag.

    Raises:
        MalformedPayload: unknown tag, missing delimiter, empty token or non-hex data
    """
    text = url_unescape(raw)
    tag, sep, body = text.partition(":")
    if not sep:
        raise MalformedPayload("Cookie payload has no tag")

    if tag == TOKEN_TAG:
        if not body:
            raise MalformedPayload("Empty token reference")
        if not is_hex(body):
            raise MalformedPayload("Token reference is not hex encoded")
        return TokenReference(token=body)

    if tag == CRYPT_TAG:
        digest_hex, sep, ciphertext_hex = body.partition(":")
        if not sep:
            raise MalformedPayload("Encrypted credential has no data part")
        if not is_hex(digest_hex) or not is_hex(ciphertext_hex):
            raise MalformedPayload("Encrypted credential is not hex encoded")
        return EncryptedCredential(digest_hex=digest_hex, ciphertext_hex=ciphertext_hex)

    raise MalformedPayload(f"Unrecognized cookie auth format: {tag!r}")
