"""
Credential decoding for the cookie protocol.

A verified payload (and every stored session record) is ``authinfo``:
base64 of ``username:secret``, the same value that goes after ``Basic``
in an Authorization header.
"""

from dataclasses import dataclass
from typing import Union

from ..errors import DecodeFailure
from ..util.encoding import base64_decode, base64_encode


@dataclass(frozen=True)
class Credential:
    """Username/secret pair recovered from a verified payload."""

    username: str
    secret: str

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, secret='***')"

    def to_authinfo(self) -> str:
        """Encode as base64 of ``username:secret``."""
        return encode_credential(self)

    def authorization_header(self) -> str:
        """Format as a downstream Basic Authorization header value."""
        return f"Basic {self.to_authinfo()}"


def encode_credential(credential: Credential) -> str:
    """Encode a credential as base64 of ``username:secret``."""
    return base64_encode(f"{credential.username}:{credential.secret}")


def decode_credential(authinfo: Union[str, bytes]) -> Credential:
    """
    Decode base64 ``username:secret`` into a Credential.

    The split happens on the first ``:``; the secret may contain further
    colons.

    Raises:
        DecodeFailure: invalid base64, non UTF-8 text or no delimiter
    """
    try:
        decoded = base64_decode(authinfo).decode('utf-8')
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeFailure("Credential is not base64 encoded text", cause=e)

    username, sep, secret = decoded.partition(':')
    if not sep:
        raise DecodeFailure("Credential has no ':' delimiter")

    return Credential(username=username, secret=secret)
