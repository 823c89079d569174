"""
Client-side encoder for crypt cookies.

A logon page uses this to hand a freshly authenticated user over to the
edge: it encrypts ``base64(username:password)`` under the key of the
current time window and signs the ciphertext.
"""

import time
from typing import Optional, Union

from ..auth.credentials import Credential, encode_credential
from ..util.encoding import hex_encode, url_escape
from .cipher import encrypt
from .digest import DigestScheme, derive_key, verification_digest
from .window import window_start


def encode_crypt_payload(authinfo: Union[str, bytes],
                         secret: Union[str, bytes],
                         now: Optional[float] = None,
                         scheme: DigestScheme = DigestScheme.HMAC_SHA256) -> str:
    """
    Build ``crypt:<hex-digest>:<hex-ciphertext>`` for an encoded credential.

    Args:
        authinfo: base64 of ``username:password``
        secret: Shared secret
        now: Time to encrypt at, defaults to the current time
        scheme: Digest construction

    Returns:
        Unescaped cookie payload
    """
    if now is None:
        now = time.time()
    if isinstance(authinfo, str):
        authinfo = authinfo.encode('ascii')

    label = str(window_start(now))
    ciphertext_hex = hex_encode(encrypt(authinfo, derive_key(label, secret, scheme)))
    digest_hex = hex_encode(verification_digest(secret, label, ciphertext_hex, scheme))

    return f"crypt:{digest_hex}:{ciphertext_hex}"


def encode_crypt_cookie(username: str,
                        password: str,
                        secret: Union[str, bytes],
                        now: Optional[float] = None,
                        scheme: DigestScheme = DigestScheme.HMAC_SHA256) -> str:
    """Encode a credential as a percent-escaped crypt cookie value."""
    authinfo = encode_credential(Credential(username, password))
    return build_cookie_value(encode_crypt_payload(authinfo, secret, now, scheme))


def build_cookie_value(payload: str) -> str:
    """Percent-encode a payload for the wire."""
    return url_escape(payload)
