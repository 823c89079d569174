"""
Keyed digests for the crypt cookie.

Two derivations exist and they must not be confused:

* the *verification digest* binds secret, window label and ciphertext and
  is what the client sends in the cookie;
* the *key derivation* turns window label and secret into the 16-byte
  stream cipher key.

Both come in a hardened HMAC-SHA256 form and a legacy MD5 form that is
bit-compatible with existing MD5 based logon pages.
"""

import hashlib
import hmac
from enum import Enum
from typing import Union


DIGEST_SIZE = 16

_VERIFY_LABEL = b"verify:"
_KEY_LABEL = b"key:"


class DigestScheme(Enum):
    """Digest construction used for both derivations."""

    HMAC_SHA256 = "hmac-sha256"
    LEGACY_MD5 = "md5"

    @classmethod
    def parse(cls, value: Union[str, "DigestScheme"]) -> "DigestScheme":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown digest scheme: {value}")


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    return value


def verification_digest(secret: Union[str, bytes],
                        window_label: Union[str, bytes],
                        ciphertext: Union[str, bytes],
                        scheme: DigestScheme = DigestScheme.HMAC_SHA256) -> bytes:
    """
    Compute the digest a client attaches to an encrypted credential.

    Args:
        secret: Shared secret
        window_label: Decimal text of the quantized timestamp
        ciphertext: Ciphertext as transmitted (hex text)
        scheme: Digest construction

    Returns:
        16-byte digest
    """
    secret = _as_bytes(secret)
    label = _as_bytes(window_label)
    data = _as_bytes(ciphertext)

    if scheme is DigestScheme.LEGACY_MD5:
        return hashlib.md5(secret + label + data).digest()

    mac = hmac.new(secret, _VERIFY_LABEL + label + b":" + data, hashlib.sha256)
    return mac.digest()[:DIGEST_SIZE]


def derive_key(window_label: Union[str, bytes],
               secret: Union[str, bytes],
               scheme: DigestScheme = DigestScheme.HMAC_SHA256) -> bytes:
    """
    Derive the stream cipher key for a time window.

    Note the argument order: window label first, secret second.

    Returns:
        16-byte key
    """
    label = _as_bytes(window_label)
    secret = _as_bytes(secret)

    if scheme is DigestScheme.LEGACY_MD5:
        return hashlib.md5(label + secret).digest()

    mac = hmac.new(secret, _KEY_LABEL + label, hashlib.sha256)
    return mac.digest()[:DIGEST_SIZE]
