"""
Chained XOR stream transform protecting the credential blob in transit.

Each ciphertext byte is mixed with the previous ciphertext byte and the
key, so decryption walks the buffer backwards. The transform carries no
integrity of its own; the verification digest is checked first.
"""

from ..errors import DecryptSanityFailure
from ..util.encoding import PRINTABLE_ASCII


def _check_key(key: bytes) -> None:
    if not key:
        raise ValueError("Cipher key must not be empty")


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt plaintext, forward order: c[i] = p[i] ^ c[i-1] ^ k[i]."""
    _check_key(key)
    keylen = len(key)
    buf = bytearray(plaintext)

    for i in range(len(buf)):
        buf[i] ^= (buf[i - 1] if i > 0 else 0) ^ key[i % keylen]

    return bytes(buf)


def decrypt(ciphertext: bytes, key: bytes) -> bytes:
    """
    Decrypt ciphertext in reverse order: p[i] = c[i] ^ c[i-1] ^ k[i].

    Raises:
        DecryptSanityFailure: if any recovered byte is not printable ASCII
    """
    _check_key(key)
    keylen = len(key)
    buf = bytearray(ciphertext)

    for i in range(len(buf) - 1, -1, -1):
        buf[i] ^= (buf[i - 1] if i > 0 else 0) ^ key[i % keylen]

        # result should be base64-encoded authinfo
        if buf[i] not in PRINTABLE_ASCII:
            raise DecryptSanityFailure(f"Non-printable byte at offset {i}")

    return bytes(buf)
