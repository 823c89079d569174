"""
Cryptographic primitives of the cookie protocol: keyed digests, the
chained stream cipher, time-window verification and the client-side
encoder used by logon pages.
"""

from .digest import DIGEST_SIZE, DigestScheme, verification_digest, derive_key
from .cipher import encrypt, decrypt
from .window import (
    WINDOW_SECONDS,
    WINDOW_TOLERANCE,
    WindowMatch,
    window_start,
    candidate_windows,
    verify_window,
    decrypt_blob,
)
from .encoder import encode_crypt_payload, encode_crypt_cookie, build_cookie_value

__all__ = [
    "DIGEST_SIZE",
    "DigestScheme",
    "verification_digest",
    "derive_key",
    "encrypt",
    "decrypt",
    "WINDOW_SECONDS",
    "WINDOW_TOLERANCE",
    "WindowMatch",
    "window_start",
    "candidate_windows",
    "verify_window",
    "decrypt_blob",
    "encode_crypt_payload",
    "encode_crypt_cookie",
    "build_cookie_value",
]
