"""
Time-window verification of encrypted credential blobs.

Clients digest their ciphertext together with the start of the current
5-second window. The verifier walks back over the windows that are still
inside the tolerance and accepts the first one whose digest matches.
A matched blob stays replayable until the tolerance runs out; there is no
nonce.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Iterator, Union

from ..errors import DigestMismatch, MalformedPayload
from ..util.encoding import hex_decode, is_hex
from .cipher import decrypt
from .digest import DIGEST_SIZE, DigestScheme, derive_key, verification_digest


logger = logging.getLogger(__name__)

WINDOW_SECONDS = 5
WINDOW_TOLERANCE = 10


@dataclass(frozen=True)
class WindowMatch:
    """A verified time window and the cipher key derived for it."""

    window: int
    key: bytes

    @property
    def label(self) -> str:
        return str(self.window)


def window_start(now: float) -> int:
    """Quantize a timestamp down to its window boundary."""
    t0 = int(now)
    return t0 - (t0 % WINDOW_SECONDS)


def candidate_windows(now: float) -> Iterator[int]:
    """Yield window starts from newest to oldest while inside the tolerance."""
    t0 = int(now)
    t1 = window_start(now)
    while t0 - t1 < WINDOW_TOLERANCE:
        yield t1
        t1 -= WINDOW_SECONDS


def verify_window(secret: Union[str, bytes],
                  digest_hex: str,
                  ciphertext_hex: str,
                  now: float,
                  scheme: DigestScheme = DigestScheme.HMAC_SHA256) -> WindowMatch:
    """
    Find the time window the blob was digested in.

    Args:
        secret: Shared secret
        digest_hex: Digest from the cookie, hex (either case)
        ciphertext_hex: Ciphertext from the cookie, hex (either case)
        now: Verifier's current time (seconds since epoch)
        scheme: Digest construction

    Returns:
        WindowMatch with the matched window and derived key

    Raises:
        MalformedPayload: if digest or ciphertext is not valid hex
        DigestMismatch: if no window inside the tolerance matches
    """
    if len(digest_hex) != DIGEST_SIZE * 2 or not is_hex(digest_hex):
        raise MalformedPayload("Digest is not a 16-byte hex value")
    if not is_hex(ciphertext_hex):
        raise MalformedPayload("Ciphertext is not hex encoded")

    expected = hex_decode(digest_hex)

    for window in candidate_windows(now):
        computed = verification_digest(secret, str(window), ciphertext_hex, scheme)
        logger.debug(f"Checking window {window} (now={int(now)})")

        if hmac.compare_digest(computed, expected):
            return WindowMatch(window=window, key=derive_key(str(window), secret, scheme))

    raise DigestMismatch("No time window inside the tolerance matched")


def decrypt_blob(secret: Union[str, bytes],
                 digest_hex: str,
                 ciphertext_hex: str,
                 now: float,
                 scheme: DigestScheme = DigestScheme.HMAC_SHA256) -> bytes:
    """
    Verify and decrypt an encrypted credential blob.

    Returns:
        Decrypted payload (printable ASCII, base64 of ``username:secret``)

    Raises:
        MalformedPayload, DigestMismatch, DecryptSanityFailure
    """
    match = verify_window(secret, digest_hex, ciphertext_hex, now, scheme)
    return decrypt(hex_decode(ciphertext_hex), match.key)
