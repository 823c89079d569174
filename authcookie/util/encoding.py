"""
Encoding and decoding utilities for authcookie.
Wire values in the cookie protocol are hex, base64 and percent-encoded text.
"""

import base64
import binascii
import string
from typing import Union
from urllib.parse import quote, unquote


PRINTABLE_ASCII = frozenset(range(0x20, 0x7f))


def base64_encode(data: Union[str, bytes]) -> str:
    """Encode data to base64 string."""
    if isinstance(data, str):
        data = data.encode('utf-8')

    return base64.b64encode(data).decode('ascii')


def base64_decode(encoded: Union[str, bytes]) -> bytes:
    """Decode standard base64, rejecting characters outside the alphabet."""
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 data: {e}")


def hex_encode(data: Union[str, bytes]) -> str:
    """Encode data to lowercase hexadecimal string."""
    if isinstance(data, str):
        data = data.encode('utf-8')

    return data.hex()


def hex_decode(encoded: str) -> bytes:
    """Decode hexadecimal string (either case) to bytes."""
    if len(encoded) % 2:
        raise ValueError("Invalid hexadecimal data: odd length")
    if not all(c in string.hexdigits for c in encoded):
        raise ValueError("Invalid hexadecimal data: non-hex character")

    return bytes.fromhex(encoded)


def is_hex(text: str) -> bool:
    """Check whether text is a non-empty even-length hex string."""
    try:
        hex_decode(text)
    except ValueError:
        return False
    return bool(text)


def url_unescape(text: str) -> str:
    """
    Percent-decode a cookie value.

    ``+`` is kept as-is: cookie values are path-style escaped, not form
    encoded.
    """
    return unquote(text)


def url_escape(text: str, safe: str = '') -> str:
    """Percent-encode text for use in a cookie value or query parameter."""
    return quote(text, safe=safe)


def is_printable(data: bytes) -> bool:
    """Check that every byte is printable ASCII (0x20..0x7e)."""
    return all(b in PRINTABLE_ASCII for b in data)


def mask_sensitive_data(data: str, mask_char: str = '*',
                        show_first: int = 4, show_last: int = 0) -> str:
    """
    Mask sensitive data leaving only first and last characters visible.
    """
    if not isinstance(data, str) or len(data) <= (show_first + show_last):
        return mask_char * len(data) if data else ""

    first_part = data[:show_first]
    last_part = data[-show_last:] if show_last > 0 else ""
    middle_length = len(data) - show_first - show_last

    return first_part + (mask_char * middle_length) + last_part
