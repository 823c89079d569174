"""
Locating the auth entry in a raw Cookie header.
"""

from typing import Optional


MAX_COOKIE_HEADER = 4096


def find_cookie(header: Optional[str], name: str) -> Optional[str]:
    """
    Return the raw value of the named cookie entry.

    Whitespace around the name and before ``=`` is skipped; the name must
    otherwise match exactly. The first matching entry wins. Headers longer
    than ``MAX_COOKIE_HEADER`` are cut before parsing.
    """
    if not header or not name:
        return None

    for entry in header[:MAX_COOKIE_HEADER].split(";"):
        key, sep, value = entry.partition("=")
        if sep and key.strip() == name:
            return value.strip()

    return None
