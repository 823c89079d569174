"""
Utility package providing helper functions for authcookie.

This package includes:
- Encoding/decoding utilities for hex, base64 and percent-encoded cookie values
- Configuration helpers for reading settings from the environment
"""

from .encoding import (
    base64_encode, base64_decode, hex_encode, hex_decode, is_hex,
    url_escape, url_unescape, is_printable, mask_sensitive_data,
)
from .config import (
    get_config_value, parse_duration_string,
    parse_seconds, get_int_config, get_bool_config, load_config_file,
)

__all__ = [
    # Encoding utilities
    'base64_encode', 'base64_decode', 'hex_encode', 'hex_decode', 'is_hex',
    'url_escape', 'url_unescape', 'is_printable', 'mask_sensitive_data',

    # Configuration utilities
    'get_config_value', 'parse_duration_string',
    'parse_seconds', 'get_int_config', 'get_bool_config', 'load_config_file',
]
