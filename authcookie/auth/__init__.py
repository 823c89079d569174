"""
Credential handling and token issuance.
"""

from .credentials import Credential, encode_credential, decode_credential
from .issuer import TOKEN_PREFIX, IssuedToken, TokenIssuer, format_token_cookie

__all__ = [
    "Credential",
    "encode_credential",
    "decode_credential",
    "TOKEN_PREFIX",
    "IssuedToken",
    "TokenIssuer",
    "format_token_cookie",
]
