"""
Error handling for the authcookie protocol.

Every failure the cookie protocol can hit has its own error class and
``ErrorCode``. The dispatcher collapses all of them into a single denial
towards the client, while the code is kept for audit logging and metrics.
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    """Structured error codes for the cookie protocol."""

    # Cookie location / parsing
    MISSING_COOKIE = "missing_cookie"
    MALFORMED_PAYLOAD = "malformed_payload"

    # Encrypted credential path
    DIGEST_MISMATCH = "digest_mismatch"
    DECRYPT_SANITY_FAILURE = "decrypt_sanity_failure"
    DECODE_FAILURE = "decode_failure"

    # Token path
    TOKEN_NOT_FOUND = "token_not_found"
    TOKEN_EXPIRED = "token_expired"

    # Infrastructure
    STORAGE_ERROR = "storage_error"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class ErrorSource(Enum):
    """Sources where errors can originate."""

    CLIENT = "client"
    TOKEN_STORE = "token_store"
    CONFIGURATION = "configuration"


class AuthCookieError(Exception):
    """
    Base exception class for all authcookie errors.

    Carries an error code and source so callers can record *why* a
    request was denied without ever telling the client.
    """

    default_code: ErrorCode = ErrorCode.MALFORMED_PAYLOAD
    default_source: ErrorSource = ErrorSource.CLIENT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        source: Optional[ErrorSource] = None,
        cause: Optional[Exception] = None,
    ):
        self.code = code or self.default_code
        self.source = source or self.default_source
        self.message = message
        self.cause = cause
        self.timestamp = datetime.now()

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
            "error_source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result


class MissingCookie(AuthCookieError):
    """The configured cookie is not present in the request."""

    default_code = ErrorCode.MISSING_COOKIE


class MalformedPayload(AuthCookieError):
    """Cookie value has an unknown tag, a missing delimiter or bad hex."""

    default_code = ErrorCode.MALFORMED_PAYLOAD


class DigestMismatch(AuthCookieError):
    """No time window inside the tolerance produced the presented digest."""

    default_code = ErrorCode.DIGEST_MISMATCH


class DecryptSanityFailure(AuthCookieError):
    """Decryption produced a non-printable byte."""

    default_code = ErrorCode.DECRYPT_SANITY_FAILURE


class DecodeFailure(AuthCookieError):
    """Decrypted payload is not base64 of ``username:secret``."""

    default_code = ErrorCode.DECODE_FAILURE


class TokenNotFound(AuthCookieError):
    """Referenced token was never issued or has been evicted."""

    default_code = ErrorCode.TOKEN_NOT_FOUND


class TokenExpired(AuthCookieError):
    """Referenced token exists but is older than the policy timeout."""

    default_code = ErrorCode.TOKEN_EXPIRED


class TokenStoreError(AuthCookieError):
    """Backend failure of a token store."""

    default_code = ErrorCode.STORAGE_ERROR
    default_source = ErrorSource.TOKEN_STORE


class ConfigurationError(AuthCookieError):
    """Invalid policy or configuration value."""

    default_code = ErrorCode.CONFIGURATION_ERROR
    default_source = ErrorSource.CONFIGURATION


__all__ = [
    "ErrorCode",
    "ErrorSource",
    "AuthCookieError",
    "MissingCookie",
    "MalformedPayload",
    "DigestMismatch",
    "DecryptSanityFailure",
    "DecodeFailure",
    "TokenNotFound",
    "TokenExpired",
    "TokenStoreError",
    "ConfigurationError",
]
