"""
HTTP integration for authcookie.
"""

from .edge import (
    REMOTE_USER_KEY,
    REMOTE_USER_HEADER,
    ORIGINAL_URL_HEADER,
    build_redirect_url,
    local_redirect_target,
    AuthCookieMiddleware,
    create_auth_cookie_middleware,
    AuthRequestHandler,
    create_auth_app,
)

__all__ = [
    "REMOTE_USER_KEY",
    "REMOTE_USER_HEADER",
    "ORIGINAL_URL_HEADER",
    "build_redirect_url",
    "local_redirect_target",
    "AuthCookieMiddleware",
    "create_auth_cookie_middleware",
    "AuthRequestHandler",
    "create_auth_app",
]
