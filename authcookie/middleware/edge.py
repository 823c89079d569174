"""
aiohttp integration for cookie authentication.

Two ways to put the dispatcher in front of a backend:

* ``AuthCookieMiddleware`` guards an aiohttp application directly. It
  rewrites the Authorization header, exposes the user as
  ``request["remote_user"]``, sets the token cookie and redirects denied
  requests to the logon page.
* ``create_auth_app`` builds a small service for reverse proxies that ask
  an external endpoint whether a request may pass (``auth_request``).
"""

import logging
from typing import Callable, Optional, Union
from urllib.parse import urlsplit

from aiohttp import hdrs, web

from ..core.config import AuthPolicy, LocationPolicies
from ..dispatch.dispatcher import AuthDecision, CookieDispatcher, DecisionKind
from ..util.encoding import url_escape


logger = logging.getLogger(__name__)

REMOTE_USER_KEY = "remote_user"
REMOTE_USER_HEADER = "X-Remote-User"
ORIGINAL_URL_HEADER = "X-Original-URL"

PolicyResolver = Callable[[web.Request], AuthPolicy]


def build_redirect_url(auth_url: str, self_url: str) -> str:
    """Append the escaped original URL to the logon page URL as ``url=``."""
    separator = "&url=" if "?" in auth_url else "?url="
    return f"{auth_url}{separator}{url_escape(self_url)}"


def local_redirect_target(url: Optional[str], host: Optional[str] = None,
                          default: str = "/") -> str:
    """
    Reduce a post-logon return URL to a path on this site.

    Relative paths are kept. Absolute http(s) URLs are kept only when
    their host equals ``host``, and are reduced to path and query. Anything
    else, including scheme-relative ``//host`` and backslash forms that
    browsers treat as such, yields ``default``.
    """
    if not url or "\\" in url or any(ord(c) < 0x20 for c in url):
        return default

    parts = urlsplit(url)
    if parts.scheme or parts.netloc:
        if parts.scheme not in ("http", "https") or not host or parts.netloc != host:
            return default
    elif not url.startswith("/") or url.startswith("//"):
        return default

    path = parts.path or "/"
    if path.startswith("//"):
        return default
    return f"{path}?{parts.query}" if parts.query else path


class AuthCookieMiddleware:
    """Cookie authentication middleware for aiohttp."""

    def __init__(self,
                 dispatcher: CookieDispatcher,
                 policy: Optional[AuthPolicy] = None,
                 policy_resolver: Optional[PolicyResolver] = None):
        """
        Initialize the middleware.

        Args:
            dispatcher: Cookie dispatcher
            policy: Policy applied to every request
            policy_resolver: Picks a policy per request (takes precedence)
        """
        if policy is None and policy_resolver is None:
            raise ValueError("Either policy or policy_resolver is required")

        self.dispatcher = dispatcher
        self.policy = policy
        self.policy_resolver = policy_resolver

    def resolve_policy(self, request: web.Request) -> AuthPolicy:
        if self.policy_resolver:
            return self.policy_resolver(request)
        return self.policy

    async def authenticate(self, request: web.Request) -> AuthDecision:
        """Run the dispatcher over the request's headers."""
        return await self.dispatcher.dispatch(
            request.headers.get(hdrs.COOKIE),
            request.headers.get(hdrs.AUTHORIZATION),
            self.resolve_policy(request),
        )

    @web.middleware
    async def middleware(self, request: web.Request, handler: Callable) -> web.StreamResponse:
        """aiohttp middleware handler."""
        decision = await self.authenticate(request)

        if decision.kind is DecisionKind.PASS_THROUGH:
            return await handler(request)

        if decision.should_redirect:
            location = build_redirect_url(decision.redirect_url, str(request.url))
            logger.debug(f"Redirecting to {decision.redirect_url}")
            raise web.HTTPTemporaryRedirect(location)

        headers = request.headers.copy()
        if decision.strip_authorization:
            headers.popall(hdrs.AUTHORIZATION, None)
        if decision.authenticated:
            headers[hdrs.AUTHORIZATION] = decision.authorization

        request = request.clone(headers=headers)
        request[REMOTE_USER_KEY] = decision.username

        response = await handler(request)

        if decision.set_cookie:
            response.headers.add(hdrs.SET_COOKIE, decision.set_cookie)

        return response


def create_auth_cookie_middleware(dispatcher: CookieDispatcher, **kwargs) -> Callable:
    """Create aiohttp cookie authentication middleware."""
    return AuthCookieMiddleware(dispatcher, **kwargs).middleware


class AuthRequestHandler:
    """Handlers of the ``auth_request`` service."""

    def __init__(self, dispatcher: CookieDispatcher,
                 policy: Union[AuthPolicy, LocationPolicies]):
        self.dispatcher = dispatcher
        self.policy = policy

    def resolve_policy(self, request: web.Request) -> AuthPolicy:
        """Pick the policy for the URL the proxy is asking about."""
        if isinstance(self.policy, LocationPolicies):
            original = request.headers.get(ORIGINAL_URL_HEADER)
            return self.policy.resolve(urlsplit(original).path if original else request.path)
        return self.policy

    async def auth(self, request: web.Request) -> web.Response:
        """
        Authenticate the request.

        Returns 200 with ``Authorization``, ``X-Remote-User`` and, for a
        freshly verified crypt cookie, ``Set-Cookie``; 401 when denied,
        with a ``Location`` header if a logon page is configured.
        """
        decision = await self.dispatcher.dispatch(
            request.headers.get(hdrs.COOKIE),
            request.headers.get(hdrs.AUTHORIZATION),
            self.resolve_policy(request),
        )

        if decision.kind is DecisionKind.PASS_THROUGH:
            return web.Response(status=200)

        if decision.kind is DecisionKind.DENIED:
            headers = {}
            if decision.should_redirect:
                self_url = request.headers.get(ORIGINAL_URL_HEADER, str(request.url))
                headers[hdrs.LOCATION] = build_redirect_url(decision.redirect_url, self_url)
            return web.Response(status=401, headers=headers)

        response = web.Response(status=200)
        response.headers[hdrs.AUTHORIZATION] = decision.authorization
        response.headers[REMOTE_USER_HEADER] = decision.username
        if decision.set_cookie:
            response.headers.add(hdrs.SET_COOKIE, decision.set_cookie)
        return response

    async def metrics(self, request: web.Request) -> web.Response:
        """Prometheus exposition of the dispatcher's metrics."""
        collector = self.dispatcher.metrics
        if collector is None:
            raise web.HTTPNotFound()

        await self.dispatcher.refresh_store_size()
        return web.Response(body=collector.export(),
                            headers={hdrs.CONTENT_TYPE: collector.content_type})


def create_auth_app(dispatcher: CookieDispatcher,
                    policy: Union[AuthPolicy, LocationPolicies]) -> web.Application:
    """
    Create the ``auth_request`` service.

    Routes:
        GET /auth     authenticate the forwarded request
        GET /metrics  Prometheus metrics (if the dispatcher has a collector)
    """
    policy.validate()
    handler = AuthRequestHandler(dispatcher, policy)

    app = web.Application()
    app.router.add_get("/auth", handler.auth)
    app.router.add_get("/metrics", handler.metrics)

    async def close_store(app: web.Application) -> None:
        await dispatcher.store.close()

    app.on_cleanup.append(close_store)
    return app
