"""
Cookie protocol dispatcher.

Entry point of the core: given the raw Cookie header, any Authorization
header already on the request and the resolved policy, decide whether the
request is authenticated. Per request the flow is::

    Start -> CookieLocated -> PayloadParsed -> {TokenPath | CryptPath}
          -> Authenticated | Denied

Every failure collapses into a single ``DENIED`` decision. The reason is
kept on the decision for audit logging and metrics only.
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from ..audit.logger import AuditEvent, AuditLogger
from ..auth.credentials import decode_credential
from ..auth.issuer import TokenIssuer
from ..core.config import AuthPolicy, OverrideMode
from ..crypto.window import decrypt_blob
from ..errors import (
    AuthCookieError,
    DecryptSanityFailure,
    ErrorCode,
    MissingCookie,
    TokenExpired,
    TokenNotFound,
)
from ..metrics.collector import MetricsCollector
from ..tokenstore.store import LookupStatus, TokenStore
from ..util.encoding import mask_sensitive_data
from .cookies import find_cookie
from .payload import EncryptedCredential, TokenReference, parse_payload


logger = logging.getLogger(__name__)


class DecisionKind(Enum):
    """Outcome of dispatching one request."""

    AUTHENTICATED = "authenticated"
    DENIED = "denied"
    PASS_THROUGH = "pass_through"


@dataclass(frozen=True)
class AuthDecision:
    """
    Decision for one request.

    Attributes:
        kind: Outcome
        authorization: Authorization header value to attach downstream
        username: Authenticated identity
        set_cookie: Set-Cookie value for a newly issued token (crypt path only)
        strip_authorization: Drop the incoming Authorization header
        redirect_url: Where the host should redirect a denied request;
            None means continue unauthenticated
        reason: Why the request was denied; never sent to the client
    """

    kind: DecisionKind
    authorization: Optional[str] = None
    username: Optional[str] = None
    set_cookie: Optional[str] = None
    strip_authorization: bool = False
    redirect_url: Optional[str] = None
    reason: Optional[ErrorCode] = None

    @property
    def authenticated(self) -> bool:
        return self.kind is DecisionKind.AUTHENTICATED

    @property
    def should_redirect(self) -> bool:
        return self.kind is DecisionKind.DENIED and self.redirect_url is not None


class CookieDispatcher:
    """Routes a cookie to token lookup or crypt verification."""

    def __init__(self,
                 store: TokenStore,
                 audit_logger: Optional[AuditLogger] = None,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the dispatcher.

        Args:
            store: Token store shared by all requests
            audit_logger: Receives one event per decision
            metrics: Counts decisions and issued tokens
            clock: Source of the current time in seconds
        """
        self.store = store
        self.issuer = TokenIssuer(store)
        self.audit_logger = audit_logger
        self.metrics = metrics
        self._clock = clock

    async def dispatch(self,
                       cookie_header: Optional[str],
                       authorization: Optional[str],
                       policy: AuthPolicy) -> AuthDecision:
        """
        Authenticate a request from its Cookie header.

        Args:
            cookie_header: Raw Cookie header, if any
            authorization: Authorization header already on the request, if any
            policy: Resolved policy for this request

        Returns:
            AuthDecision; this method does not raise
        """
        started = time.perf_counter()
        path = None
        strip = False

        try:
            if not policy.enabled:
                decision = AuthDecision(DecisionKind.PASS_THROUGH)
            elif authorization and policy.override is OverrideMode.USE_EXISTING:
                logger.debug("Authorization header present, using it as is")
                decision = AuthDecision(DecisionKind.PASS_THROUGH)
            else:
                strip = bool(authorization) and policy.override is OverrideMode.COOKIE_ONLY
                raw = find_cookie(cookie_header, policy.cookie_name)
                if raw is None:
                    raise MissingCookie(f"No {policy.cookie_name} entry in cookie")

                payload = parse_payload(raw)
                if isinstance(payload, TokenReference):
                    path = "token"
                    decision = await self._handle_token(payload, policy)
                else:
                    path = "crypt"
                    decision = await self._handle_crypt(payload, policy)

                if strip:
                    decision = replace(decision, strip_authorization=True)

        except AuthCookieError as e:
            decision = self._deny(policy, e.code, strip)
            logger.info(f"Denied ({e.code.value}): {e.message}")
        except Exception:
            logger.exception("Unexpected error while dispatching cookie")
            decision = self._deny(policy, ErrorCode.INTERNAL_ERROR, strip)

        await self._record(decision, path, time.perf_counter() - started)
        return decision

    def _deny(self, policy: AuthPolicy, reason: ErrorCode, strip: bool) -> AuthDecision:
        if policy.redirect_url:
            logger.debug(f"Denied, redirecting to {policy.redirect_url}")
        else:
            logger.debug("Denied, continuing unauthenticated")

        return AuthDecision(
            kind=DecisionKind.DENIED,
            strip_authorization=strip,
            redirect_url=policy.redirect_url,
            reason=reason,
        )

    async def _handle_token(self, payload: TokenReference, policy: AuthPolicy) -> AuthDecision:
        result = await self.store.lookup(payload.token, policy.timeout)
        masked = mask_sensitive_data(payload.token)

        if result.status is LookupStatus.NOT_FOUND:
            raise TokenNotFound(f"Unknown token {masked}")
        if result.status is LookupStatus.EXPIRED:
            raise TokenExpired(f"Token {masked} is older than {policy.timeout}s")

        authinfo = result.record.credential
        credential = decode_credential(authinfo)
        logger.debug(f"Identified user {credential.username} by token {masked}")

        return AuthDecision(
            kind=DecisionKind.AUTHENTICATED,
            authorization=f"Basic {authinfo}",
            username=credential.username,
        )

    async def _handle_crypt(self, payload: EncryptedCredential, policy: AuthPolicy) -> AuthDecision:
        logger.debug("Verifying crypt cookie")
        try:
            plaintext = decrypt_blob(policy.secret, payload.digest_hex,
                                     payload.ciphertext_hex, self._clock(),
                                     policy.digest_scheme)
        except DecryptSanityFailure:
            logger.warning("Decryption error")
            raise

        credential = decode_credential(plaintext)
        issued = await self.issuer.issue(credential, policy)
        if self.metrics:
            self.metrics.record_token_issued()
        logger.debug(f"Identified user {credential.username} by crypt cookie")

        return AuthDecision(
            kind=DecisionKind.AUTHENTICATED,
            authorization=issued.authorization,
            username=credential.username,
            set_cookie=issued.set_cookie,
        )

    async def _record(self, decision: AuthDecision, path: Optional[str], duration: float) -> None:
        reason = decision.reason.value if decision.reason else None

        if self.metrics:
            self.metrics.record_decision(decision.kind.value, reason, duration)

        if self.audit_logger:
            details = {"path": path} if path else {}
            if decision.set_cookie:
                details["token_issued"] = True
            await self.audit_logger.log(AuditEvent(
                event_type=decision.kind.value,
                username=decision.username,
                reason=reason,
                details=details,
            ))

    async def refresh_store_size(self) -> int:
        """Update the store size gauge and return the current count."""
        size = await self.store.count()
        if self.metrics:
            self.metrics.set_store_size(size)
        return size
