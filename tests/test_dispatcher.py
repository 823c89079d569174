"""
Tests for the cookie protocol dispatcher.
"""

from unittest.mock import AsyncMock

import pytest

from authcookie.audit.logger import MemoryAuditLogger
from authcookie.core.config import OverrideMode
from authcookie.crypto import DigestScheme, derive_key, encode_crypt_cookie, encrypt, verification_digest
from authcookie.dispatch import CookieDispatcher, DecisionKind
from authcookie.errors import ErrorCode, TokenStoreError
from authcookie.metrics.collector import MetricsCollector
from authcookie.util.encoding import base64_encode, hex_encode

from .conftest import SECRET, T0


BASIC_ALICE = "Basic " + base64_encode("alice:hunter2")


def crypt_cookie(username="alice", password="hunter2", now=T0, **kwargs):
    return "auth=" + encode_crypt_cookie(username, password, SECRET, now=now, **kwargs)


def forged_crypt_cookie(plaintext: bytes, now=T0):
    """Correctly signed blob around an arbitrary plaintext."""
    label = str(now)
    ciphertext_hex = hex_encode(encrypt(plaintext, derive_key(label, SECRET)))
    digest_hex = hex_encode(verification_digest(SECRET, label, ciphertext_hex))
    return f"auth=crypt:{digest_hex}:{ciphertext_hex}"


@pytest.fixture
def dispatcher(store, clock):
    clock.advance(3)
    return CookieDispatcher(store, clock=clock)


class TestCryptPath:
    """Encrypted credential cookies."""

    @pytest.mark.asyncio
    async def test_authenticates_and_issues_token(self, dispatcher, policy, store):
        decision = await dispatcher.dispatch(crypt_cookie(), None, policy)

        assert decision.kind is DecisionKind.AUTHENTICATED
        assert decision.authenticated
        assert decision.username == "alice"
        assert decision.authorization == BASIC_ALICE
        assert decision.set_cookie.startswith("auth=token:")
        assert decision.set_cookie.endswith("; Path=/; HttpOnly")
        assert decision.reason is None
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_issued_token_authenticates(self, dispatcher, policy):
        first = await dispatcher.dispatch(crypt_cookie(), None, policy)
        token_cookie = first.set_cookie.split(";")[0]

        decision = await dispatcher.dispatch(f"lang=en; {token_cookie}", None, policy)

        assert decision.authenticated
        assert decision.username == "alice"
        assert decision.authorization == BASIC_ALICE
        assert decision.set_cookie is None

    @pytest.mark.asyncio
    async def test_unescaped_cookie_value(self, dispatcher, policy):
        cookie = crypt_cookie().replace("%3A", ":")
        decision = await dispatcher.dispatch(cookie, None, policy)
        assert decision.authenticated

    @pytest.mark.asyncio
    async def test_stale_blob(self, dispatcher, policy, clock):
        clock.advance(12)
        decision = await dispatcher.dispatch(crypt_cookie(), None, policy)

        assert decision.kind is DecisionKind.DENIED
        assert decision.reason is ErrorCode.DIGEST_MISMATCH

    @pytest.mark.asyncio
    async def test_non_printable_plaintext(self, dispatcher, policy, store):
        decision = await dispatcher.dispatch(forged_crypt_cookie(b"YWxp\x01Y2U="), None, policy)

        assert decision.reason is ErrorCode.DECRYPT_SANITY_FAILURE
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_plaintext_without_delimiter(self, dispatcher, policy, store):
        plaintext = base64_encode("nocolon").encode("ascii")
        decision = await dispatcher.dispatch(forged_crypt_cookie(plaintext), None, policy)

        assert decision.reason is ErrorCode.DECODE_FAILURE
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_legacy_md5(self, dispatcher, policy):
        md5_policy = policy.with_overrides(digest_scheme=DigestScheme.LEGACY_MD5)
        cookie = crypt_cookie(scheme=DigestScheme.LEGACY_MD5)

        assert (await dispatcher.dispatch(cookie, None, md5_policy)).authenticated
        assert (await dispatcher.dispatch(cookie, None, policy)).reason is ErrorCode.DIGEST_MISMATCH


class TestTokenPath:
    """Token reference cookies."""

    @pytest.mark.asyncio
    async def test_unknown_token(self, dispatcher, policy):
        decision = await dispatcher.dispatch("auth=token:deadbeef", None, policy)

        assert decision.kind is DecisionKind.DENIED
        assert decision.reason is ErrorCode.TOKEN_NOT_FOUND
        assert not decision.should_redirect

    @pytest.mark.asyncio
    async def test_expired_token(self, dispatcher, policy, clock):
        first = await dispatcher.dispatch(crypt_cookie(), None, policy)
        token_cookie = first.set_cookie.split(";")[0]
        clock.advance(policy.timeout + 1)

        decision = await dispatcher.dispatch(token_cookie, None, policy)
        assert decision.reason is ErrorCode.TOKEN_EXPIRED

    @pytest.mark.asyncio
    async def test_short_timeout_location_keeps_token_for_others(self, dispatcher, policy, clock):
        long_policy = policy.with_overrides(timeout=3600)
        short_policy = policy.with_overrides(timeout=600)
        first = await dispatcher.dispatch(crypt_cookie(), None, long_policy)
        token_cookie = first.set_cookie.split(";")[0]
        clock.advance(15 * 60)

        decision = await dispatcher.dispatch(token_cookie, None, short_policy)
        assert decision.reason is ErrorCode.TOKEN_EXPIRED

        decision = await dispatcher.dispatch(token_cookie, None, long_policy)
        assert decision.authenticated
        assert decision.username == "alice"

    @pytest.mark.asyncio
    async def test_non_hex_token_skips_store(self, policy):
        store = AsyncMock()
        dispatcher = CookieDispatcher(store)

        decision = await dispatcher.dispatch("auth=token:..%2Fadmin", None, policy)

        assert decision.reason is ErrorCode.MALFORMED_PAYLOAD
        store.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure(self, policy):
        store = AsyncMock()
        store.lookup.side_effect = TokenStoreError("redis down")
        dispatcher = CookieDispatcher(store)

        decision = await dispatcher.dispatch("auth=token:abcd", None, policy)
        assert decision.reason is ErrorCode.STORAGE_ERROR

    @pytest.mark.asyncio
    async def test_unexpected_error_is_denied(self, policy):
        store = AsyncMock()
        store.lookup.side_effect = RuntimeError("bug")
        dispatcher = CookieDispatcher(store)

        decision = await dispatcher.dispatch("auth=token:abcd", None, policy)
        assert decision.kind is DecisionKind.DENIED
        assert decision.reason is ErrorCode.INTERNAL_ERROR


class TestDenial:
    """Missing and malformed cookies, redirects."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "lang=en", "authx=token:abc"])
    async def test_missing_cookie(self, dispatcher, policy, header):
        decision = await dispatcher.dispatch(header, None, policy)
        assert decision.reason is ErrorCode.MISSING_COOKIE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["bogus", "basic:abc", "token:", "crypt:xyz:00"])
    async def test_malformed_cookie(self, dispatcher, policy, value):
        decision = await dispatcher.dispatch(f"auth={value}", None, policy)
        assert decision.reason is ErrorCode.MALFORMED_PAYLOAD

    @pytest.mark.asyncio
    async def test_redirect_when_configured(self, dispatcher, policy):
        policy = policy.with_overrides(redirect_url="https://logon.example.com/login")
        decision = await dispatcher.dispatch(None, None, policy)

        assert decision.should_redirect
        assert decision.redirect_url == "https://logon.example.com/login"

    @pytest.mark.asyncio
    async def test_disabled_policy_passes_through(self, dispatcher, policy):
        decision = await dispatcher.dispatch(crypt_cookie(), None, policy.with_overrides(cookie_name=""))
        assert decision.kind is DecisionKind.PASS_THROUGH


class TestOverrideModes:
    """Handling of an Authorization header already on the request."""

    @pytest.mark.asyncio
    async def test_use_existing_with_header(self, dispatcher, policy):
        policy = policy.with_overrides(override=OverrideMode.USE_EXISTING)
        decision = await dispatcher.dispatch(crypt_cookie(), "Basic Ym9iOnB3", policy)

        assert decision.kind is DecisionKind.PASS_THROUGH
        assert not decision.strip_authorization

    @pytest.mark.asyncio
    async def test_use_existing_without_header(self, dispatcher, policy):
        policy = policy.with_overrides(override=OverrideMode.USE_EXISTING)
        decision = await dispatcher.dispatch(crypt_cookie(), None, policy)
        assert decision.authenticated

    @pytest.mark.asyncio
    async def test_prefer_cookie(self, dispatcher, policy):
        policy = policy.with_overrides(override=OverrideMode.PREFER_COOKIE)

        decision = await dispatcher.dispatch(crypt_cookie(), "Basic Ym9iOnB3", policy)
        assert decision.authenticated
        assert not decision.strip_authorization

        decision = await dispatcher.dispatch("auth=token:abcd", "Basic Ym9iOnB3", policy)
        assert decision.kind is DecisionKind.DENIED
        assert not decision.strip_authorization

    @pytest.mark.asyncio
    async def test_cookie_only_strips_header(self, dispatcher, policy):
        assert policy.override is OverrideMode.COOKIE_ONLY

        decision = await dispatcher.dispatch(crypt_cookie(), "Basic Ym9iOnB3", policy)
        assert decision.authenticated
        assert decision.strip_authorization

        decision = await dispatcher.dispatch(None, "Basic Ym9iOnB3", policy)
        assert decision.kind is DecisionKind.DENIED
        assert decision.strip_authorization

    @pytest.mark.asyncio
    async def test_cookie_only_without_header(self, dispatcher, policy):
        decision = await dispatcher.dispatch(crypt_cookie(), None, policy)
        assert not decision.strip_authorization


class TestObservability:
    """Audit events and metrics."""

    @pytest.mark.asyncio
    async def test_audit_events(self, store, clock, policy):
        clock.advance(3)
        audit = MemoryAuditLogger()
        dispatcher = CookieDispatcher(store, audit_logger=audit, clock=clock)

        await dispatcher.dispatch(crypt_cookie(), None, policy)
        await dispatcher.dispatch("auth=token:abcd", None, policy)

        authenticated = await audit.get_events(event_type="authenticated")
        assert len(authenticated) == 1
        assert authenticated[0].username == "alice"
        assert authenticated[0].details == {"path": "crypt", "token_issued": True}

        denied = await audit.get_events(event_type="denied")
        assert len(denied) == 1
        assert denied[0].reason == "token_not_found"
        assert denied[0].details == {"path": "token"}

    @pytest.mark.asyncio
    async def test_audit_never_records_secret(self, store, clock, policy):
        clock.advance(3)
        audit = MemoryAuditLogger()
        dispatcher = CookieDispatcher(store, audit_logger=audit, clock=clock)

        await dispatcher.dispatch(crypt_cookie(), None, policy)

        event = (await audit.get_events())[0]
        assert "hunter2" not in str(event.to_dict())

    @pytest.mark.asyncio
    async def test_metrics(self, store, clock, policy):
        clock.advance(3)
        metrics = MetricsCollector()
        dispatcher = CookieDispatcher(store, metrics=metrics, clock=clock)

        await dispatcher.dispatch(crypt_cookie(), None, policy)
        await dispatcher.dispatch(None, None, policy)
        await dispatcher.refresh_store_size()

        registry = metrics.registry
        assert registry.get_sample_value(
            "authcookie_decisions_total", {"kind": "authenticated", "reason": "none"}) == 1.0
        assert registry.get_sample_value(
            "authcookie_decisions_total", {"kind": "denied", "reason": "missing_cookie"}) == 1.0
        assert registry.get_sample_value("authcookie_tokens_issued_total") == 1.0
        assert registry.get_sample_value("authcookie_token_store_size") == 1.0
        assert registry.get_sample_value(
            "authcookie_dispatch_duration_seconds_count", {"kind": "denied"}) == 1.0
