"""
authcookie demo and helper commands.

    authcookie-demo walkthrough            run the cookie protocol end to end
    authcookie-demo mint USER PASSWORD     print a crypt cookie value
    authcookie-demo serve                  run the auth_request service

Secrets and cookie settings are read from ``AUTHCOOKIE_*`` environment
variables (see :meth:`authcookie.core.config.AuthPolicy.from_env`).
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from aiohttp import web

from authcookie.audit.logger import MemoryAuditLogger
from authcookie.core.config import AuthPolicy, LocationPolicies
from authcookie.crypto.digest import DigestScheme
from authcookie.crypto.encoder import encode_crypt_cookie
from authcookie.dispatch.dispatcher import CookieDispatcher
from authcookie.metrics.collector import MetricsCollector
from authcookie.middleware.edge import create_auth_app
from authcookie.tokenstore import DEFAULT_MAX_AGE, MemoryTokenStore, create_token_store
from authcookie.util.config import get_bool_config, get_int_config


DEMO_SECRET = "demo-secret"


async def walkthrough() -> None:
    """Issue a crypt cookie, trade it for a token and use the token."""
    print("authcookie demo")
    print("=" * 50)

    policy = AuthPolicy(
        cookie_name="auth",
        secret=DEMO_SECRET,
        timeout=3600,
        redirect_url="https://logon.example.com/login",
        cookie_options="Path=/; HttpOnly; Secure",
    )
    audit = MemoryAuditLogger()
    dispatcher = CookieDispatcher(create_token_store("memory"), audit_logger=audit)

    # 1. logon page hands over an encrypted credential
    crypt_value = encode_crypt_cookie("alice", "hunter2", DEMO_SECRET)
    print(f"✓ Logon page cookie: auth={crypt_value[:40]}...")

    decision = await dispatcher.dispatch(f"auth={crypt_value}", None, policy)
    print(f"✓ Crypt cookie verified for {decision.username}")
    print(f"  - Authorization: {decision.authorization}")
    print(f"  - Set-Cookie: {decision.set_cookie[:40]}...")

    # 2. browser comes back with the token cookie
    token_cookie = decision.set_cookie.split(";")[0]
    decision = await dispatcher.dispatch(token_cookie, None, policy)
    print(f"✓ Token accepted for {decision.username}")

    # 3. a forged cookie
    decision = await dispatcher.dispatch("auth=token:deadbeef", None, policy)
    print(f"✓ Forged token denied, redirect to {decision.redirect_url}")

    print()
    print("Audit trail:")
    for event in await audit.get_events():
        print(f"  - {event.event_type:<14} user={event.username} reason={event.reason}")


def mint(username: str, password: str, secret: Optional[str], scheme: str) -> str:
    policy_secret = secret or AuthPolicy.from_env().secret
    if not policy_secret:
        raise SystemExit("A secret is required (--secret or AUTHCOOKIE_SECRET)")
    return encode_crypt_cookie(username, password, policy_secret,
                               scheme=DigestScheme.parse(scheme))


def serve(host: str, port: int, store_kind: str,
          redis_address: Optional[str], config_file: Optional[str]) -> None:
    policy = LocationPolicies.from_file(config_file) if config_file else AuthPolicy.from_env()

    if store_kind == "redis":
        store = create_token_store(
            "redis",
            addresses=[redis_address or "localhost:6379"],
            fallback_to_memory=get_bool_config("redis_fallback", True),
        )
    else:
        store = create_token_store(
            "memory",
            max_entries=get_int_config("max_entries", 0) or None,
            max_age=get_int_config("max_age", DEFAULT_MAX_AGE),
        )

    dispatcher = CookieDispatcher(store, metrics=MetricsCollector())
    app = create_auth_app(dispatcher, policy)

    if isinstance(store, MemoryTokenStore):
        async def start_sweep(app: web.Application) -> None:
            await store.start()

        app.on_startup.append(start_sweep)

    web.run_app(app, host=host, port=port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authcookie-demo", description=__doc__,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("walkthrough", help="run the cookie protocol end to end")

    mint_parser = sub.add_parser("mint", help="print a crypt cookie value")
    mint_parser.add_argument("username")
    mint_parser.add_argument("password")
    mint_parser.add_argument("--secret", help="shared secret (default: AUTHCOOKIE_SECRET)")
    mint_parser.add_argument("--digest", default=DigestScheme.HMAC_SHA256.value,
                             choices=[s.value for s in DigestScheme])

    serve_parser = sub.add_parser("serve", help="run the auth_request service")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8080)
    serve_parser.add_argument("--store", choices=["memory", "redis"], default="memory")
    serve_parser.add_argument("--redis", help="Redis address host:port")
    serve_parser.add_argument("--config", help="JSON or YAML file with per-location policies")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "mint":
        print(mint(args.username, args.password, args.secret, args.digest))
    elif args.command == "serve":
        serve(args.host, args.port, args.store, args.redis, args.config)
    else:
        asyncio.run(walkthrough())
    return 0


if __name__ == "__main__":
    sys.exit(main())
