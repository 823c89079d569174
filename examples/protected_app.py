"""
aiohttp application behind cookie authentication.

The app plays both roles: ``/login`` is the logon page that mints the
encrypted credential cookie, everything else sits behind the middleware
and only ever sees a Basic Authorization header.

    python examples/protected_app.py
    open http://127.0.0.1:8080/
"""

import html
import logging
from pathlib import Path

from aiohttp import web

from authcookie import CookieDispatcher, LocationPolicies, encode_crypt_cookie
from authcookie.audit import create_audit_logger
from authcookie.middleware import REMOTE_USER_KEY, create_auth_cookie_middleware, local_redirect_target
from authcookie.tokenstore import MemoryTokenStore


POLICIES = LocationPolicies.from_file(str(Path(__file__).with_name("locations.yaml")))

LOGIN_FORM = """<form method="post">
  <input name="username" placeholder="username">
  <input name="password" type="password" placeholder="password">
  <input type="hidden" name="url" value="{url}">
  <button>Log in</button>
</form>"""


async def login_page(request: web.Request) -> web.Response:
    return web.Response(text=LOGIN_FORM.format(url=html.escape(request.query.get("url", "/"))),
                        content_type="text/html")


async def login(request: web.Request) -> web.Response:
    form = await request.post()
    policy = POLICIES.default

    # a real logon page checks the password against its user store here
    value = encode_crypt_cookie(form["username"], form["password"], policy.secret,
                                scheme=policy.digest_scheme)

    response = web.HTTPSeeOther(local_redirect_target(form.get("url"), host=request.host))
    response.headers.add("Set-Cookie", f"{policy.cookie_name}={value}; Path=/")
    raise response


async def index(request: web.Request) -> web.Response:
    return web.Response(text=f"Hello {request[REMOTE_USER_KEY]}\n"
                             f"Authorization: {request.headers.get('Authorization')}\n")


async def admin(request: web.Request) -> web.Response:
    return web.Response(text=f"Admin area for {request[REMOTE_USER_KEY]}\n")


def create_app() -> web.Application:
    POLICIES.validate()
    store = MemoryTokenStore(max_entries=10000)
    dispatcher = CookieDispatcher(store, audit_logger=create_audit_logger("memory"))

    app = web.Application(middlewares=[
        create_auth_cookie_middleware(dispatcher, policy_resolver=POLICIES)])

    async def start_store(app: web.Application) -> None:
        await store.start()

    app.on_startup.append(start_store)

    app.router.add_get("/login", login_page)
    app.router.add_post("/login", login)
    app.router.add_get("/", index)
    app.router.add_get("/admin", admin)
    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    web.run_app(create_app(), host="127.0.0.1", port=8080)
