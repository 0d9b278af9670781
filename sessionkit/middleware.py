"""ASGI server-side session middleware.

Reads the session token from a cookie, loads the session through a
SessionManager and attaches it to ``request.state.session``. The commit
decision is deferred until the application starts its response: the
``http.response.start`` message is intercepted so the Set-Cookie header can
still be added once the handler has finished changing the session.
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Union

from itsdangerous import BadSignature, URLSafeTimedSerializer
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .config import get_settings
from .data import SessionData, Status
from .manager import SessionManager

logger = logging.getLogger(__name__)

STATE_KEY = "session"

ErrorHandler = Callable[[HTTPConnection, Exception], Union[Response, Awaitable[Response]]]


def default_error_handler(conn: HTTPConnection, exc: Exception) -> Response:
    logger.error("Session error on %s %s: %r", conn.scope.get("method", "WS"), conn.url.path, exc)
    return PlainTextResponse("Internal Server Error", status_code=500)


class SessionMiddleware:
    """ASGI middleware that loads and saves server-side sessions.

    Args:
        app: The wrapped ASGI application.
        manager: Session configuration and store. Defaults to one built
            from ``get_settings()``, which also supplies ``secret``.
        secret: When set, cookie values are signed with itsdangerous and
            cookies with a bad signature are treated as absent.
        on_error: Called with the connection and exception when loading or
            committing fails; returns the response to send instead.
    """

    def __init__(
        self,
        app: ASGIApp,
        manager: SessionManager | None = None,
        secret: str | None = None,
        on_error: ErrorHandler | None = None,
        state_key: str = STATE_KEY,
    ) -> None:
        if manager is None:
            settings = get_settings()
            manager = SessionManager.from_settings(settings)
            if secret is None:
                secret = settings.secret or None
        self.app = app
        self.manager = manager
        self.signer = URLSafeTimedSerializer(secret, salt="sessionkit.token") if secret else None
        self.on_error = on_error or default_error_handler
        self.state_key = state_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        scope["state"] = scope.get("state", {})
        if self.state_key in scope["state"]:
            # Already loaded by an outer instance.
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        try:
            session = await self.manager.load(self._load_token(conn))
        except Exception as e:
            await self._send_error(conn, receive, send, e)
            return

        scope["state"][self.state_key] = session
        written = False
        failed = False

        async def send_wrapper(message: Message) -> None:
            nonlocal written, failed
            if failed:
                return

            if not written and message["type"] in ("http.response.start", "websocket.accept"):
                written = True
                try:
                    cookie = await self._save(session)
                except Exception as e:
                    failed = True
                    await self._send_error(conn, receive, send, e)
                    return

                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                headers.add_vary_header("Cookie")
                if cookie is not None:
                    headers.append("set-cookie", cookie)
                    headers.append("cache-control", 'no-cache="Set-Cookie"')

            await send(message)

        await self.app(scope, receive, send_wrapper)

        if not written and scope["type"] == "http":
            # The app never responded; persist anyway.
            written = True
            await self._save(session)

    async def _save(self, session: SessionData) -> str | None:
        """Commit or destroy per the session status; return the cookie to set."""
        try:
            if session.status is Status.DESTROYED:
                return self.manager.expired_cookie()
            if not session.pending:
                return None
            token, expiry = await session.commit()
            return self.manager.session_cookie(session, self._dump_token(token), expiry)
        finally:
            session._mark_written()

    async def _send_error(
        self, conn: HTTPConnection, receive: Receive, send: Send, exc: Exception
    ) -> None:
        if conn.scope["type"] == "websocket":
            logger.error("Session error on websocket %s: %r", conn.url.path, exc)
            await send({"type": "websocket.close", "code": 1011})
            return
        response = self.on_error(conn, exc)
        if inspect.isawaitable(response):
            response = await response
        await response(conn.scope, receive, send)

    def _load_token(self, conn: HTTPConnection) -> str | None:
        raw = conn.cookies.get(self.manager.cookie.name)
        if not raw:
            return None
        if self.signer is None:
            return raw
        # Expiry is governed by the stored deadline, not the signature age.
        try:
            return self.signer.loads(raw)
        except BadSignature:
            return None

    def _dump_token(self, token: str) -> str:
        if self.signer is None:
            return token
        return self.signer.dumps(token)
