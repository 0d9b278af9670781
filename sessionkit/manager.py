"""Session manager: configuration, loading and iteration."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from .codec import Codec, JSONCodec
from .config import Settings, get_settings
from .cookie import SessionCookie, build_delete_cookie, build_set_cookie
from .data import SessionData, Status
from .errors import SessionError, StoreNotIterableError
from .store import IterableStore, MemoryStore, Store, create_store
from .token import hash_token

logger = logging.getLogger(__name__)

LIFETIME = timedelta(hours=24)


class SessionManager:
    """Process-wide session configuration and the entry point for loading.

    The manager holds no per-request state and is safe to share across
    concurrent requests once constructed.
    """

    def __init__(
        self,
        store: Store | None = None,
        *,
        lifetime: timedelta = LIFETIME,
        idle_timeout: timedelta | None = None,
        cookie: SessionCookie | None = None,
        codec: Codec | None = None,
        hash_token_in_store: bool = False,
    ) -> None:
        if lifetime <= timedelta(0):
            raise ValueError("lifetime must be positive")
        self.store: Store = store if store is not None else MemoryStore()
        self.lifetime = lifetime
        # A zero idle timeout means none.
        self.idle_timeout = idle_timeout or None
        self.cookie = cookie or SessionCookie()
        self.codec: Codec = codec or JSONCodec()
        self.hash_token_in_store = hash_token_in_store

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, store: Store | None = None
    ) -> SessionManager:
        """Build a manager (and, unless given, a store) from configuration."""
        s = settings or get_settings()
        return cls(
            store if store is not None else create_store(s),
            lifetime=s.lifetime,
            idle_timeout=s.idle_timeout,
            cookie=s.cookie(),
            hash_token_in_store=s.hash_token_in_store,
        )

    def store_key(self, token: str) -> str:
        """The key under which ``token`` is kept in the store."""
        return hash_token(token) if self.hash_token_in_store else token

    def expiry_for(self, deadline: datetime) -> datetime:
        """Effective store expiry: the deadline, capped by the idle timeout."""
        if self.idle_timeout is None:
            return deadline
        return min(deadline, datetime.now(timezone.utc) + self.idle_timeout)

    def new_session(self) -> SessionData:
        return SessionData(self)

    async def load(self, token: str | None) -> SessionData:
        """Load the session for ``token``.

        An empty, unknown or expired token yields a fresh empty session.
        Store errors and undecodable records propagate.
        """
        if not token:
            return self.new_session()

        blob = await self.store.find(self.store_key(token))
        if blob is None:
            logger.debug("Session not found; starting a new one")
            return self.new_session()

        deadline, values = self.codec.decode(blob)
        if datetime.now(timezone.utc) >= deadline:
            logger.debug("Session past its deadline; starting a new one")
            return self.new_session()

        return SessionData(self, token=token, values=values, deadline=deadline)

    async def iterate(self, fn: Callable[[SessionData], Awaitable[Any]]) -> None:
        """Run ``fn`` against every active session, committing changes.

        Sessions are visited one at a time. An exception from ``fn`` stops
        the iteration and propagates. Requires an ``IterableStore`` and raw
        (unhashed) store keys.
        """
        if not isinstance(self.store, IterableStore):
            raise StoreNotIterableError(self.store)
        if self.hash_token_in_store:
            raise SessionError("cannot iterate sessions when tokens are hashed in the store")

        sessions = await self.store.all()
        for token, blob in sessions.items():
            deadline, values = self.codec.decode(blob)
            session = SessionData(self, token=token, values=values, deadline=deadline)
            await fn(session)
            if session.status is Status.MODIFIED:
                await session.commit()

    # ── Cookies ───────────────────────────────────────────────────────────

    def session_cookie(self, session: SessionData, value: str, expiry: datetime) -> str:
        """Set-Cookie header value carrying ``value`` for ``session``."""
        persist = self.cookie.persist or session.remembered
        return build_set_cookie(self.cookie, value, expiry, persist=persist)

    def expired_cookie(self) -> str:
        """Set-Cookie header value that deletes the session cookie."""
        return build_delete_cookie(self.cookie)
