"""Request-scoped session data.

A ``SessionData`` is created by ``SessionManager.load`` for every request and
bound to ``request.state.session`` by the middleware. Reads and writes go
straight to an in-memory dict; nothing reaches the store until ``commit``
(normally called by the middleware just before the response headers are
sent).

Sync handlers run in a thread pool and handlers may fan work out to tasks,
so all state is guarded by a re-entrant lock. Lifecycle operations that
await the store are additionally serialized by an ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from .errors import SessionAlreadyWrittenError, TypeAssertionError
from .token import generate_token

if TYPE_CHECKING:
    from .manager import SessionManager

logger = logging.getLogger(__name__)

REMEMBER_ME_KEY = "__rememberMe"


class Status(enum.IntEnum):
    UNMODIFIED = 0
    MODIFIED = 1
    DESTROYED = 2


class SessionData:
    """Token, values, deadline and modification status of one session."""

    def __init__(
        self,
        manager: SessionManager,
        *,
        token: str = "",
        values: dict[str, Any] | None = None,
        deadline: datetime | None = None,
    ) -> None:
        self._manager = manager
        self._token = token
        self._values: dict[str, Any] = dict(values or {})
        self._deadline = deadline or _now() + manager.lifetime
        self._status = Status.UNMODIFIED
        self._written = False
        self._lock = threading.RLock()
        self._commit_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<SessionData status={self._status.name} keys={len(self._values)}>"

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def token(self) -> str:
        """The session token; empty until the session is first committed."""
        with self._lock:
            return self._token

    @property
    def deadline(self) -> datetime:
        """Absolute expiry, independent of activity."""
        with self._lock:
            return self._deadline

    @property
    def status(self) -> Status:
        with self._lock:
            return self._status

    @property
    def pending(self) -> bool:
        """True when ``commit`` would write to the store.

        Modified sessions are always written. With an idle timeout, an
        existing session is rewritten on every request so that its expiry
        slides forward.
        """
        with self._lock:
            if self._status is Status.MODIFIED:
                return True
            return (
                self._status is Status.UNMODIFIED
                and bool(self._token)
                and self._manager.idle_timeout is not None
            )

    @property
    def remembered(self) -> bool:
        with self._lock:
            return self._values.get(REMEMBER_ME_KEY) is True

    def set_deadline(self, deadline: datetime) -> None:
        """Override the absolute expiry of this session.

        A naive ``deadline`` is taken to be UTC.
        """
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        with self._lock:
            self._ensure_writable()
            self._deadline = deadline
            self._status = Status.MODIFIED

    def remember_me(self, value: bool = True) -> None:
        """Persist the cookie beyond the browser session for this session only.

        Only meaningful when the manager's cookie is not persistent already.
        """
        self.put(REMEMBER_ME_KEY, value)

    # ── Values ────────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def put(self, key: str, value: Any) -> None:
        """Add or replace a value."""
        with self._lock:
            self._ensure_writable()
            self._values[key] = value
            self._status = Status.MODIFIED

    def pop(self, key: str, default: Any = None) -> Any:
        """Remove a value and return it, or ``default`` if absent."""
        with self._lock:
            self._ensure_writable()
            if key not in self._values:
                return default
            self._status = Status.MODIFIED
            return self._values.pop(key)

    def remove(self, key: str) -> None:
        """Delete a value. Removing a missing key leaves the session unmodified."""
        with self._lock:
            self._ensure_writable()
            if key in self._values:
                del self._values[key]
                self._status = Status.MODIFIED

    def clear(self) -> None:
        """Remove all values. The token and deadline are unaffected."""
        with self._lock:
            self._ensure_writable()
            self._values.clear()
            self._status = Status.MODIFIED

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def keys(self) -> list[str]:
        """All keys, sorted."""
        with self._lock:
            return sorted(self._values)

    def values(self) -> dict[str, Any]:
        """A shallow copy of all values."""
        with self._lock:
            return dict(self._values)

    # ── Typed accessors ───────────────────────────────────────────────────
    #
    # Missing keys yield the zero value; a value of the wrong type raises
    # TypeAssertionError and is left in place.

    def get_string(self, key: str) -> str:
        return self._typed(key, "str", _is_str, "")

    def get_bool(self, key: str) -> bool:
        return self._typed(key, "bool", _is_bool, False)

    def get_int(self, key: str) -> int:
        return self._typed(key, "int", _is_int, 0)

    def get_float(self, key: str) -> float:
        return self._typed(key, "float", _is_float, 0.0)

    def get_bytes(self, key: str) -> bytes:
        return bytes(self._typed(key, "bytes", _is_bytes, b""))

    def get_time(self, key: str) -> datetime | None:
        return self._typed(key, "datetime", _is_time, None)

    def pop_string(self, key: str) -> str:
        return self._typed(key, "str", _is_str, "", pop=True)

    def pop_bool(self, key: str) -> bool:
        return self._typed(key, "bool", _is_bool, False, pop=True)

    def pop_int(self, key: str) -> int:
        return self._typed(key, "int", _is_int, 0, pop=True)

    def pop_float(self, key: str) -> float:
        return self._typed(key, "float", _is_float, 0.0, pop=True)

    def pop_bytes(self, key: str) -> bytes:
        return bytes(self._typed(key, "bytes", _is_bytes, b"", pop=True))

    def pop_time(self, key: str) -> datetime | None:
        return self._typed(key, "datetime", _is_time, None, pop=True)

    def _typed(
        self,
        key: str,
        expected: str,
        check: Callable[[Any], bool],
        zero: Any,
        *,
        pop: bool = False,
    ) -> Any:
        with self._lock:
            if pop:
                self._ensure_writable()
            if key not in self._values:
                return zero
            value = self._values[key]
            if not check(value):
                raise TypeAssertionError(key, expected, value)
            if pop:
                del self._values[key]
                self._status = Status.MODIFIED
            return value

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def commit(self) -> tuple[str, datetime]:
        """Write the session to the store.

        Generates a token for new sessions. Returns the token and the
        effective expiry (the deadline, capped by the idle timeout). When
        there is nothing to persist the store is not touched.
        """
        manager = self._manager
        async with self._commit_lock:
            with self._lock:
                if not self.pending:
                    return self._token, self._deadline
                blob = manager.codec.encode(self._deadline, dict(self._values))
                expiry = manager.expiry_for(self._deadline)
                generated = not self._token
                if generated:
                    self._token = generate_token()
                token = self._token

            try:
                await manager.store.commit(manager.store_key(token), blob, expiry)
            except BaseException:
                if generated:
                    with self._lock:
                        if self._token == token:
                            self._token = ""
                raise

        logger.debug("Session committed (new=%s, expiry=%s)", generated, expiry.isoformat())
        return token, expiry

    async def destroy(self) -> None:
        """Delete the session from the store and empty it.

        The middleware then tells the client to drop its cookie. If the
        store delete fails nothing is cleared. Any later write in the same
        request starts a brand-new session with a new token.
        """
        manager = self._manager
        async with self._commit_lock:
            with self._lock:
                self._ensure_writable()
                token = self._token

            if token:
                await manager.store.delete(manager.store_key(token))

            with self._lock:
                self._token = ""
                self._values.clear()
                self._deadline = _now() + manager.lifetime
                self._status = Status.DESTROYED
        logger.debug("Session destroyed")

    async def renew_token(self) -> None:
        """Issue a new token, keeping the data, and restart the lifetime.

        Call this before any privilege change (login, logout) to defeat
        session fixation. The old token's record is deleted.
        """
        await self._rotate(clear=False)

    async def renew(self) -> None:
        """Issue a new token and discard all data in one step."""
        await self._rotate(clear=True)

    def touch(self) -> None:
        """Force a write so the idle timeout restarts. No-op without one."""
        if self._manager.idle_timeout is None:
            return
        with self._lock:
            self._ensure_writable()
            if self._status is Status.UNMODIFIED:
                self._status = Status.MODIFIED

    async def merge_session(self, token: str) -> None:
        """Copy the values of another session into this one.

        The other session is deleted from the store. Unknown or expired
        tokens are ignored.
        """
        manager = self._manager
        async with self._commit_lock:
            with self._lock:
                self._ensure_writable()
                if token == self._token:
                    return

            key = manager.store_key(token)
            blob = await manager.store.find(key)
            if blob is None:
                return
            deadline, values = manager.codec.decode(blob)
            if _now() >= deadline:
                return

            with self._lock:
                self._values.update(values)
                self._status = Status.MODIFIED
            await manager.store.delete(key)

    async def _rotate(self, *, clear: bool) -> None:
        manager = self._manager
        async with self._commit_lock:
            with self._lock:
                self._ensure_writable()
                old = self._token

            if old:
                await manager.store.delete(manager.store_key(old))
            new = generate_token()

            with self._lock:
                self._token = new
                if clear:
                    self._values.clear()
                self._deadline = _now() + manager.lifetime
                self._status = Status.MODIFIED
        logger.debug("Session token renewed (cleared=%s)", clear)

    # ── Middleware hooks ──────────────────────────────────────────────────

    def _ensure_writable(self) -> None:
        if self._written:
            raise SessionAlreadyWrittenError()

    def _mark_written(self) -> None:
        with self._lock:
            self._written = True


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_str(v: Any) -> bool:
    return isinstance(v, str)


def _is_bool(v: Any) -> bool:
    return isinstance(v, bool)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_float(v: Any) -> bool:
    return isinstance(v, float)


def _is_bytes(v: Any) -> bool:
    return isinstance(v, (bytes, bytearray))


def _is_time(v: Any) -> bool:
    return isinstance(v, datetime)
