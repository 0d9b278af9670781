"""In-memory session store."""

from __future__ import annotations

from datetime import datetime, timezone


class MemoryStore:
    """In-memory session store for development/testing.

    Not suitable for production: sessions are lost on restart and not
    shared across processes. Expired entries are dropped when read;
    call ``purge_expired`` to reclaim the rest.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[bytes, datetime]] = {}

    async def find(self, token: str) -> bytes | None:
        entry = self._store.get(token)
        if entry is None:
            return None
        data, expiry = entry
        if _now() >= expiry:
            del self._store[token]
            return None
        return data

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        self._store[token] = (data, expiry)

    async def delete(self, token: str) -> None:
        self._store.pop(token, None)

    async def all(self) -> dict[str, bytes]:
        now = _now()
        return {
            token: data for token, (data, expiry) in self._store.items() if now < expiry
        }

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = _now()
        expired = [token for token, (_, expiry) in self._store.items() if now >= expiry]
        for token in expired:
            del self._store[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._store)


def _now() -> datetime:
    return datetime.now(timezone.utc)
