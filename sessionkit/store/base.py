"""The persistence contract between the session core and its backends."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Store(Protocol):
    """Protocol for server-side session storage.

    Tokens passed to a store are opaque keys (hashed when the manager is
    configured with ``hash_token_in_store``). Blobs are opaque codec output.
    """

    async def find(self, token: str) -> bytes | None:
        """Return the blob for ``token``.

        Returns None when the token is unknown or expired. Tampered or
        malformed tokens must also yield None rather than an exception;
        raise only for system errors.
        """
        ...

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        """Insert or overwrite the blob for ``token`` with the given expiry."""
        ...

    async def delete(self, token: str) -> None:
        """Remove ``token``. A missing token is not an error."""
        ...


@runtime_checkable
class IterableStore(Store, Protocol):
    """A store that can enumerate its active sessions."""

    async def all(self) -> dict[str, bytes]:
        """Return blobs for every non-expired session, keyed by token."""
        ...
