"""Exceptions raised by sessionkit."""

from __future__ import annotations

from typing import Any


class SessionError(Exception):
    """Base class for all session errors."""


class TypeAssertionError(SessionError, TypeError):
    """A typed accessor found a value of an unexpected type."""

    def __init__(self, key: str, expected: str, actual: Any) -> None:
        self.key = key
        self.expected = expected
        self.actual = type(actual).__name__
        super().__init__(
            f"type assertion failed: {key!r} holds {self.actual}, not {expected}"
        )


class CodecError(SessionError):
    """Session data could not be serialized or deserialized."""


class EncodeError(CodecError):
    pass


class DecodeError(CodecError):
    pass


class SessionAlreadyWrittenError(SessionError):
    """The response headers (and session cookie) have already been sent."""

    def __init__(self) -> None:
        super().__init__("session already written to the response")


class SessionNotLoadedError(SessionError):
    """No session is bound to the current request."""

    def __init__(self) -> None:
        super().__init__(
            "no session bound to this request; is SessionMiddleware installed?"
        )


class StoreNotIterableError(SessionError):
    def __init__(self, store: Any) -> None:
        super().__init__(f"{type(store).__name__} does not support iteration")
