"""Server-side HTTP sessions for ASGI applications."""

from .codec import Codec, JSONCodec, TypeRegistry, register_type
from .config import Settings, get_settings, override_settings
from .cookie import SessionCookie
from .data import SessionData, Status
from .dependencies import get_session
from .errors import (
    CodecError,
    DecodeError,
    EncodeError,
    SessionAlreadyWrittenError,
    SessionError,
    SessionNotLoadedError,
    StoreNotIterableError,
    TypeAssertionError,
)
from .manager import SessionManager
from .middleware import SessionMiddleware
from .store import DynamoDBStore, IterableStore, MemoryStore, Store, create_store
from .token import generate_token

__all__ = [
    "Codec",
    "JSONCodec",
    "TypeRegistry",
    "register_type",
    "Settings",
    "get_settings",
    "override_settings",
    "SessionCookie",
    "SessionData",
    "Status",
    "get_session",
    "CodecError",
    "DecodeError",
    "EncodeError",
    "SessionAlreadyWrittenError",
    "SessionError",
    "SessionNotLoadedError",
    "StoreNotIterableError",
    "TypeAssertionError",
    "SessionManager",
    "SessionMiddleware",
    "Store",
    "IterableStore",
    "MemoryStore",
    "DynamoDBStore",
    "create_store",
    "generate_token",
]
