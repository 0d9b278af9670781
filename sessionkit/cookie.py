"""Session cookie attributes and Set-Cookie formatting."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Literal

from pydantic import BaseModel

COOKIE_NAME = "session"

# Expires value that tells the client to drop the cookie immediately.
_EPOCH_EXPIRES = "Thu, 01 Jan 1970 00:00:01 GMT"


class SessionCookie(BaseModel):
    """Attributes of the cookie that carries the session token."""

    name: str = COOKIE_NAME
    domain: str = ""
    path: str = "/"
    http_only: bool = True
    secure: bool = False
    same_site: Literal["lax", "strict", "none"] = "lax"
    # Persistent cookies get Expires/Max-Age; otherwise they last for the
    # browser session.
    persist: bool = True
    partitioned: bool = False

    model_config = {"frozen": True}


def build_set_cookie(
    cookie: SessionCookie,
    value: str,
    expiry: datetime,
    *,
    persist: bool,
    now: datetime | None = None,
) -> str:
    """Format the Set-Cookie header value that hands ``value`` to the client."""
    parts = [f"{cookie.name}={value}"]
    if persist:
        now = now or datetime.now(timezone.utc)
        # Round up to the nearest second.
        expires = datetime.fromtimestamp(int(expiry.timestamp()) + 1, tz=timezone.utc)
        max_age = int((expiry - now).total_seconds() + 1)
        parts.append(f"Expires={format_datetime(expires, usegmt=True)}")
        parts.append(f"Max-Age={max(max_age, 0)}")
    return "; ".join(parts + _attributes(cookie))


def build_delete_cookie(cookie: SessionCookie) -> str:
    """Format a Set-Cookie header value instructing the client to delete the cookie."""
    parts = [
        f"{cookie.name}=",
        f"Expires={_EPOCH_EXPIRES}",
        "Max-Age=0",
    ]
    return "; ".join(parts + _attributes(cookie))


def _attributes(cookie: SessionCookie) -> list[str]:
    parts = []
    if cookie.path:
        parts.append(f"Path={cookie.path}")
    if cookie.domain:
        parts.append(f"Domain={cookie.domain}")
    if cookie.http_only:
        parts.append("HttpOnly")
    if cookie.secure:
        parts.append("Secure")
    parts.append(f"SameSite={cookie.same_site}")
    if cookie.partitioned:
        parts.append("Partitioned")
    return parts
