"""Session configuration via environment variables."""

from __future__ import annotations

from datetime import timedelta
from typing import Literal

from pydantic_settings import BaseSettings

from .cookie import COOKIE_NAME, SessionCookie


class Settings(BaseSettings):
    lifetime: timedelta = timedelta(hours=24)
    idle_timeout: timedelta | None = None
    hash_token_in_store: bool = False
    secret: str = ""  # signs the cookie value when set

    cookie_name: str = COOKIE_NAME
    cookie_domain: str = ""
    cookie_path: str = "/"
    cookie_http_only: bool = True
    cookie_secure: bool = False
    cookie_same_site: Literal["lax", "strict", "none"] = "lax"
    cookie_persist: bool = True
    cookie_partitioned: bool = False

    store: Literal["memory", "dynamodb"] = "memory"
    dynamodb_table: str = "sessions"
    dynamodb_endpoint: str = ""  # For local DynamoDB
    dynamodb_region: str = "us-west-2"

    model_config = {"env_prefix": "SESSION_", "case_sensitive": False}

    def cookie(self) -> SessionCookie:
        return SessionCookie(
            name=self.cookie_name,
            domain=self.cookie_domain,
            path=self.cookie_path,
            http_only=self.cookie_http_only,
            secure=self.cookie_secure,
            same_site=self.cookie_same_site,
            persist=self.cookie_persist,
            partitioned=self.cookie_partitioned,
        )


settings: Settings | None = None


def get_settings() -> Settings:
    global settings
    if settings is None:
        settings = Settings()
    return settings


def override_settings(s: Settings | None) -> None:
    """For testing: inject a Settings instance (None resets to the environment)."""
    global settings
    settings = s
