"""Session stores and backend selection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import IterableStore, Store
from .dynamodb import DynamoDBStore
from .memory import MemoryStore

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["Store", "IterableStore", "MemoryStore", "DynamoDBStore", "create_store"]


def create_store(settings: Settings) -> Store:
    """Choose a session store based on config."""
    if settings.store == "dynamodb":
        return DynamoDBStore(
            table_name=settings.dynamodb_table,
            endpoint_url=settings.dynamodb_endpoint,
            region_name=settings.dynamodb_region,
        )
    return MemoryStore()
