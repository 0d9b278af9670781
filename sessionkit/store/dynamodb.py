"""DynamoDB session store for production deployments."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from decimal import Decimal

import aioboto3

logger = logging.getLogger(__name__)

# DynamoDB rejects partition keys longer than this.
MAX_KEY_BYTES = 2048


class DynamoDBStore:
    """Session store using AWS DynamoDB.

    Table schema:
        Partition key: token (S)
        Attributes: data (B), expiry (N, epoch seconds), ttl (N)

    Enable TTL on the `ttl` attribute for automatic cleanup. DynamoDB
    deletes expired items lazily, so ``find`` and ``all`` also check
    ``expiry`` themselves.
    """

    def __init__(
        self,
        table_name: str = "sessions",
        endpoint_url: str = "",
        region_name: str = "us-west-2",
    ) -> None:
        self._table_name = table_name
        self._session = aioboto3.Session()
        self._endpoint_url = endpoint_url or None
        self._region_name = region_name

    def _resource(self):
        return self._session.resource(
            "dynamodb",
            endpoint_url=self._endpoint_url,
            region_name=self._region_name,
        )

    async def find(self, token: str) -> bytes | None:
        if len(token.encode()) > MAX_KEY_BYTES:
            return None
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            response = await table.get_item(Key={"token": token})

        item = response.get("Item")
        if item is None:
            return None
        if time.time() >= float(item.get("expiry", 0)):
            return None
        return _as_bytes(item["data"])

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        ts = expiry.timestamp()
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            await table.put_item(
                Item={
                    "token": token,
                    "data": data,
                    # boto3 rejects float attributes
                    "expiry": Decimal(str(ts)),
                    "ttl": int(ts) + 1,
                }
            )

    async def delete(self, token: str) -> None:
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            await table.delete_item(Key={"token": token})

    async def all(self) -> dict[str, bytes]:
        now = time.time()
        sessions: dict[str, bytes] = {}
        scan_kwargs: dict = {}
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            while True:
                response = await table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    if now < float(item.get("expiry", 0)):
                        sessions[item["token"]] = _as_bytes(item["data"])
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        logger.debug("Scanned %d active sessions from %s", len(sessions), self._table_name)
        return sessions


def _as_bytes(value) -> bytes:
    # boto3 returns Binary attributes wrapped in boto3.dynamodb.types.Binary
    return value.value if hasattr(value, "value") else bytes(value)
