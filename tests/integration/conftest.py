"""Shared fixtures for integration tests against a real DynamoDB endpoint.

All integration tests are skipped unless the required environment variables
are set. This allows the test suite to run in CI without credentials while
supporting local testing against DynamoDB Local or a real account.

Required env vars:
    SESSION_DYNAMODB_ENDPOINT   e.g., http://localhost:8000

Optional env vars:
    SESSION_DYNAMODB_REGION     defaults to us-west-2
    SESSION_DYNAMODB_TABLE      defaults to sessionkit_integration
"""

from __future__ import annotations

import os
import uuid

import aioboto3
import pytest
import pytest_asyncio

from sessionkit import DynamoDBStore
from sessionkit.config import Settings, override_settings

pytestmark = pytest.mark.integration


@pytest.fixture(scope="session")
def dynamodb_env():
    """Return DynamoDB env vars or skip."""
    endpoint = os.environ.get("SESSION_DYNAMODB_ENDPOINT")
    if not endpoint:
        pytest.skip("Integration tests require SESSION_DYNAMODB_ENDPOINT")
    return {
        "endpoint": endpoint,
        "region": os.environ.get("SESSION_DYNAMODB_REGION", "us-west-2"),
        "table": os.environ.get("SESSION_DYNAMODB_TABLE", "sessionkit_integration"),
    }


@pytest.fixture
def real_settings(dynamodb_env):
    """Settings pointing at the real endpoint."""
    s = Settings(
        store="dynamodb",
        dynamodb_endpoint=dynamodb_env["endpoint"],
        dynamodb_region=dynamodb_env["region"],
        dynamodb_table=f"{dynamodb_env['table']}_{uuid.uuid4().hex[:8]}",
    )
    override_settings(s)
    yield s
    override_settings(None)


@pytest_asyncio.fixture
async def real_store(real_settings):
    """A DynamoDBStore backed by a freshly created table, dropped afterwards."""
    session = aioboto3.Session()
    kwargs = {
        "endpoint_url": real_settings.dynamodb_endpoint,
        "region_name": real_settings.dynamodb_region,
    }
    async with session.client("dynamodb", **kwargs) as client:
        await client.create_table(
            TableName=real_settings.dynamodb_table,
            KeySchema=[{"AttributeName": "token", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "token", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        waiter = client.get_waiter("table_exists")
        await waiter.wait(TableName=real_settings.dynamodb_table)

    yield DynamoDBStore(
        table_name=real_settings.dynamodb_table,
        endpoint_url=real_settings.dynamodb_endpoint,
        region_name=real_settings.dynamodb_region,
    )

    async with session.client("dynamodb", **kwargs) as client:
        await client.delete_table(TableName=real_settings.dynamodb_table)
