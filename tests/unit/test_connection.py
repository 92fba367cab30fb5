"""
Tests for database retry handling and the Redis client wrapper.
"""

from unittest.mock import AsyncMock

import psycopg
import pytest

from app.db.helpers import DatabaseError, with_db_retry
from app.services.redis_client import FastRedisClient


class TestDatabaseRetry:
    """Tests for the with_db_retry decorator."""

    @pytest.mark.asyncio
    async def test_retries_transient_driver_errors(self):
        calls = []

        @with_db_retry(max_retries=2, base_delay=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise psycopg.OperationalError("connection reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retries_wrapped_operational_errors(self):
        calls = []

        @with_db_retry(max_retries=1, base_delay=0)
        async def wrapped():
            calls.append(1)
            try:
                raise psycopg.OperationalError("server closed the connection")
            except psycopg.OperationalError as e:
                raise DatabaseError(f"Query failed: {e}", operation="fetch_one") from e

        with pytest.raises(DatabaseError) as exc_info:
            await wrapped()

        assert len(calls) == 2
        assert exc_info.value.recoverable is False

    @pytest.mark.asyncio
    async def test_other_database_errors_are_not_retried(self):
        calls = []

        @with_db_retry(max_retries=3, base_delay=0)
        async def broken():
            calls.append(1)
            raise DatabaseError("Upsert returned no row", operation="save")

        with pytest.raises(DatabaseError):
            await broken()

        assert len(calls) == 1


class TestRedisClient:
    """Tests for FastRedisClient degrading to falsy results."""

    @pytest.mark.asyncio
    async def test_get_and_set(self):
        redis_client = FastRedisClient()
        redis_client._initialized = True
        redis_client.client = AsyncMock()
        redis_client.client.get.return_value = '{"a": 1}'
        redis_client.client.setex.return_value = True

        assert await redis_client.get("collab:override:k") == '{"a": 1}'
        assert await redis_client.set_with_ttl("collab:override:k", "{}", 60) is True
        redis_client.client.setex.assert_awaited_once_with("collab:override:k", 60, "{}")

    @pytest.mark.asyncio
    async def test_failures_return_falsy(self):
        redis_client = FastRedisClient()
        redis_client._initialized = True
        redis_client.client = AsyncMock()
        redis_client.client.ping.side_effect = ConnectionError("down")
        redis_client.client.get.side_effect = ConnectionError("down")
        redis_client.client.delete.side_effect = ConnectionError("down")

        assert await redis_client.ping() is False
        assert await redis_client.get("k") is None
        assert await redis_client.delete("k") is False
