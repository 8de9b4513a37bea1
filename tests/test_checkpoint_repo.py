#!/usr/bin/env python3
"""Tests for the sync checkpoint repositories.

Tests cover:
    - In-memory checkpoint and lock
    - PostgreSQL repository against a mocked asyncpg pool
    - PostgreSQL repository against a real database (skipped without DATABASE_URL)
"""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest
import pytest_asyncio

from src.bpdm.api.exceptions import CheckpointError
from src.bpdm.sync.adapters.memory_checkpoint_repo import InMemoryCheckpointRepository
from src.bpdm.sync.adapters.postgres_checkpoint_repo import (
    ADVISORY_LOCK_KEY,
    PostgresCheckpointRepository,
)

SYNCED_AT = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


# ============================================
# In-memory
# ============================================

class TestInMemoryCheckpointRepository:
    """Test the process-local repository."""

    @pytest.mark.asyncio
    async def test_starts_empty(self):
        assert await InMemoryCheckpointRepository().get_last_sync() is None

    @pytest.mark.asyncio
    async def test_save_and_read(self):
        repo = InMemoryCheckpointRepository()
        await repo.save_last_sync(SYNCED_AT)
        assert await repo.get_last_sync() == SYNCED_AT

    @pytest.mark.asyncio
    async def test_lock_is_exclusive(self):
        repo = InMemoryCheckpointRepository()

        assert await repo.try_acquire_lock()
        assert not await repo.try_acquire_lock()

        await repo.release_lock()
        assert await repo.try_acquire_lock()


# ============================================
# PostgreSQL (mocked)
# ============================================

@pytest.fixture
def conn():
    conn = MagicMock()
    conn.fetchval = AsyncMock()
    conn.execute = AsyncMock()
    return conn


class _Acquire:
    """Stands in for asyncpg's PoolAcquireContext: awaitable and async with."""

    def __init__(self, conn):
        self.conn = conn

    def __await__(self):
        return self._get().__await__()

    async def _get(self):
        return self.conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return None


@pytest.fixture
def db_pool(conn):
    pool = MagicMock()
    pool.acquire = MagicMock(side_effect=lambda: _Acquire(conn))
    pool.release = AsyncMock()
    return pool


class TestPostgresCheckpointRepository:
    """Test the PostgreSQL repository with a mocked pool."""

    @pytest.mark.asyncio
    async def test_get_last_sync(self, db_pool, conn):
        conn.fetchval.return_value = SYNCED_AT
        repo = PostgresCheckpointRepository(db_pool, name="test-sync")

        assert await repo.get_last_sync() == SYNCED_AT
        assert conn.fetchval.await_args.args[1] == "test-sync"

    @pytest.mark.asyncio
    async def test_save_last_sync_upserts(self, db_pool, conn):
        repo = PostgresCheckpointRepository(db_pool)

        await repo.save_last_sync(SYNCED_AT)

        sql, name, synced_at = conn.execute.await_args.args
        assert "ON CONFLICT (name) DO UPDATE" in sql
        assert (name, synced_at) == ("gate-pool-sync", SYNCED_AT)

    @pytest.mark.asyncio
    async def test_database_errors_wrapped(self, db_pool, conn):
        conn.fetchval.side_effect = asyncpg.PostgresError("boom")
        repo = PostgresCheckpointRepository(db_pool)

        with pytest.raises(CheckpointError) as exc_info:
            await repo.get_last_sync()

        assert exc_info.value.details["operation"] == "read"

    @pytest.mark.asyncio
    async def test_lock_held_until_released(self, db_pool, conn):
        conn.fetchval.return_value = True
        repo = PostgresCheckpointRepository(db_pool)

        assert await repo.try_acquire_lock()
        assert conn.fetchval.await_args.args == ("SELECT pg_try_advisory_lock($1)", ADVISORY_LOCK_KEY)
        db_pool.release.assert_not_awaited()
        assert not await repo.try_acquire_lock()

        await repo.release_lock()

        conn.execute.assert_awaited_with("SELECT pg_advisory_unlock($1)", ADVISORY_LOCK_KEY)
        db_pool.release.assert_awaited_once_with(conn)

    @pytest.mark.asyncio
    async def test_lock_taken_elsewhere(self, db_pool, conn):
        conn.fetchval.return_value = False
        repo = PostgresCheckpointRepository(db_pool)

        assert not await repo.try_acquire_lock()
        db_pool.release.assert_awaited_once_with(conn)

    @pytest.mark.asyncio
    async def test_release_without_lock_is_noop(self, db_pool, conn):
        repo = PostgresCheckpointRepository(db_pool)

        await repo.release_lock()

        conn.execute.assert_not_awaited()
        db_pool.release.assert_not_awaited()


# ============================================
# PostgreSQL (integration)
# ============================================

@pytest_asyncio.fixture
async def real_pool():
    pool = await asyncpg.create_pool(os.getenv("DATABASE_URL"), min_size=1, max_size=2)
    yield pool
    await pool.close()


@pytest.mark.skipif(not os.getenv("DATABASE_URL"), reason="DATABASE_URL not set")
class TestPostgresCheckpointIntegration:
    """Round trip against a live PostgreSQL instance."""

    @pytest.mark.asyncio
    async def test_checkpoint_round_trip(self, real_pool):
        repo = PostgresCheckpointRepository(real_pool, name="test-checkpoint-round-trip")
        await repo.ensure_schema()

        await repo.save_last_sync(SYNCED_AT)
        assert await repo.get_last_sync() == SYNCED_AT

        async with real_pool.acquire() as conn:
            await conn.execute(
                "DELETE FROM sync_checkpoints WHERE name = $1", "test-checkpoint-round-trip"
            )
