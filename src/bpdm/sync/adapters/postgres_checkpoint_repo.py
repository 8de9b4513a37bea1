"""PostgreSQL checkpoint repository.

Persists the start time of the last completed sync pass so the next pass
only reads changelog entries written after it. Also provides a session-level
advisory lock so two bridge processes never run a pass at the same time.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import asyncpg

from ...api.exceptions import CheckpointError
from ..domain.ports import ISyncCheckpointRepository

if TYPE_CHECKING:
    from asyncpg.pool import PoolConnectionProxy

logger = logging.getLogger(__name__)

CHECKPOINT_SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_checkpoints (
    name TEXT PRIMARY KEY,
    last_sync_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

# Arbitrary but stable key for pg_try_advisory_lock ("BPDM" in ASCII)
ADVISORY_LOCK_KEY = 0x4250444D


class PostgresCheckpointRepository(ISyncCheckpointRepository):
    """PostgreSQL implementation of ISyncCheckpointRepository.

    The advisory lock is session scoped, so the connection that took it is
    held until release_lock() hands it back to the pool.
    """

    def __init__(self, pool: "asyncpg.Pool", name: str = "gate-pool-sync"):
        """Initialize the repository.

        Args:
            pool: asyncpg connection pool
            name: Checkpoint row name, one per sync flavour
        """
        self.pool = pool
        self.name = name
        self._lock_conn: Optional["PoolConnectionProxy"] = None

    async def ensure_schema(self) -> None:
        """Create the checkpoint table if it does not exist."""
        async with self.pool.acquire() as conn:
            await conn.execute(CHECKPOINT_SCHEMA)

    async def get_last_sync(self) -> Optional[datetime]:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(
                    "SELECT last_sync_at FROM sync_checkpoints WHERE name = $1",
                    self.name,
                )
        except asyncpg.PostgresError as e:
            raise CheckpointError(
                f"Failed to read checkpoint '{self.name}'",
                operation="read",
                cause=e,
            )

    async def save_last_sync(self, synced_at: datetime) -> None:
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO sync_checkpoints (name, last_sync_at, updated_at)
                    VALUES ($1, $2, NOW())
                    ON CONFLICT (name) DO UPDATE SET
                        last_sync_at = EXCLUDED.last_sync_at,
                        updated_at = NOW()
                    """,
                    self.name,
                    synced_at,
                )
        except asyncpg.PostgresError as e:
            raise CheckpointError(
                f"Failed to store checkpoint '{self.name}'",
                operation="write",
                cause=e,
            )
        logger.info(f"Checkpoint '{self.name}' moved to {synced_at.isoformat()}")

    async def try_acquire_lock(self) -> bool:
        if self._lock_conn is not None:
            return False

        conn = await self.pool.acquire()
        try:
            acquired = await conn.fetchval("SELECT pg_try_advisory_lock($1)", ADVISORY_LOCK_KEY)
        except BaseException:
            await self.pool.release(conn)
            raise

        if not acquired:
            await self.pool.release(conn)
            return False

        self._lock_conn = conn
        return True

    async def release_lock(self) -> None:
        conn, self._lock_conn = self._lock_conn, None
        if conn is None:
            return
        try:
            await conn.execute("SELECT pg_advisory_unlock($1)", ADVISORY_LOCK_KEY)
        finally:
            await self.pool.release(conn)
