"""Wiring of the Gate -> Pool sync for the CLI and the scheduler.

Opens the Gate and Pool clients and the checkpoint store described by a
BridgeConfig and assembles a SyncBusinessPartnersUseCase from them:

    async with open_bridge(config) as bridge:
        result = await bridge.run_pass()
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import asyncpg

from .api.auth import TokenManager
from .api.client import BPDMClient
from .api.exceptions import DatabaseError, SyncInProgressError
from .config import BridgeConfig
from .sync.adapters import (
    GateAPI,
    InMemoryCheckpointRepository,
    PoolAPI,
    PostgresCheckpointRepository,
)
from .sync.domain.entities import SyncResult
from .sync.domain.ports import ISyncCheckpointRepository
from .sync.use_cases import (
    GateQueryService,
    ParentResolver,
    PoolUpsertService,
    SharingStateWriter,
    SyncBusinessPartnersUseCase,
)

logger = logging.getLogger(__name__)


async def create_db_pool(
    database_url: str,
    min_size: int = 1,
    max_size: int = 4,
    command_timeout: float = 60.0,
) -> "asyncpg.Pool":
    """Create the checkpoint connection pool.

    Raises:
        DatabaseError: If the pool cannot be created
    """
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )
    except (OSError, asyncpg.PostgresError) as e:
        raise DatabaseError(f"Failed to create database pool: {e}", cause=e) from e

    logger.info(f"Database pool created (min={min_size}, max={max_size})")
    return pool


def build_use_case(
    gate_client: BPDMClient,
    pool_client: BPDMClient,
    checkpoint_repo: ISyncCheckpointRepository,
    page_size: int = 100,
) -> SyncBusinessPartnersUseCase:
    """Assemble the sync use case from open clients and a checkpoint store."""
    gate_api = GateAPI(gate_client)
    gate_query = GateQueryService(gate_api, page_size=page_size)
    return SyncBusinessPartnersUseCase(
        gate_query=gate_query,
        parent_resolver=ParentResolver(gate_query),
        pool_upsert=PoolUpsertService(PoolAPI(pool_client)),
        sharing_state_writer=SharingStateWriter(gate_api),
        checkpoint_repo=checkpoint_repo,
    )


@dataclass
class Bridge:
    """An assembled use case plus the checkpoint store guarding it."""

    use_case: SyncBusinessPartnersUseCase
    checkpoint_repo: ISyncCheckpointRepository

    async def run_pass(self, full_resync: bool = False) -> SyncResult:
        """Run one pass while holding the checkpoint store's lock.

        Raises:
            SyncInProgressError: If another process holds the lock
        """
        if not await self.checkpoint_repo.try_acquire_lock():
            raise SyncInProgressError("Another bridge process is running a sync pass")
        try:
            return await self.use_case.execute(full_resync=full_resync)
        finally:
            await self.checkpoint_repo.release_lock()


@asynccontextmanager
async def open_bridge(config: BridgeConfig) -> AsyncIterator[Bridge]:
    """Open clients and the checkpoint store for the lifetime of the block."""
    token_manager: Optional[TokenManager] = None
    if config.has_credentials:
        token_manager = TokenManager(config.client_id, config.client_secret, config.token_url)
    else:
        logger.warning("No OAuth2 credentials configured, calling Gate and Pool without a token")

    db_pool = None
    if config.database_url:
        db_pool = await create_db_pool(config.database_url)
        checkpoint_repo: ISyncCheckpointRepository = PostgresCheckpointRepository(db_pool)
        await checkpoint_repo.ensure_schema()
    else:
        logger.warning("DATABASE_URL not set, keeping the sync checkpoint in memory")
        checkpoint_repo = InMemoryCheckpointRepository()

    try:
        async with BPDMClient(config.gate_url, token_manager, name="gate") as gate_client, \
                BPDMClient(config.pool_url, token_manager, name="pool") as pool_client:
            use_case = build_use_case(
                gate_client, pool_client, checkpoint_repo, page_size=config.page_size
            )
            yield Bridge(use_case=use_case, checkpoint_repo=checkpoint_repo)
    finally:
        if db_pool is not None:
            await db_pool.close()
            logger.info("Database pool closed")
