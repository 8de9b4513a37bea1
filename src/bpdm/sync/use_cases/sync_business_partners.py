"""Sync Business Partners Use Case - Orchestrates one Gate -> Pool pass.

Workflow:
1. Read the checkpoint of the last successful pass
2. Collect the external ids changed in the Gate since then
3. For legal entities, then sites, then addresses:
   a. Fetch the changed records (with their BPN from the ledger)
   b. Split them into a create cohort (no BPN) and an update cohort
   c. Attach parent BPNs to new sites and addresses
   d. Send the create batch, then the update batch, to the Pool
   e. Write every answered request back into the Gate ledger
4. Save the pass start time, less a small overlap, as the new checkpoint

Parents are processed before their children so that a child created in the
same pass can find the BPN its parent was just given.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from ...api.exceptions import SyncInProgressError
from ..domain.cohorts import partition_by_bpn
from ..domain.entities import (
    GateRecord,
    LsaSyncStatistics,
    LsaType,
    SyncResult,
)
from ..domain.ports import ISyncCheckpointRepository
from .gate_query import GateQueryService
from .parent_resolver import ParentResolver
from .pool_upsert import PoolUpsertService
from .sharing_state_writer import SharingStateWriter

logger = logging.getLogger(__name__)

# Changelog timestamps come from the Gate clock, so the stored checkpoint
# trails the pass start by this much.
DEFAULT_CHECKPOINT_OVERLAP = timedelta(minutes=5)


class SyncPhase(str, Enum):
    """Where a sync pass currently is."""

    IDLE = "idle"
    FETCHING_CHANGELOG = "fetching_changelog"
    PROCESSING_LEGAL_ENTITIES = "processing_legal_entities"
    PROCESSING_SITES = "processing_sites"
    PROCESSING_ADDRESSES = "processing_addresses"


PHASE_BY_TYPE = {
    LsaType.LEGAL_ENTITY: SyncPhase.PROCESSING_LEGAL_ENTITIES,
    LsaType.SITE: SyncPhase.PROCESSING_SITES,
    LsaType.ADDRESS: SyncPhase.PROCESSING_ADDRESSES,
}


class SyncBusinessPartnersUseCase:
    """Orchestrates the Gate -> Pool sync of business partners.

    Depends only on services and ports; every I/O goes through the Gate and
    Pool ports and the checkpoint repository.

    Example:
        use_case = SyncBusinessPartnersUseCase(
            gate_query=GateQueryService(gate_api),
            parent_resolver=ParentResolver(gate_query),
            pool_upsert=PoolUpsertService(pool_api),
            sharing_state_writer=SharingStateWriter(gate_api),
            checkpoint_repo=InMemoryCheckpointRepository(),
        )
        result = await use_case.execute()
    """

    def __init__(
        self,
        gate_query: GateQueryService,
        parent_resolver: ParentResolver,
        pool_upsert: PoolUpsertService,
        sharing_state_writer: SharingStateWriter,
        checkpoint_repo: ISyncCheckpointRepository,
        checkpoint_overlap: timedelta = DEFAULT_CHECKPOINT_OVERLAP,
    ):
        self.gate_query = gate_query
        self.parent_resolver = parent_resolver
        self.pool_upsert = pool_upsert
        self.writer = sharing_state_writer
        self.checkpoint_repo = checkpoint_repo
        self.checkpoint_overlap = checkpoint_overlap

        self.phase = SyncPhase.IDLE
        self._running_since: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._running_since is not None

    async def execute(self, full_resync: bool = False) -> SyncResult:
        """Run one sync pass.

        Args:
            full_resync: Ignore the checkpoint and read the whole changelog

        Returns:
            SyncResult with per-type statistics

        Raises:
            SyncInProgressError: If a pass is already running in this process
            BPDMError: Any Gate, Pool or checkpoint failure aborts the pass;
                the checkpoint is left untouched so the next pass retries
        """
        if self._running_since is not None:
            raise SyncInProgressError(started_at=self._running_since)

        started_at = datetime.now(timezone.utc)
        self._running_since = started_at
        try:
            modified_after = None if full_resync else await self.checkpoint_repo.get_last_sync()
            logger.info(
                f"Starting Gate to Pool sync at {started_at.isoformat()} "
                f"(changes since {modified_after.isoformat() if modified_after else 'the beginning'})"
            )

            self.phase = SyncPhase.FETCHING_CHANGELOG
            changed = await self.gate_query.get_changed_external_ids(modified_after)

            result = SyncResult(started_at=started_at, modified_after=modified_after)
            for lsa_type in LsaType:
                self.phase = PHASE_BY_TYPE[lsa_type]
                result.statistics[lsa_type] = await self._sync_type(
                    lsa_type, changed.get(lsa_type, set())
                )

            await self.checkpoint_repo.save_last_sync(started_at - self.checkpoint_overlap)
            result.completed_at = datetime.now(timezone.utc)
            logger.info(
                f"Gate to Pool sync completed in {result.duration_seconds:.2f}s, "
                f"{len(result.skipped)} records skipped"
            )
            return result
        except Exception as e:
            logger.error(f"Gate to Pool sync aborted during {self.phase.value}: {e}")
            raise
        finally:
            self.phase = SyncPhase.IDLE
            self._running_since = None

    async def _sync_type(self, lsa_type: LsaType, external_ids: set[str]) -> LsaSyncStatistics:
        stats = LsaSyncStatistics(lsa_type=lsa_type, changed=len(external_ids))
        if not external_ids:
            return stats

        records = await self.gate_query.get_records(lsa_type, external_ids)
        stats.fetched = len(records)

        to_create, to_update = partition_by_bpn(records)
        stats.to_create = len(to_create)
        stats.to_update = len(to_update)

        await self._create(lsa_type, to_create, stats)
        await self._update(lsa_type, to_update, stats)
        return stats

    async def _create(
        self,
        lsa_type: LsaType,
        records: list[GateRecord],
        stats: LsaSyncStatistics,
    ) -> None:
        if lsa_type == LsaType.SITE:
            resolution = await self.parent_resolver.resolve_site_parents(records)
            pairs = resolution.resolved
            stats.skipped.extend(resolution.skipped)
        elif lsa_type == LsaType.ADDRESS:
            resolution = await self.parent_resolver.resolve_address_parents(records)
            pairs = resolution.resolved
            stats.skipped.extend(resolution.skipped)
        else:
            pairs = [(record, None) for record in records]

        requests = self.pool_upsert.build_create_requests(pairs)
        if not requests:
            return

        response = await self.pool_upsert.create(lsa_type, requests)
        stats.created += response.entity_count
        stats.errors += response.error_count

        write_back = await self.writer.write_create_outcomes(lsa_type, response)
        stats.skipped.extend(write_back.skipped)

    async def _update(
        self,
        lsa_type: LsaType,
        records: list[GateRecord],
        stats: LsaSyncStatistics,
    ) -> None:
        if not records:
            return

        response, external_id_by_bpn = await self.pool_upsert.update(lsa_type, records)
        stats.updated += response.entity_count
        stats.errors += response.error_count

        write_back = await self.writer.write_update_outcomes(
            lsa_type, response, external_id_by_bpn
        )
        stats.skipped.extend(write_back.skipped)
