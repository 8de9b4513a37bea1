"""Pool Upsert Service - sends create and update batches to the Pool.

Create requests carry the Gate external id as ``index`` so that successes
and errors in the response can be traced back to the Gate record. Update
requests are keyed by BPN; the service hands back the BPN -> external id map
the caller needs to correlate update errors.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from ..domain.entities import (
    GateRecord,
    LsaType,
    PoolCreateRequest,
    PoolUpdateRequest,
    UpsertResponse,
)
from ..domain.ports import IPoolAPI

logger = logging.getLogger(__name__)


class PoolUpsertService:
    """Batch create/update against the Pool for one partner type at a time."""

    def __init__(self, pool_api: IPoolAPI):
        self.pool = pool_api

    @staticmethod
    def build_create_requests(
        records: Iterable[tuple[GateRecord, Optional[str]]],
    ) -> list[PoolCreateRequest]:
        """Build create requests from (record, parent BPN) pairs."""
        return [
            PoolCreateRequest(index=record.external_id, payload=record.payload, bpn_parent=bpn_parent)
            for record, bpn_parent in records
        ]

    async def create(
        self,
        lsa_type: LsaType,
        requests: Sequence[PoolCreateRequest],
    ) -> UpsertResponse:
        """Create new records; an empty batch is not sent."""
        if not requests:
            return UpsertResponse()

        response = await self.pool.create(lsa_type, list(requests))
        logger.info(
            f"Pool accepted {response.entity_count} new {lsa_type.label}, "
            f"{response.error_count} were refused"
        )
        self._check_counts(lsa_type, "create", response, len(requests))
        return response

    async def update(
        self,
        lsa_type: LsaType,
        records: Sequence[GateRecord],
    ) -> tuple[UpsertResponse, dict[str, str]]:
        """Update records that already own a BPN.

        Returns:
            Tuple of (Pool response, external id by BPN for the batch)
        """
        external_id_by_bpn = {record.bpn: record.external_id for record in records if record.bpn}
        if not records:
            return UpsertResponse(), external_id_by_bpn

        requests = [
            PoolUpdateRequest(bpn=record.bpn, payload=record.payload)
            for record in records
            if record.bpn
        ]
        response = await self.pool.update(lsa_type, requests)
        logger.info(
            f"Pool accepted {response.entity_count} updated {lsa_type.label}, "
            f"{response.error_count} were refused"
        )
        self._check_counts(lsa_type, "update", response, len(requests))
        return response, external_id_by_bpn

    @staticmethod
    def _check_counts(
        lsa_type: LsaType,
        operation: str,
        response: UpsertResponse,
        batch_size: int,
    ) -> None:
        if not response.accounts_for(batch_size):
            logger.warning(
                f"Pool {operation} response for {lsa_type.label} does not account for the batch: "
                f"{response.entity_count} entities + {response.error_count} errors "
                f"!= {batch_size} requests"
            )
