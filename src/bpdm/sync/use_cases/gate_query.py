"""Gate Query Service - reads the work list and the records to share.

Reads never mutate the Gate. Every read is exhaustive: the changelog and
the sharing-state listing use offset pagination, the input record endpoints
use cursor pagination.
"""

import logging
from collections.abc import Collection
from datetime import datetime
from typing import Optional

from ..domain.entities import GateRecord, LsaType
from ..domain.pagination import DEFAULT_PAGE_SIZE, fetch_all_pages, fetch_all_start_after
from ..domain.ports import IGateAPI

logger = logging.getLogger(__name__)


class GateQueryService:
    """Changelog reader and record fetcher for the Gate.

    Example:
        query = GateQueryService(GateAPI(gate_client))
        changed = await query.get_changed_external_ids(last_sync)
        sites = await query.get_records(LsaType.SITE, changed[LsaType.SITE])
    """

    def __init__(self, gate_api: IGateAPI, page_size: int = DEFAULT_PAGE_SIZE):
        self.gate = gate_api
        self.page_size = page_size

    async def get_changed_external_ids(
        self,
        modified_after: Optional[datetime],
    ) -> dict[LsaType, set[str]]:
        """Collect the external ids changed since ``modified_after``.

        Args:
            modified_after: Checkpoint of the last pass; None reads the whole log

        Returns:
            Distinct external ids per partner type; types without changes are absent
        """
        entries = await fetch_all_pages(
            lambda page, size: self.gate.fetch_changelog_page(modified_after, page, size),
            self.page_size,
        )

        changed: dict[LsaType, set[str]] = {}
        for entry in entries:
            changed.setdefault(entry.lsa_type, set()).add(entry.external_id)

        logger.info(
            "Changed entries in Gate since last sync: "
            f"{len(changed.get(LsaType.LEGAL_ENTITY, ()))} legal entities, "
            f"{len(changed.get(LsaType.SITE, ()))} sites, "
            f"{len(changed.get(LsaType.ADDRESS, ()))} addresses"
        )
        return changed

    async def get_records(
        self,
        lsa_type: LsaType,
        external_ids: Collection[str],
    ) -> list[GateRecord]:
        """Fetch input records by external id, with their BPN attached.

        The BPN comes from the sharing-state ledger; a BPN already present on
        the record is kept when the ledger has none.
        """
        if not external_ids:
            return []

        ids = sorted(set(external_ids))
        records, invalid_entries = await fetch_all_start_after(
            lambda start_after, size: self.gate.fetch_records_page(lsa_type, ids, start_after, size),
            self.page_size,
        )
        logger.info(
            f"Gate returned {len(records)} valid {lsa_type.label}, "
            f"{invalid_entries} were invalid"
        )

        bpn_by_external_id = await self.get_bpn_by_external_id(
            lsa_type, [record.external_id for record in records]
        )
        for record in records:
            record.bpn = bpn_by_external_id.get(record.external_id) or record.bpn
        return records

    async def get_bpn_by_external_id(
        self,
        lsa_type: LsaType,
        external_ids: Collection[str],
    ) -> dict[str, str]:
        """Look up BPNs in the sharing-state ledger; ids without BPN are absent."""
        if not external_ids:
            return {}

        ids = sorted(set(external_ids))
        states = await fetch_all_pages(
            lambda page, size: self.gate.fetch_sharing_states_page(lsa_type, ids, page, size),
            self.page_size,
        )
        return {state.external_id: state.bpn for state in states if state.bpn is not None}
