"""Parent Resolver - attaches parent BPNs to sites and addresses.

The Pool only accepts a new site or address together with the BPN of its
parent. Children whose parent has no BPN yet (or does not exist in the Gate)
are left out of the batch rather than failed; a later pass picks them up
once the parent has been shared.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Optional, TypeVar

from ..domain.entities import (
    AddressGateInput,
    GateRecord,
    LsaType,
    ParentResolution,
    SiteGateInput,
    SkippedItem,
    SkipReason,
)
from .gate_query import GateQueryService

logger = logging.getLogger(__name__)

C = TypeVar("C", SiteGateInput, AddressGateInput)


class ParentLookup:
    """Parent records fetched for one batch, indexed by external id."""

    def __init__(self, lsa_type: LsaType, parents: Sequence[GateRecord]):
        self.lsa_type = lsa_type
        self.found = {parent.external_id for parent in parents}
        self.bpns = {parent.external_id: parent.bpn for parent in parents if parent.bpn}

    def resolve(self, child_external_id: str, parent_external_id: str) -> tuple[Optional[str], Optional[SkippedItem]]:
        """Return (parent BPN, None) or (None, reason the child is skipped)."""
        if parent_external_id not in self.found:
            return None, SkippedItem(
                SkipReason.PARENT_NOT_FOUND,
                child_external_id,
                f"{self.lsa_type.value} parent '{parent_external_id}' not found in Gate",
            )
        if parent_external_id not in self.bpns:
            return None, SkippedItem(
                SkipReason.PARENT_WITHOUT_BPN,
                child_external_id,
                f"{self.lsa_type.value} parent '{parent_external_id}' has no BPN yet",
            )
        return self.bpns[parent_external_id], None


class ParentResolver:
    """Resolves parent BPNs for site and address create cohorts."""

    def __init__(self, gate_query: GateQueryService):
        self.gate_query = gate_query

    async def resolve_site_parents(
        self,
        sites: Sequence[SiteGateInput],
    ) -> ParentResolution[SiteGateInput]:
        """Pair every site with the BPN-L of its legal entity parent."""
        parent_ids = {s.legal_entity_external_id for s in sites if s.legal_entity_external_id}
        legal_entities = ParentLookup(
            LsaType.LEGAL_ENTITY,
            await self.gate_query.get_records(LsaType.LEGAL_ENTITY, parent_ids),
        )

        resolution: ParentResolution[SiteGateInput] = ParentResolution(
            parent_bpns=dict(legal_entities.bpns)
        )
        for site in sites:
            self._resolve_child(resolution, site, site.legal_entity_external_id, legal_entities)

        self._warn_if_dropped(LsaType.SITE, resolution, len(sites))
        return resolution

    async def resolve_address_parents(
        self,
        addresses: Sequence[AddressGateInput],
    ) -> ParentResolution[AddressGateInput]:
        """Pair every address with the BPN of its site or legal entity parent.

        Both parent pools are fetched concurrently. An address declaring a
        site parent is attached to the site, otherwise to its legal entity.
        """
        le_ids = {a.legal_entity_external_id for a in addresses if a.legal_entity_external_id}
        site_ids = {a.site_external_id for a in addresses if a.site_external_id}

        fetches = [
            asyncio.create_task(self.gate_query.get_records(LsaType.LEGAL_ENTITY, le_ids)),
            asyncio.create_task(self.gate_query.get_records(LsaType.SITE, site_ids)),
        ]
        try:
            le_parents, site_parents = await asyncio.gather(*fetches)
        except BaseException:
            # Leave no fetch running once the batch has failed
            for task in fetches:
                task.cancel()
            await asyncio.gather(*fetches, return_exceptions=True)
            raise
        legal_entities = ParentLookup(LsaType.LEGAL_ENTITY, le_parents)
        sites = ParentLookup(LsaType.SITE, site_parents)

        resolution: ParentResolution[AddressGateInput] = ParentResolution(
            parent_bpns={**legal_entities.bpns, **sites.bpns}
        )
        for address in addresses:
            if address.site_external_id:
                self._resolve_child(resolution, address, address.site_external_id, sites)
            else:
                self._resolve_child(
                    resolution, address, address.legal_entity_external_id, legal_entities
                )

        self._warn_if_dropped(LsaType.ADDRESS, resolution, len(addresses))
        return resolution

    @staticmethod
    def _resolve_child(
        resolution: ParentResolution[C],
        child: C,
        parent_external_id: Optional[str],
        lookup: ParentLookup,
    ) -> None:
        if not parent_external_id:
            resolution.skipped.append(
                SkippedItem(
                    SkipReason.NO_PARENT_REFERENCE,
                    child.external_id,
                    "no parent external id declared",
                )
            )
            return

        bpn, skipped = lookup.resolve(child.external_id, parent_external_id)
        if skipped is not None:
            resolution.skipped.append(skipped)
        else:
            resolution.resolved.append((child, bpn))

    @staticmethod
    def _warn_if_dropped(lsa_type: LsaType, resolution: ParentResolution, total: int) -> None:
        if resolution.skipped:
            logger.warning(
                f"Only {len(resolution.resolved)} of {total} {lsa_type.label} passed to the Pool "
                "because some parent BPNs are missing"
            )
