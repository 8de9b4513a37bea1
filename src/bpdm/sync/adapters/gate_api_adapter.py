"""Gate API adapter.

This adapter implements IGateAPI on top of a BPDMClient pointed at the Gate
service. It only performs single page calls; exhaustive fetching is done by
the domain pagination helpers.
"""

from collections.abc import Collection
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from ..domain.entities import (
    ChangelogEntry,
    GateRecord,
    LsaType,
    Page,
    SharingState,
    StartAfterPage,
)
from ..domain.ports import IGateAPI
from .field_mapper import GateFieldMapper, format_instant

if TYPE_CHECKING:
    from ...api.client import BPDMClient


class GateAPI(IGateAPI):
    """BPDM Gate adapter for changelog, input records and sharing states."""

    CHANGELOG_ENDPOINT = "/api/catena/input/changelog"
    SHARING_STATE_ENDPOINT = "/api/catena/sharing-state"
    RECORD_ENDPOINTS = {
        LsaType.LEGAL_ENTITY: "/api/catena/input/legal-entities",
        LsaType.SITE: "/api/catena/input/sites",
        LsaType.ADDRESS: "/api/catena/input/addresses",
    }

    def __init__(
        self,
        client: "BPDMClient",
        field_mapper: Optional[GateFieldMapper] = None,
    ):
        """Initialize the adapter.

        Args:
            client: BPDMClient configured with the Gate base URL
            field_mapper: Optional mapper override
        """
        self.client = client
        self.mapper = field_mapper or GateFieldMapper()

    async def fetch_changelog_page(
        self,
        from_time: Optional[datetime],
        page: int,
        size: int,
    ) -> Page[ChangelogEntry]:
        params: dict[str, Any] = {"page": page, "size": size}
        if from_time is not None:
            params["fromTime"] = format_instant(from_time)

        raw = await self.client.get(self.CHANGELOG_ENDPOINT, params=params)
        return self.mapper.map_changelog_page(raw or {})

    async def fetch_records_page(
        self,
        lsa_type: LsaType,
        external_ids: Collection[str],
        start_after: Optional[str],
        size: int,
    ) -> StartAfterPage[GateRecord]:
        params: list[tuple[str, Any]] = [("externalIds", external_id) for external_id in external_ids]
        params.append(("size", size))
        if start_after is not None:
            params.append(("startAfter", start_after))

        raw = await self.client.get(self.RECORD_ENDPOINTS[lsa_type], params=params)
        return self.mapper.map_records_page(lsa_type, raw or {})

    async def fetch_sharing_states_page(
        self,
        lsa_type: LsaType,
        external_ids: Collection[str],
        page: int,
        size: int,
    ) -> Page[SharingState]:
        params: list[tuple[str, Any]] = [("lsaType", lsa_type.value)]
        params.extend(("externalIds", external_id) for external_id in external_ids)
        params.extend([("page", page), ("size", size)])

        raw = await self.client.get(self.SHARING_STATE_ENDPOINT, params=params)
        return self.mapper.map_sharing_states_page(raw or {})

    async def upsert_sharing_state(self, state: SharingState) -> None:
        await self.client.put(
            self.SHARING_STATE_ENDPOINT,
            json_body=self.mapper.sharing_state_to_json(state),
        )
