"""Pool API adapter.

Implements IPoolAPI on top of a BPDMClient pointed at the Pool service:
POST creates a batch of golden records, PUT updates a batch.
"""

from typing import TYPE_CHECKING, Optional

from ..domain.entities import LsaType, PoolCreateRequest, PoolUpdateRequest, UpsertResponse
from ..domain.ports import IPoolAPI
from .field_mapper import PoolFieldMapper

if TYPE_CHECKING:
    from ...api.client import BPDMClient


class PoolAPI(IPoolAPI):
    """BPDM Pool adapter for legal entity, site and address batches."""

    ENDPOINTS = {
        LsaType.LEGAL_ENTITY: "/api/catena/legal-entities",
        LsaType.SITE: "/api/catena/sites",
        LsaType.ADDRESS: "/api/catena/addresses",
    }

    def __init__(
        self,
        client: "BPDMClient",
        field_mapper: Optional[PoolFieldMapper] = None,
    ):
        self.client = client
        self.mapper = field_mapper or PoolFieldMapper()

    async def create(
        self,
        lsa_type: LsaType,
        requests: list[PoolCreateRequest],
    ) -> UpsertResponse:
        body = [self.mapper.create_request_to_json(lsa_type, request) for request in requests]
        raw = await self.client.post(self.ENDPOINTS[lsa_type], json_body=body)
        return self.mapper.map_upsert_response(lsa_type, raw)

    async def update(
        self,
        lsa_type: LsaType,
        requests: list[PoolUpdateRequest],
    ) -> UpsertResponse:
        body = [self.mapper.update_request_to_json(lsa_type, request) for request in requests]
        raw = await self.client.put(self.ENDPOINTS[lsa_type], json_body=body)
        return self.mapper.map_upsert_response(lsa_type, raw)
