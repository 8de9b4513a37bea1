"""Use cases layer - Business logic orchestration for the Gate -> Pool sync.

This layer contains the services a sync pass is built from:
- Read the changelog and the changed records (GateQueryService)
- Attach parent BPNs to new sites and addresses (ParentResolver)
- Send create and update batches to the Pool (PoolUpsertService)
- Record each outcome in the Gate ledger (SharingStateWriter)

Use cases depend only on ports, not concrete implementations.
"""

from .gate_query import GateQueryService
from .parent_resolver import ParentResolver
from .pool_upsert import PoolUpsertService
from .sharing_state_writer import SharingStateWriter
from .sync_business_partners import SyncBusinessPartnersUseCase, SyncPhase

__all__ = [
    "GateQueryService",
    "ParentResolver",
    "PoolUpsertService",
    "SharingStateWriter",
    "SyncBusinessPartnersUseCase",
    "SyncPhase",
]
