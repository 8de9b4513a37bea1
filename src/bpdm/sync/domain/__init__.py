"""Domain layer - Pure domain entities, helpers and port interfaces.

This layer contains:
- Entities: Gate records, sharing states, Pool requests/responses, results
- Cohorts and pagination: pure helpers with no I/O of their own
- Ports: Abstract interfaces defining contracts for adapters

No infrastructure dependencies allowed in this layer.
"""

from .cohorts import partition_by_bpn
from .entities import (
    AddressGateInput,
    ByBpn,
    ByExternalId,
    ChangelogEntry,
    ErrorCorrelation,
    ErrorInfo,
    GateRecord,
    LegalEntityGateInput,
    LsaSyncStatistics,
    LsaType,
    Page,
    ParentResolution,
    PoolCreateRequest,
    PoolEntityResult,
    PoolUpdateRequest,
    SharingErrorCode,
    SharingFailure,
    SharingOutcome,
    SharingState,
    SharingStateType,
    SharingSuccess,
    SiteGateInput,
    SkippedItem,
    SkipReason,
    StartAfterPage,
    SyncResult,
    UpsertResponse,
    WriteBackResult,
    resolve_external_id,
)
from .pagination import (
    DEFAULT_PAGE_SIZE,
    fetch_all_pages,
    fetch_all_start_after,
    paginate_pages,
    paginate_start_after,
)
from .ports import IGateAPI, IPoolAPI, ISyncCheckpointRepository

__all__ = [
    # Gate Entities
    "AddressGateInput",
    "ChangelogEntry",
    "GateRecord",
    "LegalEntityGateInput",
    "LsaType",
    "SharingErrorCode",
    "SharingState",
    "SharingStateType",
    "SiteGateInput",
    # Pool Entities
    "ErrorInfo",
    "PoolCreateRequest",
    "PoolEntityResult",
    "PoolUpdateRequest",
    "UpsertResponse",
    # Correlation and Outcomes
    "ByBpn",
    "ByExternalId",
    "ErrorCorrelation",
    "SharingFailure",
    "SharingOutcome",
    "SharingSuccess",
    "SkippedItem",
    "SkipReason",
    "ParentResolution",
    "WriteBackResult",
    "resolve_external_id",
    # Results
    "LsaSyncStatistics",
    "SyncResult",
    # Pagination
    "DEFAULT_PAGE_SIZE",
    "Page",
    "StartAfterPage",
    "fetch_all_pages",
    "fetch_all_start_after",
    "paginate_pages",
    "paginate_start_after",
    # Cohorts
    "partition_by_bpn",
    # Ports
    "IGateAPI",
    "IPoolAPI",
    "ISyncCheckpointRepository",
]
