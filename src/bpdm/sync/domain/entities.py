"""Domain entities for the Gate/Pool sync.

These are pure data structures with no infrastructure dependencies. They
describe what the sync reads from the Gate, what it sends to the Pool and
what it writes back into the Gate's sharing-state ledger.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class LsaType(str, Enum):
    """Business partner record type (Legal entity / Site / Address).

    Member order is the processing order of a sync pass: parents first.
    """

    LEGAL_ENTITY = "LegalEntity"
    SITE = "Site"
    ADDRESS = "Address"

    @property
    def label(self) -> str:
        """Plural, human-readable name used in log lines."""
        return {
            LsaType.LEGAL_ENTITY: "legal entities",
            LsaType.SITE: "sites",
            LsaType.ADDRESS: "addresses",
        }[self]


class SharingStateType(str, Enum):
    """Progress of one Gate record through the sharing process."""

    PENDING = "Pending"
    SUCCESS = "Success"
    ERROR = "Error"


class SharingErrorCode(str, Enum):
    """Error codes the bridge writes into the Gate ledger.

    The Pool's fine-grained error codes are not preserved structurally; they
    only survive as text inside the sharing error message.
    """

    SHARING_PROCESS_ERROR = "SharingProcessError"


# ============================================
# Pagination
# ============================================


@dataclass
class Page(Generic[T]):
    """One page of an offset-paginated Gate response."""

    content: list[T]
    total_pages: int
    total_elements: int = 0
    page: int = 0


@dataclass
class StartAfterPage(Generic[T]):
    """One page of a cursor-paginated Gate response.

    ``next_start_after`` is None on the last page.
    """

    content: list[T]
    next_start_after: Optional[str] = None
    invalid_entries: int = 0
    total: int = 0


# ============================================
# Gate Entities
# ============================================


@dataclass
class ChangelogEntry:
    """One append-only change event recorded by the Gate."""

    external_id: str
    lsa_type: LsaType
    timestamp: Optional[datetime] = None


@dataclass
class LegalEntityGateInput:
    """Legal entity as submitted to the Gate by a data provider.

    ``payload`` is the provider's legal entity object; the bridge forwards it
    to the Pool unchanged.
    """

    external_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    bpn: Optional[str] = None

    @property
    def lsa_type(self) -> LsaType:
        return LsaType.LEGAL_ENTITY


@dataclass
class SiteGateInput:
    """Site as submitted to the Gate; its parent is a legal entity."""

    external_id: str
    legal_entity_external_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    bpn: Optional[str] = None

    @property
    def lsa_type(self) -> LsaType:
        return LsaType.SITE


@dataclass
class AddressGateInput:
    """Address as submitted to the Gate; its parent is a legal entity or a site."""

    external_id: str
    legal_entity_external_id: Optional[str] = None
    site_external_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    bpn: Optional[str] = None

    @property
    def lsa_type(self) -> LsaType:
        return LsaType.ADDRESS


GateRecord = Union[LegalEntityGateInput, SiteGateInput, AddressGateInput]


@dataclass
class SharingState:
    """Row of the Gate's sharing-state ledger.

    Keyed by ``(external_id, lsa_type)``; the Gate upserts on that key, so
    writing the same state twice leaves exactly one row.
    """

    external_id: str
    lsa_type: LsaType
    sharing_state_type: SharingStateType
    bpn: Optional[str] = None
    sharing_error_code: Optional[SharingErrorCode] = None
    sharing_error_message: Optional[str] = None
    sharing_process_started: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, LsaType]:
        return (self.external_id, self.lsa_type)


# ============================================
# Pool Entities
# ============================================


@dataclass
class PoolCreateRequest:
    """Create request for one record.

    ``index`` echoes the Gate external id so the response can be correlated;
    the Pool itself has no notion of external ids.
    """

    index: str
    payload: dict[str, Any]
    bpn_parent: Optional[str] = None


@dataclass
class PoolUpdateRequest:
    """Update request for one record that already owns a BPN."""

    bpn: str
    payload: dict[str, Any]


@dataclass
class PoolEntityResult:
    """Successfully created or updated Pool record.

    ``index`` is only set for create responses.
    """

    bpn: Optional[str]
    index: Optional[str] = None


@dataclass
class ErrorInfo:
    """Per-record business error reported by the Pool.

    ``entity_key`` is the external id (the request index) for create
    responses and the BPN for update responses.
    """

    error_code: str
    message: str
    entity_key: Optional[str] = None


@dataclass
class UpsertResponse:
    """Pool answer to a create or update batch."""

    entities: list[PoolEntityResult] = field(default_factory=list)
    errors: list[ErrorInfo] = field(default_factory=list)
    entity_count: int = 0
    error_count: int = 0

    def accounts_for(self, batch_size: int) -> bool:
        """Check that every request of the batch was answered."""
        return self.entity_count + self.error_count == batch_size


# ============================================
# Correlation and Outcomes
# ============================================


@dataclass(frozen=True)
class ByExternalId:
    """Pool error keyed by the Gate external id (create responses)."""

    external_id: Optional[str]


@dataclass(frozen=True)
class ByBpn:
    """Pool error keyed by BPN (update responses)."""

    bpn: Optional[str]


ErrorCorrelation = Union[ByExternalId, ByBpn]


def resolve_external_id(
    correlation: ErrorCorrelation,
    external_id_by_bpn: Optional[dict[str, str]] = None,
) -> Optional[str]:
    """Map an error correlation back to the Gate external id.

    Returns None when a BPN cannot be found in the lookup map.
    """
    if isinstance(correlation, ByExternalId):
        return correlation.external_id
    if correlation.bpn is None:
        return None
    return (external_id_by_bpn or {}).get(correlation.bpn)


@dataclass(frozen=True)
class SharingSuccess:
    bpn: str


@dataclass(frozen=True)
class SharingFailure:
    error_code: str
    message: str


SharingOutcome = Union[SharingSuccess, SharingFailure]


class SkipReason(str, Enum):
    """Why a record was left out of a Pool batch or a ledger write."""

    NO_PARENT_REFERENCE = "NoParentReference"
    PARENT_NOT_FOUND = "ParentNotFound"
    PARENT_WITHOUT_BPN = "ParentWithoutBpn"
    MISSING_INDEX = "MissingIndex"
    MISSING_BPN = "MissingBpn"
    CORRELATION_MISS = "CorrelationMiss"


@dataclass(frozen=True)
class SkippedItem:
    """Record silently excluded from processing, with the reason."""

    reason: SkipReason
    id: Optional[str]
    detail: Optional[str] = None


@dataclass
class ParentResolution(Generic[T]):
    """Children paired with their parent BPN, plus the children left out.

    ``len(resolved) + len(skipped)`` always equals the number of children
    passed in.
    """

    resolved: list[tuple[T, str]] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)
    parent_bpns: dict[str, str] = field(default_factory=dict)


@dataclass
class WriteBackResult:
    """Outcome of writing one Pool response back into the Gate ledger."""

    written: list[SharingState] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)


# ============================================
# Result Entities
# ============================================


@dataclass
class LsaSyncStatistics:
    """Counts for one partner type within a sync pass."""

    lsa_type: LsaType
    changed: int = 0
    fetched: int = 0
    to_create: int = 0
    to_update: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "changed": self.changed,
            "fetched": self.fetched,
            "to_create": self.to_create,
            "to_update": self.to_update,
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
            "skipped": len(self.skipped),
        }


@dataclass
class SyncResult:
    """Result of one complete sync pass."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    modified_after: Optional[datetime] = None
    statistics: dict[LsaType, LsaSyncStatistics] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def skipped(self) -> list[SkippedItem]:
        return [item for stats in self.statistics.values() for item in stats.skipped]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CLI output and scheduler logs."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "modified_after": self.modified_after.isoformat() if self.modified_after else None,
            "duration_seconds": self.duration_seconds,
            "types": {
                lsa_type.value: stats.to_dict()
                for lsa_type, stats in self.statistics.items()
            },
        }
