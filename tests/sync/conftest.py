"""Fake ports shared by the sync tests.

FakeGateAPI keeps input records, a changelog and a sharing-state table keyed
by ``(external_id, lsa_type)`` in memory, and paginates like the Gate does.
FakePoolAPI assigns sequential BPNs and refuses the requests it was told to.
"""

from collections.abc import Collection
from dataclasses import replace
from datetime import datetime
from typing import Optional

import pytest

from src.bpdm.sync.adapters.memory_checkpoint_repo import InMemoryCheckpointRepository
from src.bpdm.sync.domain.entities import (
    ChangelogEntry,
    ErrorInfo,
    GateRecord,
    LsaType,
    Page,
    PoolCreateRequest,
    PoolEntityResult,
    PoolUpdateRequest,
    SharingState,
    SharingStateType,
    StartAfterPage,
    UpsertResponse,
)
from src.bpdm.sync.domain.ports import IGateAPI, IPoolAPI
from src.bpdm.sync.use_cases import (
    GateQueryService,
    ParentResolver,
    PoolUpsertService,
    SharingStateWriter,
    SyncBusinessPartnersUseCase,
)

BPN_PREFIXES = {
    LsaType.LEGAL_ENTITY: "BPNL",
    LsaType.SITE: "BPNS",
    LsaType.ADDRESS: "BPNA",
}


class FakeGateAPI(IGateAPI):
    """In-memory Gate."""

    def __init__(self):
        self.records: dict[LsaType, dict[str, GateRecord]] = {t: {} for t in LsaType}
        self.changelog: list[ChangelogEntry] = []
        self.sharing_states: dict[tuple[str, LsaType], SharingState] = {}
        self.upserts: list[SharingState] = []
        self.changelog_calls: list[tuple[Optional[datetime], int, int]] = []
        self.record_calls: list[tuple[LsaType, list[str], Optional[str]]] = []
        self.sharing_state_calls = 0
        self.raise_on_upsert: Optional[Exception] = None

    # ----- seeding helpers -----

    def add_record(self, record: GateRecord, timestamp: Optional[datetime] = None, changed: bool = True):
        """Store a record; its BPN (if any) goes into the ledger as Success."""
        self.records[record.lsa_type][record.external_id] = replace(record, bpn=None)
        if record.bpn:
            self.sharing_states[(record.external_id, record.lsa_type)] = SharingState(
                external_id=record.external_id,
                lsa_type=record.lsa_type,
                sharing_state_type=SharingStateType.SUCCESS,
                bpn=record.bpn,
            )
        if changed:
            self.changelog.append(ChangelogEntry(record.external_id, record.lsa_type, timestamp))

    def state(self, lsa_type: LsaType, external_id: str) -> Optional[SharingState]:
        return self.sharing_states.get((external_id, lsa_type))

    # ----- IGateAPI -----

    async def fetch_changelog_page(self, from_time, page, size):
        self.changelog_calls.append((from_time, page, size))
        entries = [
            e for e in self.changelog
            if from_time is None or e.timestamp is None or e.timestamp >= from_time
        ]
        return _page(entries, page, size)

    async def fetch_records_page(self, lsa_type, external_ids: Collection[str], start_after, size):
        self.record_calls.append((lsa_type, list(external_ids), start_after))
        matching = sorted(
            (r for r in self.records[lsa_type].values() if r.external_id in set(external_ids)),
            key=lambda r: r.external_id,
        )
        if start_after is not None:
            matching = [r for r in matching if r.external_id > start_after]
        chunk = [replace(r) for r in matching[:size]]
        next_start_after = chunk[-1].external_id if len(matching) > size else None
        return StartAfterPage(content=chunk, next_start_after=next_start_after, total=len(chunk))

    async def fetch_sharing_states_page(self, lsa_type, external_ids, page, size):
        self.sharing_state_calls += 1
        ids = set(external_ids)
        states = [
            replace(s) for (ext_id, t), s in sorted(self.sharing_states.items())
            if t == lsa_type and ext_id in ids
        ]
        return _page(states, page, size)

    async def upsert_sharing_state(self, state: SharingState) -> None:
        if self.raise_on_upsert:
            raise self.raise_on_upsert
        self.upserts.append(state)
        self.sharing_states[state.key] = state


class FakePoolAPI(IPoolAPI):
    """Pool that hands out sequential BPNs.

    ``refuse`` maps a request key (index for creates, BPN for updates) to the
    error code the Pool answers with.
    """

    def __init__(self, refuse: Optional[dict[str, str]] = None):
        self.refuse = refuse or {}
        self.created: dict[LsaType, list[PoolCreateRequest]] = {t: [] for t in LsaType}
        self.updated: dict[LsaType, list[PoolUpdateRequest]] = {t: [] for t in LsaType}
        self.create_calls = 0
        self.update_calls = 0
        self.raise_on_create: Optional[Exception] = None
        self._next_bpn = 1

    def _assign_bpn(self, lsa_type: LsaType) -> str:
        bpn = f"{BPN_PREFIXES[lsa_type]}{self._next_bpn:012d}"
        self._next_bpn += 1
        return bpn

    async def create(self, lsa_type, requests):
        self.create_calls += 1
        if self.raise_on_create:
            raise self.raise_on_create
        self.created[lsa_type].extend(requests)

        response = UpsertResponse()
        for request in requests:
            if request.index in self.refuse:
                response.errors.append(
                    ErrorInfo(self.refuse[request.index], f"{request.index} refused", request.index)
                )
            else:
                response.entities.append(
                    PoolEntityResult(bpn=self._assign_bpn(lsa_type), index=request.index)
                )
        response.entity_count = len(response.entities)
        response.error_count = len(response.errors)
        return response

    async def update(self, lsa_type, requests):
        self.update_calls += 1
        self.updated[lsa_type].extend(requests)

        response = UpsertResponse()
        for request in requests:
            if request.bpn in self.refuse:
                response.errors.append(
                    ErrorInfo(self.refuse[request.bpn], f"{request.bpn} refused", request.bpn)
                )
            else:
                response.entities.append(PoolEntityResult(bpn=request.bpn))
        response.entity_count = len(response.entities)
        response.error_count = len(response.errors)
        return response


def _page(items: list, page: int, size: int) -> Page:
    total_pages = (len(items) + size - 1) // size
    return Page(
        content=items[page * size:(page + 1) * size],
        total_pages=total_pages,
        total_elements=len(items),
        page=page,
    )


@pytest.fixture
def gate():
    return FakeGateAPI()


@pytest.fixture
def pool():
    return FakePoolAPI()


@pytest.fixture
def checkpoints():
    return InMemoryCheckpointRepository()


@pytest.fixture
def gate_query(gate):
    return GateQueryService(gate, page_size=2)


@pytest.fixture
def make_use_case(gate, checkpoints):
    """Build a use case around the shared Gate and a given Pool."""

    def _make(pool_api: IPoolAPI, page_size: int = 2) -> SyncBusinessPartnersUseCase:
        gate_query = GateQueryService(gate, page_size=page_size)
        return SyncBusinessPartnersUseCase(
            gate_query=gate_query,
            parent_resolver=ParentResolver(gate_query),
            pool_upsert=PoolUpsertService(pool_api),
            sharing_state_writer=SharingStateWriter(gate),
            checkpoint_repo=checkpoints,
        )

    return _make


@pytest.fixture
def make_pool():
    """FakePoolAPI factory, for tests that need a Pool refusing some requests."""
    return FakePoolAPI
